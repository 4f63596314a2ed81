"""Raymarine ARCHIVE.FSH decoder (waypoints, fish marks, routes, tracks)."""

import logging
from typing import Optional

from ..models import (
    RAYMARINE,
    DEFAULT_ROUTE_NAME,
    DEFAULT_TRACK_NAME,
    Route,
    Track,
    TrackPoint,
    Waypoint,
)
from ..units import (
    celsius_or_none,
    mercator_to_degrees,
    non_negative_or_none,
    positive_or_none,
    unix_to_datetime,
    valid_coordinate,
)
from .base import BlockDecoder, Field, RecordLayout, ResultBuilder, read_pstring

logger = logging.getLogger(__name__)

HEADER = RecordLayout(
    "fsh header",
    Field("signature", 0, "3s"),
    Field("version", 3, "B"),
    Field("record_count", 8, "<I"),
    Field("created", 12, "<I"),
)

BLOCK = RecordLayout(
    "fsh block",
    Field("type", 0, "<H"),
    Field("length", 2, "<I"),
)

WAYPOINT = RecordLayout(
    "fsh waypoint",
    Field("lat", 0, "<i"),
    Field("lon", 4, "<i"),
    Field("time", 8, "<I"),
    Field("depth", 53, "<f"),
    Field("temperature", 57, "<f"),
    Field("symbol", 61, "<H"),
)
WAYPOINT_NAME_OFFSET = 12
WAYPOINT_NAME_MAX = 40

ROUTE = RecordLayout(
    "fsh route",
    Field("name", 0, "40s"),
    Field("count", 40, "<H"),
)

ROUTE_POINT = RecordLayout(
    "fsh route point",
    Field("lat", 0, "<i"),
    Field("lon", 4, "<i"),
    Field("name", 8, "16s"),
)

TRACK = RecordLayout(
    "fsh track",
    Field("name", 0, "40s"),
    Field("count", 40, "<I"),
    Field("color", 44, "<I"),
)

TRACK_POINT = RecordLayout(
    "fsh track point",
    Field("lat", 0, "<i"),
    Field("lon", 4, "<i"),
    Field("time", 8, "<I"),
    Field("depth", 12, "<f"),
    Field("speed", 16, "<f"),
    Field("temperature", 20, "<f"),
)

BLOCK_WAYPOINT = 0x03
BLOCK_ROUTE = 0x04
BLOCK_TRACK = 0x05
BLOCK_MARK = 0x06  # fish mark, same layout as a waypoint

ICONS = {
    1: "anchor",
    2: "fish",
    3: "wreck",
    4: "dive",
    5: "mark",
    6: "buoy",
    7: "danger",
    8: "marina",
    9: "fuel",
    10: "home",
}


def _position(rec: dict) -> Optional[tuple]:
    """Mercator pair to (lat, lon), or None when it lands out of range."""
    lat = mercator_to_degrees(rec["lat"])
    lon = mercator_to_degrees(rec["lon"])
    if valid_coordinate(lat, lon):
        return lat, lon
    return None


class RaymarineDecoder(BlockDecoder):
    """Raymarine FSH: 'FSH' + version header, 2-byte type + 4-byte length blocks."""

    vendor = "Raymarine"
    device = RAYMARINE
    formats = ["fsh"]
    default_file_type = "Raymarine Archive (.fsh)"
    signatures = ("FSH",)
    header_layout = HEADER
    block_header = BLOCK
    first_block = 32
    min_remaining = 16
    header_error = "Invalid Raymarine FSH file header"
    empty_error = "No data found in FSH file"

    def decode_block(self, block_type: int, payload, builder: ResultBuilder):
        if block_type in (BLOCK_WAYPOINT, BLOCK_MARK):
            rec = WAYPOINT.read(payload)
            position = _position(rec)
            if position:
                builder.add_waypoint(Waypoint(
                    name=read_pstring(payload, WAYPOINT_NAME_OFFSET, WAYPOINT_NAME_MAX),
                    latitude=position[0],
                    longitude=position[1],
                    device=RAYMARINE,
                    timestamp=unix_to_datetime(rec["time"]),
                    depth=positive_or_none(rec["depth"]),
                    temperature=celsius_or_none(rec["temperature"]),
                    icon=ICONS.get(rec["symbol"]),
                ))

        elif block_type == BLOCK_ROUTE:
            rec = ROUTE.read(payload)
            waypoints = []
            for i, pt in enumerate(ROUTE_POINT.read_many(payload, ROUTE.size, rec["count"])):
                position = _position(pt)
                if position:
                    waypoints.append(Waypoint(
                        name=pt["name"] or f"Waypoint {i + 1}",
                        latitude=position[0],
                        longitude=position[1],
                        device=RAYMARINE,
                    ))
            builder.add_route(Route(name=rec["name"] or DEFAULT_ROUTE_NAME, waypoints=waypoints))

        elif block_type == BLOCK_TRACK:
            rec = TRACK.read(payload)
            points = []
            for pt in TRACK_POINT.read_many(payload, TRACK.size, rec["count"]):
                position = _position(pt)
                if position:
                    points.append(TrackPoint(
                        latitude=position[0],
                        longitude=position[1],
                        timestamp=unix_to_datetime(pt["time"]),
                        depth=positive_or_none(pt["depth"]),
                        speed=non_negative_or_none(pt["speed"]),
                        temperature=celsius_or_none(pt["temperature"]),
                    ))
            builder.add_track(Track(
                name=rec["name"] or DEFAULT_TRACK_NAME,
                points=points,
                color=f"#{rec['color'] & 0xFFFFFF:06x}",
            ))

        else:
            logger.debug(f"Ignoring FSH block type 0x{block_type:04x}")
