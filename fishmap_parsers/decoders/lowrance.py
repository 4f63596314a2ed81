"""
Lowrance decoder: SLG/SL2/SL3 sonar logs and USR user-data stores.

Binary layout (little-endian):
    header   16 bytes: 3-byte signature, version, block size hint,
             record count at 8, creation time at 12
    blocks   1-byte type + 4-byte length, then the payload

Coordinates are IEEE-754 doubles already in decimal degrees; depth and
temperature are stored in meters and Celsius. Lowrance units also export
GPX under these extensions, so XML content is handed to the GPX decoder.
"""

import logging
from typing import Optional

from ..models import (
    LOWRANCE,
    DEFAULT_ROUTE_NAME,
    DEFAULT_TRACK_NAME,
    DepthReading,
    ParseResult,
    Route,
    SonarMetadata,
    TrackPoint,
    Waypoint,
)
from ..units import (
    celsius_or_none,
    finite_or_none,
    heading_or_none,
    non_negative_or_none,
    positive_or_none,
    unix_to_datetime,
    valid_coordinate,
)
from .base import BlockDecoder, Field, RecordLayout, ResultBuilder, read_pstring
from .garmin import GpxDecoder, looks_like_gpx

logger = logging.getLogger(__name__)

FILE_TYPES = {
    "slg": "Lowrance Sonar Log (.slg)",
    "sl2": "Lowrance Sonar Log (.sl2)",
    "sl3": "Lowrance Sonar Log (.sl3)",
    "usr": "Lowrance User Data (.usr)",
}

HEADER = RecordLayout(
    "lowrance header",
    Field("signature", 0, "3s"),
    Field("version", 3, "B"),
    Field("block_size", 4, "<H"),
    Field("record_count", 8, "<I"),
    Field("created", 12, "<I"),
)

BLOCK = RecordLayout(
    "lowrance block",
    Field("type", 0, "B"),
    Field("length", 1, "<I"),
)

WAYPOINT = RecordLayout(
    "lowrance waypoint",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("time", 16, "<I"),
    Field("depth", 20, "<f"),
    Field("temperature", 24, "<f"),
)
# 28-29 reserved
WAYPOINT_NAME_OFFSET = 30
NAME_MAX = 32

TRACK_POINT = RecordLayout(
    "lowrance track point",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("time", 16, "<I"),
    Field("depth", 20, "<f"),
    Field("speed", 24, "<f"),
    Field("heading", 28, "<f"),
    Field("temperature", 32, "<f"),
)

ROUTE = RecordLayout(
    "lowrance route",
    Field("name", 0, "32s"),
    Field("count", 32, "<H"),
)

ROUTE_POINT = RecordLayout(
    "lowrance route point",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("name", 16, "16s"),
)

DEPTH = RecordLayout(
    "lowrance depth",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("depth", 16, "<f"),
    Field("time", 20, "<I"),
    Field("frequency", 24, "<H"),
    Field("temperature", 26, "<f"),
)

SONAR = RecordLayout(
    "lowrance sonar config",
    Field("frequency", 0, "<H"),
    Field("range", 2, "<f"),
    Field("gain", 6, "<f"),
    Field("chart_speed", 10, "<f"),
    Field("palette", 14, "B"),
)

RECORD_WAYPOINT = 0x01
RECORD_TRACK_HEADER = 0x02
RECORD_TRACK_POINT = 0x03
RECORD_ROUTE = 0x04
RECORD_DEPTH = 0x05
RECORD_SONAR = 0x06

PALETTES = {
    0: "Standard",
    1: "High Contrast",
}


class LowranceDecoder(BlockDecoder):
    """Decoder for Lowrance SLG/SL2/SL3/USR files."""

    vendor = "Lowrance"
    device = LOWRANCE
    formats = ["slg", "sl2", "sl3", "usr"]
    default_file_type = "Lowrance"
    signatures = ("slg", "sl2", "sl3", "USR")
    header_layout = HEADER
    block_header = BLOCK
    min_remaining = BLOCK.size - 1
    header_error = "Invalid Lowrance file header"

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        if looks_like_gpx(data):
            logger.debug(f"{filename}: Lowrance GPX export")
            return GpxDecoder(self.config, device=LOWRANCE).decode(data, filename, "gpx")
        return super()._decode(data, filename, fmt)

    def file_type(self, data: bytes, fmt: Optional[str]) -> str:
        if fmt in FILE_TYPES:
            return FILE_TYPES[fmt]
        signature = bytes(data[:3]).decode("latin-1").lower()
        return FILE_TYPES.get(signature, self.default_file_type)

    def decode_block(self, block_type: int, payload, builder: ResultBuilder):
        if block_type == RECORD_WAYPOINT:
            rec = WAYPOINT.read(payload)
            if valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_waypoint(Waypoint(
                    name=read_pstring(payload, WAYPOINT_NAME_OFFSET, NAME_MAX),
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    device=LOWRANCE,
                    timestamp=unix_to_datetime(rec["time"]),
                    depth=positive_or_none(rec["depth"]),
                    temperature=celsius_or_none(rec["temperature"]),
                ))

        elif block_type == RECORD_TRACK_HEADER:
            builder.start_track(read_pstring(payload, 0, NAME_MAX) or DEFAULT_TRACK_NAME)

        elif block_type == RECORD_TRACK_POINT:
            rec = TRACK_POINT.read(payload)
            if valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_track_point(TrackPoint(
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    timestamp=unix_to_datetime(rec["time"]),
                    depth=positive_or_none(rec["depth"]),
                    speed=non_negative_or_none(rec["speed"]),
                    heading=heading_or_none(rec["heading"]),
                    temperature=celsius_or_none(rec["temperature"]),
                ))

        elif block_type == RECORD_ROUTE:
            rec = ROUTE.read(payload)
            waypoints = [
                Waypoint(
                    name=pt["name"] or f"Waypoint {i + 1}",
                    latitude=pt["lat"],
                    longitude=pt["lon"],
                    device=LOWRANCE,
                )
                for i, pt in enumerate(ROUTE_POINT.read_many(payload, ROUTE.size, rec["count"]))
                if valid_coordinate(pt["lat"], pt["lon"])
            ]
            builder.add_route(Route(name=rec["name"] or DEFAULT_ROUTE_NAME, waypoints=waypoints))

        elif block_type == RECORD_DEPTH:
            rec = DEPTH.read(payload)
            depth = positive_or_none(rec["depth"])
            if depth and valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_depth_reading(DepthReading(
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    depth=depth,
                    timestamp=unix_to_datetime(rec["time"]),
                    frequency=rec["frequency"] or None,
                    temperature=celsius_or_none(rec["temperature"]),
                ))

        elif block_type == RECORD_SONAR:
            rec = SONAR.read(payload)
            builder.set_sonar_metadata(SonarMetadata(
                frequency=rec["frequency"],
                range=finite_or_none(rec["range"]),
                gain=finite_or_none(rec["gain"]),
                chart_speed=finite_or_none(rec["chart_speed"]),
                color_palette=PALETTES.get(rec["palette"], "Standard"),
            ))

        else:
            logger.debug(f"Ignoring Lowrance block type 0x{block_type:02x}")
