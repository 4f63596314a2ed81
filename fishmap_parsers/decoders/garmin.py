"""
Garmin decoders: GPX (XML) and ADM (ActiveCaptain binary).

GPX elements are matched by local name so GPX 1.0, 1.1 and
namespace-less documents all decode the same way. Depth and water
temperature come from the Garmin extension schemas (gpxx
WaypointExtension, gpxtpx TrackPointExtension), falling back to a plain
<depth> child.
"""

import logging
import math
import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional

from ..models import (
    GARMIN,
    DEFAULT_ROUTE_NAME,
    DEFAULT_TRACK_NAME,
    DepthReading,
    ParseResult,
    Route,
    Track,
    TrackPoint,
    Waypoint,
)
from ..units import (
    celsius_or_none,
    heading_or_none,
    non_negative_or_none,
    positive_or_none,
    unix_to_datetime,
    valid_coordinate,
)
from .base import BlockDecoder, Decoder, Field, HeaderInfo, RecordLayout, ResultBuilder

logger = logging.getLogger(__name__)

GPX_FILE_TYPE = "GPX (GPS Exchange Format)"
ADM_FILE_TYPE = "Garmin ADM (ActiveCaptain)"

# Temperature tags in preference order: water temperature before air
_TEMPERATURE_TAGS = ("temperature", "wtemp", "atemp")

# gpxx:DisplayColor names used on Garmin track extensions
DISPLAY_COLORS = {
    "black": "#000000",
    "darkred": "#8b0000",
    "darkgreen": "#006400",
    "darkyellow": "#b5b820",
    "darkblue": "#00008b",
    "darkmagenta": "#8b008b",
    "darkcyan": "#008b8b",
    "lightgray": "#d3d3d3",
    "darkgray": "#a9a9a9",
    "red": "#ff0000",
    "green": "#00ff00",
    "yellow": "#ffff00",
    "blue": "#0000ff",
    "magenta": "#ff00ff",
    "cyan": "#00ffff",
    "white": "#ffffff",
}


def looks_like_gpx(data: bytes) -> bool:
    """Cheap content check used when no extension decides the format."""
    head = bytes(data[:512]).decode("utf-8", errors="ignore")
    return "<?xml" in head or "<gpx" in head


# ---------------------------------------------------------------
# XML helpers
# ---------------------------------------------------------------

def _local(tag) -> str:
    """Local element name without its {namespace} prefix."""
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1]


def _children(elem, name: str) -> list:
    if elem is None:
        return []
    return [child for child in elem if _local(child.tag) == name]


def _child(elem, name: str):
    found = _children(elem, name)
    return found[0] if found else None


def _text(elem, name: str) -> Optional[str]:
    child = _child(elem, name)
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def _float(text) -> Optional[float]:
    try:
        value = float(text)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


_FRACTION = re.compile(r"\.(\d+)(?=[+-]\d\d:\d\d$|$)")


def parse_gpx_time(text: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 GPX timestamp into an aware UTC datetime."""
    if not text:
        return None
    text = text.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable GPX time: {text!r}")
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _extension_values(elem) -> dict:
    """First numeric value per lower-cased local name inside <extensions>."""
    values = {}
    ext = _child(elem, "extensions")
    if ext is None:
        return values
    for node in ext.iter():
        key = _local(node.tag).lower()
        if key in values or node.text is None:
            continue
        value = _float(node.text.strip())
        if value is not None:
            values[key] = value
    return values


def _depth_and_temperature(elem, extensions: dict):
    depth = extensions.get("depth")
    if depth is None:
        depth = _float(_text(elem, "depth"))
    temperature = next(
        (extensions[tag] for tag in _TEMPERATURE_TAGS if tag in extensions), None
    )
    return positive_or_none(depth), celsius_or_none(temperature)


# ---------------------------------------------------------------
# GPX
# ---------------------------------------------------------------

class GpxDecoder(Decoder):
    """GPS Exchange Format. Also used for GPX exports from other brands."""

    device = GARMIN
    formats = ["gpx"]
    default_file_type = GPX_FILE_TYPE
    empty_error = "No data found in GPX file"

    def __init__(self, config=None, device: str = GARMIN):
        super().__init__(config)
        self.device = device

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        meta = self.file_metadata(data, filename, GPX_FILE_TYPE)

        try:
            root = ET.fromstring(data)
        except ET.ParseError as e:
            return ParseResult.failure(meta, f"Invalid GPX XML: {e}")

        if _local(root.tag) != "gpx":
            return ParseResult.failure(
                meta, f"Unexpected root element <{_local(root.tag)}>, expected <gpx>"
            )

        meta.software_version = root.get("creator")
        # GPX 1.1 keeps the time under <metadata>, GPX 1.0 directly under <gpx>
        meta.created_date = (
            parse_gpx_time(_text(_child(root, "metadata"), "time"))
            or parse_gpx_time(_text(root, "time"))
        )

        builder = ResultBuilder(DEFAULT_TRACK_NAME)

        for wpt in _children(root, "wpt"):
            waypoint = self._waypoint(wpt)
            if waypoint:
                builder.add_waypoint(waypoint)

        for rte in _children(root, "rte"):
            waypoints = [
                wp for wp in (self._waypoint(pt) for pt in _children(rte, "rtept")) if wp
            ]
            builder.add_route(Route(
                name=_text(rte, "name") or DEFAULT_ROUTE_NAME,
                waypoints=waypoints,
            ))

        for trk in _children(root, "trk"):
            builder.add_track(self._track(trk))

        return builder.build(meta, self.empty_error)

    def _waypoint(self, elem) -> Optional[Waypoint]:
        lat = _float(elem.get("lat"))
        lon = _float(elem.get("lon"))
        if not valid_coordinate(lat, lon):
            logger.debug(
                f"Skipping <{_local(elem.tag)}> with bad coordinates "
                f"lat={elem.get('lat')!r} lon={elem.get('lon')!r}"
            )
            return None

        depth, temperature = _depth_and_temperature(elem, _extension_values(elem))
        return Waypoint(
            name=_text(elem, "name") or "",
            latitude=lat,
            longitude=lon,
            device=self.device,
            timestamp=parse_gpx_time(_text(elem, "time")),
            depth=depth,
            temperature=temperature,
            notes=_text(elem, "desc") or _text(elem, "cmt"),
            icon=_text(elem, "sym"),
        )

    def _track(self, trk) -> Track:
        points = []
        for seg in _children(trk, "trkseg"):
            for pt in _children(seg, "trkpt"):
                point = self._track_point(pt)
                if point:
                    points.append(point)

        color = None
        display = _text(_child(_child(trk, "extensions"), "TrackExtension"), "DisplayColor")
        if display:
            color = DISPLAY_COLORS.get(display.lower())

        return Track(name=_text(trk, "name") or DEFAULT_TRACK_NAME, points=points, color=color)

    def _track_point(self, elem) -> Optional[TrackPoint]:
        lat = _float(elem.get("lat"))
        lon = _float(elem.get("lon"))
        if not valid_coordinate(lat, lon):
            return None

        extensions = _extension_values(elem)
        depth, temperature = _depth_and_temperature(elem, extensions)
        speed = _float(_text(elem, "speed"))
        if speed is None:
            speed = extensions.get("speed")
        heading = _float(_text(elem, "course"))
        if heading is None:
            heading = extensions.get("course")

        return TrackPoint(
            latitude=lat,
            longitude=lon,
            timestamp=parse_gpx_time(_text(elem, "time")),
            depth=depth,
            speed=non_negative_or_none(speed),
            heading=heading_or_none(heading),
            temperature=temperature,
        )


# ---------------------------------------------------------------
# ADM
# ---------------------------------------------------------------

ADM_HEADER = RecordLayout(
    "adm header",
    Field("signature", 0, "6s"),
    Field("major", 6, "B"),
    Field("minor", 7, "B"),
    Field("data_offset", 8, "<H"),
    Field("created", 10, "<I"),
)

ADM_BLOCK = RecordLayout(
    "adm block",
    Field("type", 0, "<H"),
    Field("length", 2, "<I"),
)

ADM_WAYPOINT = RecordLayout(
    "adm waypoint",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("name", 16, "32s"),
    Field("time", 48, "<I"),
    Field("depth", 52, "<f"),
    Field("temperature", 56, "<f"),
)

ADM_TRACK = RecordLayout(
    "adm track",
    Field("name", 0, "32s"),
    Field("count", 32, "<I"),
)

ADM_TRACK_POINT = RecordLayout(
    "adm track point",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("time", 16, "<I"),
    Field("depth", 20, "<f"),
    Field("temperature", 24, "<f"),
)

ADM_ROUTE = RecordLayout(
    "adm route",
    Field("name", 0, "32s"),
    Field("count", 32, "<H"),
)

ADM_ROUTE_POINT = RecordLayout(
    "adm route point",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("name", 16, "32s"),
)

ADM_DEPTH = RecordLayout(
    "adm depth",
    Field("lat", 0, "<d"),
    Field("lon", 8, "<d"),
    Field("depth", 16, "<f"),
    Field("time", 20, "<I"),
)

BLOCK_WAYPOINT = 0x0001
BLOCK_TRACK = 0x0002
BLOCK_ROUTE = 0x0003
BLOCK_DEPTH = 0x0004


class AdmDecoder(BlockDecoder):
    """Garmin ActiveCaptain ADM: 'GARMIN' header, 2-byte type + 4-byte length blocks."""

    vendor = "Garmin"
    device = GARMIN
    formats = ["adm"]
    default_file_type = ADM_FILE_TYPE
    signatures = ("GARMIN",)
    header_layout = ADM_HEADER
    block_header = ADM_BLOCK
    min_remaining = ADM_BLOCK.size - 1
    header_error = "Invalid ADM file header"
    empty_error = "No data found in ADM file"

    def parse_header(self, fields: dict) -> HeaderInfo:
        return HeaderInfo(
            data_offset=max(fields["data_offset"], ADM_HEADER.size),
            version=f"{fields['major']}.{fields['minor']}",
            created_date=unix_to_datetime(fields["created"]),
        )

    def decode_block(self, block_type: int, payload, builder: ResultBuilder):
        if block_type == BLOCK_WAYPOINT:
            rec = ADM_WAYPOINT.read(payload)
            if valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_waypoint(Waypoint(
                    name=rec["name"],
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    device=GARMIN,
                    timestamp=unix_to_datetime(rec["time"]),
                    depth=positive_or_none(rec["depth"]),
                    temperature=celsius_or_none(rec["temperature"]),
                ))

        elif block_type == BLOCK_TRACK:
            rec = ADM_TRACK.read(payload)
            points = [
                TrackPoint(
                    latitude=pt["lat"],
                    longitude=pt["lon"],
                    timestamp=unix_to_datetime(pt["time"]),
                    depth=positive_or_none(pt["depth"]),
                    temperature=celsius_or_none(pt["temperature"]),
                )
                for pt in ADM_TRACK_POINT.read_many(payload, ADM_TRACK.size, rec["count"])
                if valid_coordinate(pt["lat"], pt["lon"])
            ]
            builder.add_track(Track(name=rec["name"] or DEFAULT_TRACK_NAME, points=points))

        elif block_type == BLOCK_ROUTE:
            rec = ADM_ROUTE.read(payload)
            waypoints = [
                Waypoint(
                    name=pt["name"] or f"Waypoint {i + 1}",
                    latitude=pt["lat"],
                    longitude=pt["lon"],
                    device=GARMIN,
                )
                for i, pt in enumerate(ADM_ROUTE_POINT.read_many(payload, ADM_ROUTE.size, rec["count"]))
                if valid_coordinate(pt["lat"], pt["lon"])
            ]
            builder.add_route(Route(name=rec["name"] or DEFAULT_ROUTE_NAME, waypoints=waypoints))

        elif block_type == BLOCK_DEPTH:
            rec = ADM_DEPTH.read(payload)
            depth = positive_or_none(rec["depth"])
            if depth and valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_depth_reading(DepthReading(
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    depth=depth,
                    timestamp=unix_to_datetime(rec["time"]),
                ))

        else:
            logger.debug(f"Ignoring ADM block type 0x{block_type:04x}")


class GarminDecoder(Decoder):
    """Routes Garmin input to the GPX or ADM decoder."""

    device = GARMIN
    formats = ["gpx", "adm"]
    default_file_type = "Garmin"

    def __init__(self, config=None):
        super().__init__(config)
        self.gpx = GpxDecoder(self.config)
        self.adm = AdmDecoder(self.config)

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        if fmt == "gpx" or (fmt != "adm" and looks_like_gpx(data)):
            return self.gpx.decode(data, filename, "gpx")
        return self.adm.decode(data, filename, "adm")
