"""
Humminbird decoders: DAT track files and SON sonar recordings.

DAT files store positions as 4-byte floats in decimal degrees, but depth
in feet, speed in mph and temperature in Fahrenheit; everything is
converted on the way out. SON files carry sonar imagery, of which only
the header configuration is extracted.
"""

import logging
import struct
from typing import Optional

from ..models import (
    HUMMINBIRD,
    DEFAULT_TRACK_NAME,
    DepthReading,
    ParseResult,
    SonarMetadata,
    TrackPoint,
    Waypoint,
)
from ..units import (
    fahrenheit_reading,
    feet_to_meters,
    finite_or_none,
    mph_to_mps,
    positive_or_none,
    unix_to_datetime,
    valid_coordinate,
)
from .base import BlockDecoder, Decoder, Field, RecordLayout, ResultBuilder, read_pstring

logger = logging.getLogger(__name__)

DAT_FILE_TYPE = "Humminbird Track (.dat)"
SON_FILE_TYPE = "Humminbird Sonar (.son)"

DAT_HEADER = RecordLayout(
    "humminbird dat header",
    Field("signature", 0, "3s"),
    Field("version", 4, "<H"),
    Field("record_count", 8, "<I"),
    Field("created", 12, "<I"),
)

DAT_RECORD = RecordLayout(
    "humminbird record",
    Field("type", 0, "B"),
    Field("length", 1, "<H"),
)

WAYPOINT = RecordLayout(
    "humminbird waypoint",
    Field("lat", 0, "<f"),
    Field("lon", 4, "<f"),
    Field("time", 8, "<I"),
    Field("depth_ft", 45, "<f"),
    Field("temp_f", 49, "<f"),
)
WAYPOINT_NAME_OFFSET = 12
NAME_MAX = 32

TRACK_POINT = RecordLayout(
    "humminbird track point",
    Field("lat", 0, "<f"),
    Field("lon", 4, "<f"),
    Field("time", 8, "<I"),
    Field("depth_ft", 12, "<f"),
    Field("speed_mph", 16, "<f"),
    Field("temp_f", 20, "<f"),
)

SONAR_CONFIG = RecordLayout(
    "humminbird sonar config",
    Field("frequency", 0, "<H"),
    Field("range_ft", 2, "<f"),
    Field("gain", 6, "<f"),
    Field("chart_speed", 10, "<f"),
    Field("palette", 14, "B"),
)

DEPTH_READING = RecordLayout(
    "humminbird depth reading",
    Field("lat", 0, "<f"),
    Field("lon", 4, "<f"),
    Field("depth_ft", 8, "<f"),
    Field("time", 12, "<I"),
    Field("frequency", 16, "<H"),
    Field("temp_f", 18, "<f"),
)

SON_HEADER = RecordLayout(
    "humminbird son header",
    Field("signature", 0, "3s"),
    Field("sonar_type", 8, "B"),
    Field("frequency", 12, "<H"),
    Field("range_cm", 16, "<I"),
    Field("gain", 24, "<f"),
    Field("chart_speed", 28, "<f"),
)

RECORD_WAYPOINT = 0x01
RECORD_TRACK_HEADER = 0x02
RECORD_TRACK_POINT = 0x03
RECORD_SONAR_CONFIG = 0x04
RECORD_DEPTH_READING = 0x05

# SON sonar type byte: 0=primary, 1=secondary, 2=down imaging, 3=side imaging
SON_PALETTES = {
    2: "DownScan",
    3: "SideScan",
}


class DatDecoder(BlockDecoder):
    """Humminbird DAT: 'HMB' header, 1-byte type + 2-byte length records."""

    vendor = "Humminbird"
    device = HUMMINBIRD
    formats = ["dat"]
    default_file_type = DAT_FILE_TYPE
    signatures = ("HMB",)
    header_layout = DAT_HEADER
    block_header = DAT_RECORD
    min_remaining = 8
    header_error = "Invalid Humminbird DAT file header"
    default_track_name = "Track 1"

    def decode_block(self, block_type: int, payload, builder: ResultBuilder):
        if block_type == RECORD_WAYPOINT:
            rec = WAYPOINT.read(payload)
            if valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_waypoint(Waypoint(
                    name=read_pstring(payload, WAYPOINT_NAME_OFFSET, NAME_MAX),
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    device=HUMMINBIRD,
                    timestamp=unix_to_datetime(rec["time"]),
                    depth=positive_or_none(feet_to_meters(rec["depth_ft"])),
                    temperature=fahrenheit_reading(rec["temp_f"]),
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
                    depth=positive_or_none(feet_to_meters(rec["depth_ft"])),
                    speed=positive_or_none(mph_to_mps(rec["speed_mph"])),
                    temperature=fahrenheit_reading(rec["temp_f"]),
                ))

        elif block_type == RECORD_SONAR_CONFIG:
            rec = SONAR_CONFIG.read(payload)
            builder.set_sonar_metadata(SonarMetadata(
                frequency=rec["frequency"],
                range=finite_or_none(feet_to_meters(rec["range_ft"])),
                gain=finite_or_none(rec["gain"]),
                chart_speed=finite_or_none(rec["chart_speed"]),
                color_palette="High Contrast" if rec["palette"] == 1 else "Standard",
            ))

        elif block_type == RECORD_DEPTH_READING:
            rec = DEPTH_READING.read(payload)
            depth = positive_or_none(feet_to_meters(rec["depth_ft"]))
            if depth and valid_coordinate(rec["lat"], rec["lon"]):
                builder.add_depth_reading(DepthReading(
                    latitude=rec["lat"],
                    longitude=rec["lon"],
                    depth=depth,
                    timestamp=unix_to_datetime(rec["time"]),
                    frequency=rec["frequency"] or None,
                    temperature=fahrenheit_reading(rec["temp_f"]),
                ))

        else:
            logger.debug(f"Ignoring Humminbird record type 0x{block_type:02x}")


class SonDecoder(Decoder):
    """Humminbird SON: sonar configuration from the 32-byte header only."""

    device = HUMMINBIRD
    formats = ["son"]
    default_file_type = SON_FILE_TYPE
    header_error = "Invalid Humminbird SON file header"

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        meta = self.file_metadata(data, filename, SON_FILE_TYPE)
        try:
            rec = SON_HEADER.read(data)
        except struct.error:
            return ParseResult.failure(meta, self.header_error)
        if rec["signature"] != "SON":
            return ParseResult.failure(meta, self.header_error)

        # Sonar-only file: success without waypoints or tracks
        return ParseResult(
            success=True,
            file_metadata=meta,
            sonar_metadata=SonarMetadata(
                frequency=rec["frequency"],
                range=rec["range_cm"] / 100,
                gain=finite_or_none(rec["gain"]),
                chart_speed=finite_or_none(rec["chart_speed"]),
                color_palette=SON_PALETTES.get(rec["sonar_type"], "Standard"),
            ),
        )


class HumminbirdDecoder(Decoder):
    """Routes Humminbird input to the DAT or SON decoder."""

    device = HUMMINBIRD
    formats = ["dat", "son"]
    default_file_type = "Humminbird"

    def __init__(self, config=None):
        super().__init__(config)
        self.dat = DatDecoder(self.config)
        self.son = SonDecoder(self.config)

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        if fmt == "son" or (fmt is None and data[:3] == b"SON"):
            return self.son.decode(data, filename, "son")
        return self.dat.decode(data, filename, "dat")
