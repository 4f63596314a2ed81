"""
Base classes for vendor file decoders.

Every binary format handled here is a fixed-size header followed by
length-prefixed blocks. BlockDecoder implements that shared state machine
(ReadHeader -> IterateBlocks -> Done) once; each vendor supplies its
layouts as RecordLayout tables and a decode_block() dispatch.
"""

import logging
import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import DecoderConfig
from ..hasher import try_content_hash
from ..models import (
    DepthReading,
    FileMetadata,
    ParseResult,
    Route,
    SonarMetadata,
    Track,
    TrackPoint,
    Waypoint,
)
from ..units import unix_to_datetime

logger = logging.getLogger(__name__)

# Record-level failures that trigger the corrupt-record skip instead of
# aborting the file
RECORD_ERRORS = (struct.error, ValueError, OverflowError, OSError)


class CorruptRecordError(ValueError):
    """A block declares more bytes than the buffer holds."""


def decode_text(raw: bytes) -> str:
    """Decode a fixed-width device string: cut at the first NUL, latin-1."""
    raw = bytes(raw)
    end = raw.find(b"\x00")
    if end >= 0:
        raw = raw[:end]
    return raw.decode("latin-1").strip()


def read_pstring(buf, offset: int, max_len: int) -> str:
    """Read a 1-byte length-prefixed string, capped at max_len characters."""
    length = min(struct.unpack_from("B", buf, offset)[0], max_len)
    start = offset + 1
    if start + length > len(buf):
        raise struct.error(f"string of {length} bytes at offset {start} runs past record end")
    return decode_text(buf[start:start + length])


@dataclass(frozen=True)
class Field:
    """One fixed-offset field: struct format code at a byte offset."""

    name: str
    offset: int
    fmt: str

    @property
    def size(self) -> int:
        return struct.calcsize(self.fmt)


class RecordLayout:
    """
    Declarative byte-offset table for one record type.

    read() unpacks every field relative to a base offset and returns a
    dict. Fields with an "s" format are fixed-width strings and come back
    as str, cut at the first NUL. A buffer too short for the layout raises
    struct.error before any field is read.
    """

    def __init__(self, name: str, *fields: Field):
        self.name = name
        self.fields = fields
        self.size = max((f.offset + f.size for f in fields), default=0)

    def read(self, buf, base: int = 0) -> dict:
        available = len(buf) - base
        if base < 0 or available < self.size:
            raise struct.error(
                f"{self.name}: need {self.size} bytes at offset {base}, "
                f"have {max(available, 0)}"
            )
        values = {}
        for f in self.fields:
            value = struct.unpack_from(f.fmt, buf, base + f.offset)[0]
            if f.fmt.endswith("s"):
                value = decode_text(value)
            values[f.name] = value
        return values

    def read_many(self, buf, base: int, count: int):
        """Read `count` consecutive records starting at base."""
        for i in range(count):
            yield self.read(buf, base + i * self.size)


@dataclass
class HeaderInfo:
    """Fields every vendor header yields after validation."""

    data_offset: int
    version: Optional[str] = None
    record_count: Optional[int] = None
    created_date: Optional[datetime] = None


def unreadable_input(data, filename: str, device: str = "unknown") -> ParseResult:
    """Failure result for input that is not a bytes-like buffer."""
    error = f"Unsupported input type: {type(data).__name__}"
    logger.warning(f"{filename}: {error}")
    meta = FileMetadata(file_name=filename, file_type="unknown", file_size=0, device=device)
    return ParseResult.failure(meta, error)


class ResultBuilder:
    """
    Per-decode accumulator for output collections and the open track.

    Lives only for one decode call. Waypoints (route waypoints included)
    and track points that carry depth are mirrored into depth_readings as
    they arrive, so the depth collection stays in file order.
    """

    def __init__(self, default_track_name: str = "Track 1"):
        self.waypoints: list[Waypoint] = []
        self.tracks: list[Track] = []
        self.routes: list[Route] = []
        self.depth_readings: list[DepthReading] = []
        self.sonar_metadata: Optional[SonarMetadata] = None
        self._track_name = default_track_name
        self._track_points: list[TrackPoint] = []

    def add_waypoint(self, waypoint: Waypoint):
        self.waypoints.append(waypoint)
        if waypoint.depth:
            self.depth_readings.append(DepthReading.from_point(waypoint))

    def add_track(self, track: Track):
        """Add a complete track; empty tracks are dropped."""
        if not track.points:
            return
        self.tracks.append(track)
        for point in track.points:
            if point.depth:
                self.depth_readings.append(DepthReading.from_point(point))

    def add_route(self, route: Route):
        """Add a route; routes without waypoints are dropped."""
        if not route.waypoints:
            return
        self.routes.append(route)
        for waypoint in route.waypoints:
            if waypoint.depth:
                self.depth_readings.append(DepthReading.from_point(waypoint))

    def add_depth_reading(self, reading: DepthReading):
        self.depth_readings.append(reading)

    def set_sonar_metadata(self, metadata: SonarMetadata):
        """First sonar block wins; later ones are ignored."""
        if self.sonar_metadata is None:
            self.sonar_metadata = metadata

    # ---- Open track (formats with separate header/point records) ----

    def start_track(self, name: str):
        self.flush_track()
        self._track_name = name

    def add_track_point(self, point: TrackPoint):
        self._track_points.append(point)
        if point.depth:
            self.depth_readings.append(DepthReading.from_point(point))

    def flush_track(self):
        if self._track_points:
            self.tracks.append(Track(name=self._track_name, points=self._track_points))
        self._track_points = []

    def build(self, file_metadata: FileMetadata, empty_error: str) -> ParseResult:
        self.flush_track()
        result = ParseResult(
            success=False,
            file_metadata=file_metadata,
            waypoints=self.waypoints,
            tracks=self.tracks,
            routes=self.routes,
            depth_readings=self.depth_readings,
            sonar_metadata=self.sonar_metadata,
        )
        result.success = result.has_data
        if not result.success:
            result.error = empty_error
        return result


class Decoder(ABC):
    """Base class for vendor decoders."""

    device: str = ""
    formats: list[str] = []  # format keys (file extensions) this decoder owns
    default_file_type: str = ""

    def __init__(self, config: Optional[DecoderConfig] = None):
        self.config = config or DecoderConfig()

    def can_handle(self, fmt: Optional[str]) -> bool:
        return bool(fmt) and fmt in self.formats

    def decode(self, data: bytes, filename: str = "unknown", fmt: Optional[str] = None) -> ParseResult:
        """
        Decode a buffer into a ParseResult. Never raises: unexpected
        failures come back as success=False with the exception message.
        """
        try:
            data = bytes(memoryview(data))
        except TypeError:
            return unreadable_input(data, filename, self.device)
        try:
            return self._decode(data, filename, fmt)
        except Exception as e:
            logger.warning(f"{type(self).__name__} failed on {filename}: {e}")
            meta = self.file_metadata(data, filename, self.default_file_type)
            return ParseResult.failure(meta, str(e) or type(e).__name__)

    @abstractmethod
    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        ...

    def file_metadata(self, data: bytes, filename: str, file_type: str) -> FileMetadata:
        algorithm = self.config.hash_algorithm if self.config.compute_hash else None
        return FileMetadata(
            file_name=filename,
            file_type=file_type,
            file_size=len(data),
            device=self.device,
            content_hash=try_content_hash(data, algorithm),
        )


class BlockDecoder(Decoder):
    """
    Shared header + length-prefixed block state machine.

    Subclasses set the class attributes below and implement decode_block().
    A bad signature or a buffer shorter than header_layout is fatal. A block
    that fails to decode is logged and skipped by config.corrupt_skip bytes;
    this is a fixed jump, not a resynchronisation, so a damaged block can
    take a following valid one with it.
    """

    vendor: str = ""
    signatures: tuple = ()
    header_layout: RecordLayout = RecordLayout("header")
    block_header: RecordLayout = RecordLayout("block")  # fields: type, length
    first_block: Optional[int] = None  # defaults to the end of header_layout
    min_remaining: int = 0
    header_error: str = ""
    empty_error: str = "No data found in file"
    default_track_name: str = "Track 1"

    def _decode(self, data: bytes, filename: str, fmt: Optional[str]) -> ParseResult:
        meta = self.file_metadata(data, filename, self.file_type(data, fmt))

        header = self.read_header(data)
        if header is None:
            logger.debug(f"{filename}: {self.header_error}")
            return ParseResult.failure(meta, self.header_error)

        meta.created_date = header.created_date
        meta.software_version = header.version

        builder = ResultBuilder(self.default_track_name)
        blocks = self.iterate_blocks(data, header.data_offset, builder, filename)
        if header.record_count is not None and header.record_count != blocks:
            logger.debug(
                f"{filename}: header declares {header.record_count} records, decoded {blocks}"
            )
        return builder.build(meta, self.empty_error)

    def file_type(self, data: bytes, fmt: Optional[str]) -> str:
        return self.default_file_type

    def read_header(self, data: bytes) -> Optional[HeaderInfo]:
        try:
            fields = self.header_layout.read(data)
        except struct.error:
            return None
        if fields["signature"] not in self.signatures:
            return None
        return self.parse_header(fields)

    def parse_header(self, fields: dict) -> HeaderInfo:
        version = fields.get("version")
        return HeaderInfo(
            data_offset=self.first_block or self.header_layout.size,
            version=str(version) if version is not None else None,
            record_count=fields.get("record_count"),
            created_date=unix_to_datetime(fields.get("created", 0)),
        )

    def iterate_blocks(self, data: bytes, offset: int, builder: ResultBuilder, filename: str) -> int:
        """Walk the blocks from offset to the end of the buffer; returns blocks decoded."""
        view = memoryview(data)
        total = len(data)
        header_size = self.block_header.size
        skip = max(self.config.corrupt_skip, 1)
        decoded = 0

        while total - offset > self.min_remaining:
            try:
                block = self.block_header.read(view, offset)
                start = offset + header_size
                end = start + block["length"]
                if end > total:
                    raise CorruptRecordError(
                        f"block length {block['length']} runs past end of buffer ({total} bytes)"
                    )
                self.decode_block(block["type"], view[start:end], builder)
                offset = end
                decoded += 1
            except RECORD_ERRORS as e:
                logger.warning(f"Skipping corrupted block at offset {offset} in {filename}: {e}")
                offset += skip

        return decoded

    @abstractmethod
    def decode_block(self, block_type: int, payload: memoryview, builder: ResultBuilder):
        """Decode one block payload and add what it yields to the builder."""
        ...
