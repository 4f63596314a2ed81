"""
Canonical model shared by every vendor decoder.

All decoders normalise into these types: decimal degrees, meters,
Celsius, meters/second and kHz. Entity ids are random and excluded from
equality so two decodes of the same buffer compare equal.
"""

import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional

from .units import valid_coordinate

LOWRANCE = "lowrance"
GARMIN = "garmin"
HUMMINBIRD = "humminbird"
RAYMARINE = "raymarine"

DEVICES = (LOWRANCE, GARMIN, HUMMINBIRD, RAYMARINE)

DEFAULT_WAYPOINT_NAME = "Unnamed Waypoint"
DEFAULT_TRACK_NAME = "Unnamed Track"
DEFAULT_ROUTE_NAME = "Unnamed Route"


def new_id() -> str:
    return uuid.uuid4().hex


def _check_coordinate(lat: float, lon: float):
    if not valid_coordinate(lat, lon):
        raise ValueError(f"Invalid coordinate: lat={lat!r} lon={lon!r}")


@dataclass
class Waypoint:
    """A named position recorded by a device."""

    name: str
    latitude: float
    longitude: float
    device: str
    timestamp: Optional[datetime] = None
    depth: Optional[float] = None  # meters
    temperature: Optional[float] = None  # Celsius
    notes: Optional[str] = None
    icon: Optional[str] = None
    id: str = field(default_factory=new_id, compare=False)

    def __post_init__(self):
        _check_coordinate(self.latitude, self.longitude)
        if not self.name:
            self.name = DEFAULT_WAYPOINT_NAME


@dataclass
class TrackPoint:
    latitude: float
    longitude: float
    timestamp: Optional[datetime] = None
    depth: Optional[float] = None  # meters
    speed: Optional[float] = None  # m/s
    heading: Optional[float] = None  # degrees true
    temperature: Optional[float] = None  # Celsius

    def __post_init__(self):
        _check_coordinate(self.latitude, self.longitude)


@dataclass
class Track:
    name: str
    points: list[TrackPoint] = field(default_factory=list)
    color: Optional[str] = None  # "#rrggbb"
    id: str = field(default_factory=new_id, compare=False)

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.points[0].timestamp if self.points else None


@dataclass
class Route:
    name: str
    waypoints: list[Waypoint] = field(default_factory=list)
    id: str = field(default_factory=new_id, compare=False)


@dataclass
class DepthReading:
    latitude: float
    longitude: float
    depth: float  # meters
    timestamp: Optional[datetime] = None
    frequency: Optional[int] = None  # kHz
    temperature: Optional[float] = None  # Celsius

    @classmethod
    def from_point(cls, point) -> "DepthReading":
        """Denormalised copy of a waypoint or track point that carries depth."""
        return cls(
            latitude=point.latitude,
            longitude=point.longitude,
            depth=point.depth,
            timestamp=point.timestamp,
            temperature=point.temperature,
        )


@dataclass
class SonarMetadata:
    frequency: int  # kHz
    range: Optional[float]  # meters
    gain: Optional[float]
    chart_speed: Optional[float]
    color_palette: Optional[str] = None


@dataclass
class FileMetadata:
    file_name: str
    file_type: str
    file_size: int
    device: str
    created_date: Optional[datetime] = None
    software_version: Optional[str] = None
    content_hash: Optional[str] = None


@dataclass
class ParseResult:
    """Envelope returned by every decoder, on success and on failure."""

    success: bool
    file_metadata: FileMetadata
    waypoints: list[Waypoint] = field(default_factory=list)
    tracks: list[Track] = field(default_factory=list)
    routes: list[Route] = field(default_factory=list)
    depth_readings: list[DepthReading] = field(default_factory=list)
    sonar_metadata: Optional[SonarMetadata] = None
    error: Optional[str] = None

    @classmethod
    def failure(cls, file_metadata: FileMetadata, error: str) -> "ParseResult":
        return cls(success=False, file_metadata=file_metadata, error=error)

    @property
    def has_data(self) -> bool:
        return bool(self.waypoints or self.tracks or self.routes or self.depth_readings)

    def to_dict(self) -> dict:
        """JSON-safe rendering: datetimes become ISO-8601 strings."""
        data = _jsonable(asdict(self))
        # asdict() drops properties; keep the derived track timestamp
        for track, rendered in zip(self.tracks, data["tracks"]):
            rendered["timestamp"] = track.timestamp.isoformat() if track.timestamp else None
        return data


def _jsonable(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    return value
