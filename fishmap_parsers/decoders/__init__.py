"""
Vendor decoders.

One Decoder subclass per device family. Each turns a raw buffer into a
ParseResult and never raises; the dispatcher in fishmap_parsers.detect
picks which one runs.
"""

from typing import Optional

from ..config import DecoderConfig
from ..models import GARMIN, HUMMINBIRD, LOWRANCE, RAYMARINE
from .base import (
    BlockDecoder,
    CorruptRecordError,
    Decoder,
    RecordLayout,
    ResultBuilder,
    unreadable_input,
)
from .garmin import AdmDecoder, GarminDecoder, GpxDecoder
from .humminbird import DatDecoder, HumminbirdDecoder, SonDecoder
from .lowrance import LowranceDecoder
from .raymarine import RaymarineDecoder

DECODERS: dict[str, type[Decoder]] = {
    LOWRANCE: LowranceDecoder,
    GARMIN: GarminDecoder,
    HUMMINBIRD: HumminbirdDecoder,
    RAYMARINE: RaymarineDecoder,
}


def get_decoder(device: str, config: Optional[DecoderConfig] = None) -> Decoder:
    """Instantiate the decoder for a device tag. Raises KeyError if unknown."""
    return DECODERS[device](config)


__all__ = [
    "Decoder",
    "BlockDecoder",
    "CorruptRecordError",
    "RecordLayout",
    "ResultBuilder",
    "unreadable_input",
    "LowranceDecoder",
    "GarminDecoder",
    "GpxDecoder",
    "AdmDecoder",
    "HumminbirdDecoder",
    "DatDecoder",
    "SonDecoder",
    "RaymarineDecoder",
    "DECODERS",
    "get_decoder",
]
