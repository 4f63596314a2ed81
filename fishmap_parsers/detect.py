"""
Format detection and dispatch.

The filename extension is authoritative; content sniffing of the first
16 bytes is only consulted when the extension is unknown, and anything
still unrecognised is handed to the Garmin decoder, which itself tells
GPX from ADM by content.
"""

import logging
from dataclasses import dataclass
from pathlib import PurePath
from typing import Optional

from .config import DecoderConfig
from .decoders import get_decoder, unreadable_input
from .models import GARMIN, HUMMINBIRD, LOWRANCE, RAYMARINE, ParseResult

logger = logging.getLogger(__name__)

SNIFF_BYTES = 16

# Order matters: supported_extensions() and accept_string() follow it
EXTENSION_TO_DEVICE = {
    "slg": LOWRANCE,
    "sl2": LOWRANCE,
    "sl3": LOWRANCE,
    "usr": LOWRANCE,
    "gpx": GARMIN,
    "adm": GARMIN,
    "dat": HUMMINBIRD,
    "son": HUMMINBIRD,
    "fsh": RAYMARINE,
}

XML_EXTENSIONS = {"gpx"}

# Leading bytes -> (device, format key)
SIGNATURES = {
    b"slg": (LOWRANCE, "slg"),
    b"sl2": (LOWRANCE, "sl2"),
    b"sl3": (LOWRANCE, "sl3"),
    b"HMB": (HUMMINBIRD, "dat"),
    b"SON": (HUMMINBIRD, "son"),
    b"FSH": (RAYMARINE, "fsh"),
    b"GARMIN": (GARMIN, "adm"),
}


@dataclass(frozen=True)
class FormatMatch:
    """Outcome of detection: which decoder runs and why."""

    device: str
    format: Optional[str]
    source: str  # "extension", "signature" or "fallback"


def file_extension(filename: Optional[str]) -> str:
    """Lower-cased last suffix without the dot; '' when there is none."""
    if not filename:
        return ""
    return PurePath(filename).suffix.lstrip(".").lower()


def sniff(data: bytes, signatures: Optional[dict] = None) -> Optional[FormatMatch]:
    """Identify a format from the first 16 bytes, or None."""
    head = bytes(data[:SNIFF_BYTES])
    text = head.decode("utf-8", errors="ignore")
    if "<?xml" in text or "<gpx" in text:
        return FormatMatch(GARMIN, "gpx", "signature")

    # Shorter prefixes first, as in the fixed table; plugin signatures after
    table = dict(SIGNATURES)
    if signatures:
        table.update(signatures)
    for prefix, (device, fmt) in sorted(table.items(), key=lambda item: len(item[0])):
        if head.startswith(prefix):
            return FormatMatch(device, fmt, "signature")
    return None


def detect_format(
    data: bytes,
    filename: Optional[str] = None,
    extension_map: Optional[dict] = None,
    signatures: Optional[dict] = None,
) -> FormatMatch:
    """
    Decide which decoder handles a buffer. Never raises.

    extension_map ({"ext": (device, format)}) and signatures
    ({b"prefix": (device, format)}) extend the built-in tables; plugins
    supply them through the get_extension_map / get_format_signatures hooks.
    """
    ext = file_extension(filename)
    if extension_map and ext in extension_map:
        device, fmt = extension_map[ext]
        return FormatMatch(device, fmt, "extension")
    if ext in EXTENSION_TO_DEVICE:
        return FormatMatch(EXTENSION_TO_DEVICE[ext], ext, "extension")

    match = sniff(data, signatures)
    if match:
        logger.debug(f"{filename}: detected {match.device}/{match.format} from content")
        return match

    logger.debug(f"{filename}: no extension or signature match, trying Garmin")
    return FormatMatch(GARMIN, None, "fallback")


def decode_direct(
    data: bytes,
    filename: str = "unknown",
    config: Optional[DecoderConfig] = None,
) -> ParseResult:
    """Detect and decode without going through the plugin hooks."""
    try:
        data = bytes(memoryview(data))
    except TypeError:
        return unreadable_input(data, filename)
    match = detect_format(data, filename)
    return get_decoder(match.device, config).decode(data, filename, match.format)


def format_size(size: int) -> str:
    """'N bytes' below 1 KB, then KB, then MB with two decimals."""
    kb = size / 1024
    mb = kb / 1024
    if mb >= 1:
        return f"{mb:.2f} MB"
    if kb >= 1:
        return f"{kb:.2f} KB"
    return f"{size} bytes"


def identify(data: bytes, filename: Optional[str] = None) -> dict:
    """Describe a file without decoding it."""
    ext = file_extension(filename)
    match = detect_format(data, filename)
    if ext in XML_EXTENSIONS:
        format_type = "xml"
    elif ext in EXTENSION_TO_DEVICE:
        format_type = "binary"
    else:
        format_type = "unknown"
    return {
        "device": "unknown" if match.source == "fallback" else match.device,
        "format_type": format_type,
        "extension": ext,
        "size": len(data),
        "size_formatted": format_size(len(data)),
    }


def is_supported(data: bytes, filename: Optional[str] = None) -> bool:
    if file_extension(filename) in EXTENSION_TO_DEVICE:
        return True
    return sniff(data) is not None


def supported_extensions() -> list[str]:
    return list(EXTENSION_TO_DEVICE)


def extensions_for_device(device: str) -> list[str]:
    return [ext for ext, dev in EXTENSION_TO_DEVICE.items() if dev == device]


def accept_string() -> str:
    """Extensions as a file-input accept attribute: '.slg,.sl2,...'."""
    return ",".join(f".{ext}" for ext in supported_extensions())
