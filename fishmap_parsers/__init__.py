"""
fishmap-parsers - decode fish-finder and chartplotter files from Lowrance,
Garmin, Humminbird and Raymarine devices into one waypoint/track/route
model.

    from fishmap_parsers import decode

    result = decode(open("ARCHIVE.FSH", "rb").read(), "ARCHIVE.FSH")
    if result.success:
        for wp in result.waypoints:
            print(wp.name, wp.latitude, wp.longitude)
"""

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from .config import DecoderConfig
from .decoders import unreadable_input
from .detect import (
    FormatMatch,
    accept_string,
    decode_direct,
    detect_format,
    extensions_for_device,
    identify,
    is_supported,
    supported_extensions,
)
from .models import ParseResult

try:
    __version__ = version("fishmap-parsers")
except PackageNotFoundError:
    # Running from a source checkout
    __version__ = "0.0.0.dev0"

logger = logging.getLogger(__name__)


def decode(data: bytes, filename: str = "unknown", config: Optional[DecoderConfig] = None) -> ParseResult:
    """
    Decode a whole file buffer. Never raises: failures come back as a
    ParseResult with success=False and an error message.

    Dispatches through the plugin hooks when the plugin system is
    initialized, otherwise decodes directly.
    """
    from . import plugins

    try:
        data = bytes(memoryview(data))
    except TypeError:
        return unreadable_input(data, filename)

    if plugins.is_initialized() and plugins.plugin_manager.plugin_names:
        result = plugins.plugin_manager.call_hook(
            "decode_file", data=data, filename=filename, config=config,
        )
        if result is not None:
            return result
        logger.debug(f"{filename}: no plugin claimed the file, decoding directly")

    return decode_direct(data, filename, config)


__all__ = [
    "__version__",
    "decode",
    "decode_direct",
    "detect_format",
    "identify",
    "is_supported",
    "supported_extensions",
    "extensions_for_device",
    "accept_string",
    "FormatMatch",
    "ParseResult",
    "DecoderConfig",
]
