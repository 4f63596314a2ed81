"""Built-in decode hook: detect through the hooks, then run a vendor decoder."""

import logging

from fishmap_parsers.decoders import DECODERS

logger = logging.getLogger(__name__)


def _make_decode_file(manager):
    def decode_file(data=None, filename=None, config=None, **kwargs):
        match = manager.call_hook(
            "detect_format",
            data=data,
            filename=filename,
            extension_map=manager.merged_mapping("get_extension_map"),
            signatures=manager.merged_mapping("get_format_signatures"),
        )
        if match is None:
            return None
        decoder_cls = DECODERS.get(match.device)
        if decoder_cls is None:
            logger.debug(f"{filename}: no built-in decoder for device {match.device}")
            return None
        logger.debug(f"{filename}: {match.device}/{match.format} via {match.source}")
        return decoder_cls(config).decode(data, filename or "unknown", match.format)

    return decode_file


def register_decoder_hooks(manager):
    from . import PLUGIN_NAME

    manager.register_hook_impl(
        "decode_file", PLUGIN_NAME, _make_decode_file(manager),
        priority=100,
    )
