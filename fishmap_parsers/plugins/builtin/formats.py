"""Built-in format detection hooks: extension table and signatures."""

from fishmap_parsers.detect import EXTENSION_TO_DEVICE, SIGNATURES, detect_format


def _get_extension_map():
    """Hook impl: {"ext": (device, format)} for the built-in extensions."""
    return {ext: (device, ext) for ext, device in EXTENSION_TO_DEVICE.items()}


def _get_format_signatures():
    """Hook impl: leading-byte signatures of the built-in binary formats."""
    return dict(SIGNATURES)


def _detect_format(data=None, filename=None, extension_map=None, signatures=None, **kwargs):
    """Hook impl: extension first, then content, then the Garmin fallback."""
    return detect_format(data or b"", filename, extension_map, signatures)


def register_format_hooks(manager):
    from . import PLUGIN_NAME

    manager.register_hook_impl("get_extension_map", PLUGIN_NAME, _get_extension_map)
    manager.register_hook_impl("get_format_signatures", PLUGIN_NAME, _get_format_signatures)
    manager.register_hook_impl(
        "detect_format", PLUGIN_NAME, _detect_format,
        priority=100,  # built-in = lowest priority
    )
