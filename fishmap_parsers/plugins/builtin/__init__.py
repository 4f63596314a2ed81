"""
Built-in plugin for fishmap-parsers.

Registers the four vendor decoders, their extension table and their
signatures through the same hooks third-party plugins use.
"""

from .formats import register_format_hooks
from .decoders import register_decoder_hooks

PLUGIN_NAME = "builtin"
PLUGIN_VERSION = "1.0.0"


def register(manager):
    """Register all built-in hooks with the plugin manager."""
    manager.register_plugin(
        name=PLUGIN_NAME,
        version=PLUGIN_VERSION,
        description="Built-in Lowrance, Garmin, Humminbird and Raymarine decoders",
    )
    register_format_hooks(manager)
    register_decoder_hooks(manager)
