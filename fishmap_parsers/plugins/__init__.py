"""
Plugin system for fishmap-parsers.

Third-party packages add decoders, extension aliases and signatures
through Python entry points or a fishmap-plugin.yaml manifest.

Usage:
    from fishmap_parsers.plugins import plugin_manager, initialize_plugins

    initialize_plugins()
    result = plugin_manager.call_hook("decode_file", data=data, filename=name, config=None)
"""

import logging
from typing import Optional

from .hooks import HookSpec, create_default_hooks
from .manager import PluginManager, PluginInfo

logger = logging.getLogger(__name__)

# Global singleton, the central plugin registry
plugin_manager = PluginManager()

_initialized = False


def initialize_plugins(disabled_plugins: Optional[set[str]] = None):
    """
    Initialize the plugin system once: the built-in plugin first (lowest
    priority), then everything under the entry-point group.
    """
    global _initialized

    if _initialized:
        return

    for name in disabled_plugins or ():
        plugin_manager.disable_plugin(name)

    # Disabled plugins register nothing, the built-in one included
    from .builtin import register as register_builtin

    register_builtin(plugin_manager)

    plugin_manager.discover()

    _initialized = True
    logger.debug(f"Plugin system initialized: {len(plugin_manager.plugin_names)} plugins loaded")


def is_initialized() -> bool:
    return _initialized


def reset_plugins():
    """Reset the plugin system. Primarily for testing."""
    global plugin_manager, _initialized
    plugin_manager = PluginManager()
    _initialized = False


__all__ = [
    "plugin_manager",
    "initialize_plugins",
    "is_initialized",
    "reset_plugins",
    "PluginManager",
    "PluginInfo",
    "HookSpec",
    "create_default_hooks",
]
