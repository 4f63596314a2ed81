"""
Plugin manager for fishmap-parsers.

Discovers, registers, enables and disables plugins. Third-party packages
hook in through the ``fishmap_parsers.plugins`` entry-point group.
"""

import logging
from dataclasses import dataclass, field
from importlib.metadata import entry_points
from typing import Any, Callable, Optional

from .hooks import HookSpec, create_default_hooks

logger = logging.getLogger(__name__)


@dataclass
class PluginInfo:
    """Metadata about a registered plugin."""

    name: str
    version: str = "0.0.0"
    description: str = ""
    module: Any = None
    enabled: bool = True
    hooks: list[str] = field(default_factory=list)


class PluginManager:
    """Central plugin registry."""

    ENTRY_POINT_GROUP = "fishmap_parsers.plugins"

    def __init__(self):
        self._plugins: dict[str, PluginInfo] = {}
        self._hooks: dict[str, HookSpec] = create_default_hooks()
        self._disabled: set[str] = set()
        self._callbacks: dict[str, list[Callable]] = {
            "register": [],
            "unregister": [],
            "enable": [],
            "disable": [],
        }

    # ---- Plugin registration ----

    def register_plugin(
        self,
        name: str,
        module: Any = None,
        version: str = "0.0.0",
        description: str = "",
    ) -> Optional[PluginInfo]:
        """Register a plugin. Returns None if the plugin is disabled."""
        if name in self._disabled:
            logger.debug(f"Skipping disabled plugin: {name}")
            return None

        info = PluginInfo(name=name, version=version, description=description, module=module)
        self._plugins[name] = info
        self._emit("register", name)
        logger.debug(f"Registered plugin: {name} v{version}")
        return info

    def unregister_plugin(self, name: str):
        """Remove a plugin and all its hook implementations."""
        if name not in self._plugins:
            return
        for hook in self._hooks.values():
            hook.unregister(name)
        del self._plugins[name]
        self._emit("unregister", name)
        logger.debug(f"Unregistered plugin: {name}")

    # ---- Hook management ----

    def register_hook_impl(
        self,
        hook_name: str,
        plugin_name: str,
        func: Callable,
        priority: int = 100,
    ):
        if hook_name not in self._hooks:
            raise ValueError(f"Unknown hook: {hook_name}")
        if plugin_name in self._disabled:
            return

        self._hooks[hook_name].register(plugin_name, func, priority)

        info = self._plugins.get(plugin_name)
        if info and hook_name not in info.hooks:
            info.hooks.append(hook_name)

    def call_hook(self, hook_name: str, **kwargs) -> Any:
        if hook_name not in self._hooks:
            raise ValueError(f"Unknown hook: {hook_name}")
        return self._hooks[hook_name].call(**kwargs)

    def merged_mapping(self, hook_name: str) -> dict:
        """
        Merge the dicts a historic hook returns. Earlier (higher priority)
        implementations win on key conflicts.
        """
        merged = {}
        for mapping in reversed(self.call_hook(hook_name)):
            merged.update(mapping)
        return merged

    # ---- Enable / disable ----

    def enable_plugin(self, name: str):
        """Re-enable a disabled plugin. Its hooks return on the next load."""
        self._disabled.discard(name)
        if name in self._plugins:
            self._plugins[name].enabled = True
        self._emit("enable", name)
        logger.debug(f"Enabled plugin: {name}")

    def disable_plugin(self, name: str):
        """Disable a plugin, removing its hook implementations."""
        self._disabled.add(name)
        for hook in self._hooks.values():
            hook.unregister(name)
        if name in self._plugins:
            self._plugins[name].enabled = False
            self._plugins[name].hooks.clear()
        self._emit("disable", name)
        logger.debug(f"Disabled plugin: {name}")

    def is_disabled(self, name: str) -> bool:
        return name in self._disabled

    # ---- Discovery ----

    def discover(self, disabled_plugins: Optional[set[str]] = None):
        """
        Load plugins declared under the entry-point group:

            [project.entry-points."fishmap_parsers.plugins"]
            my_plugin = "my_package.plugin_module"

        The target module provides register(manager), or ships a
        fishmap-plugin.yaml manifest next to it.
        """
        if disabled_plugins:
            self._disabled.update(disabled_plugins)

        for ep in entry_points(group=self.ENTRY_POINT_GROUP):
            if ep.name in self._disabled:
                logger.debug(f"Skipping disabled plugin: {ep.name}")
                continue
            if ep.name in self._plugins:
                logger.debug(f"Plugin already loaded: {ep.name}")
                continue

            try:
                module = ep.load()
                self.register_plugin(
                    name=ep.name,
                    module=module,
                    version=getattr(module, "__version__", "0.0.0"),
                    description=getattr(module, "__doc__", "") or "",
                )
                if hasattr(module, "register"):
                    module.register(self)
                else:
                    self._try_manifest_registration(ep.name, module)
            except Exception as e:
                logger.warning(f"Failed to load plugin {ep.name}: {e}")

    def _try_manifest_registration(self, plugin_name: str, module):
        from .manifest import find_manifest_in_package, load_manifest, register_from_manifest

        yaml_text = find_manifest_in_package(module)
        if not yaml_text:
            logger.warning(f"Plugin {plugin_name} has no register() function or manifest")
            return
        register_from_manifest(self, load_manifest(yaml_text))
        logger.debug(f"Plugin {plugin_name} registered via manifest")

    # ---- Event callbacks ----

    def on(self, event: str, callback: Callable):
        """Register a callback for plugin lifecycle events."""
        if event not in self._callbacks:
            raise ValueError(f"Unknown event: {event}")
        self._callbacks[event].append(callback)

    def _emit(self, event: str, name: str):
        for cb in self._callbacks[event]:
            try:
                cb(name)
            except Exception as e:
                logger.debug(f"{event.capitalize()} callback error for {name}: {e}")

    # ---- Introspection ----

    def get_plugin(self, name: str) -> Optional[PluginInfo]:
        return self._plugins.get(name)

    def list_plugins(self) -> dict[str, PluginInfo]:
        return dict(self._plugins)

    @property
    def hooks(self) -> dict[str, HookSpec]:
        return dict(self._hooks)

    @property
    def plugin_names(self) -> list[str]:
        return list(self._plugins.keys())
