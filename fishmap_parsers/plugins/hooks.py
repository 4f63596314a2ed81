"""
Hook specifications for fishmap-parsers plugins.

Two hook modes:

- firstresult: the first non-None result wins (detection, decoding)
- historic: every implementation contributes (extension maps, signatures)
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class HookImpl:
    """A single hook implementation from a plugin."""

    plugin_name: str
    func: Callable
    priority: int = 100  # lower = called first


class HookSpec:
    """
    One extension point.

    Implementations run in priority order. A failing implementation is
    logged and skipped; it never aborts the call.
    """

    def __init__(self, name: str, firstresult: bool = False):
        self.name = name
        self.firstresult = firstresult
        self._impls: list[HookImpl] = []

    def register(self, plugin_name: str, func: Callable, priority: int = 100):
        self._impls.append(HookImpl(plugin_name, func, priority))
        self._impls.sort(key=lambda x: x.priority)

    def unregister(self, plugin_name: str):
        """Remove all implementations for a plugin."""
        self._impls = [impl for impl in self._impls if impl.plugin_name != plugin_name]

    def call(self, **kwargs) -> Any:
        results = []
        for impl in self._impls:
            try:
                result = impl.func(**kwargs)
            except Exception as e:
                logger.debug(f"Hook {self.name}: {impl.plugin_name} failed: {e}")
                continue
            if result is None:
                continue
            if self.firstresult:
                return result
            results.append(result)
        return None if self.firstresult else results

    @property
    def implementations(self) -> list[HookImpl]:
        return list(self._impls)


def create_default_hooks() -> dict[str, HookSpec]:
    """Create the standard set of hook specifications."""
    return {
        # (data, filename, extension_map, signatures) -> FormatMatch
        "detect_format": HookSpec("detect_format", firstresult=True),

        # (data, filename, config) -> ParseResult; first decoder to claim the file wins
        "decode_file": HookSpec("decode_file", firstresult=True),

        # () -> {"ext": (device, format)}
        "get_extension_map": HookSpec("get_extension_map"),

        # () -> {b"prefix": (device, format)}
        "get_format_signatures": HookSpec("get_format_signatures"),
    }
