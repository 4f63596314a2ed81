"""Tests for the plugin manager, hook specifications and manifests."""

import struct
import types
from unittest.mock import MagicMock, patch

import pytest

from fishmap_parsers import decode, plugins
from fishmap_parsers.detect import FormatMatch
from fishmap_parsers.plugins import initialize_plugins, is_initialized
from fishmap_parsers.plugins.hooks import HookSpec, create_default_hooks
from fishmap_parsers.plugins.manager import PluginInfo, PluginManager
from fishmap_parsers.plugins.manifest import (
    find_manifest_in_package,
    load_manifest,
    register_from_manifest,
)

T0 = 1714543200


def _lowrance_buffer(sig=b"sl2", name="Hump"):
    raw = name.encode()
    payload = struct.pack("<ddIff", 45.0, -93.0, T0, 0.0, 0.0) + b"\x00\x00" + struct.pack("B", len(raw)) + raw
    return struct.pack("<3sBHxxII", sig, 1, 0, 1, T0) + struct.pack("<BI", 1, len(payload)) + payload


class TestHookSpec:
    def test_firstresult_returns_first_non_none(self):
        hook = HookSpec("test", firstresult=True)
        hook.register("a", lambda: None)
        hook.register("b", lambda: "found_b")
        hook.register("c", lambda: "found_c")
        assert hook.call() == "found_b"

    def test_firstresult_empty(self):
        assert HookSpec("test", firstresult=True).call() is None

    def test_historic_collects_all(self):
        hook = HookSpec("test")
        hook.register("a", lambda: {"x": 1})
        hook.register("b", lambda: None)
        hook.register("c", lambda: {"y": 2})
        assert hook.call() == [{"x": 1}, {"y": 2}]

    def test_priority_order(self):
        hook = HookSpec("test", firstresult=True)
        hook.register("late", lambda: "late", priority=100)
        hook.register("early", lambda: "early", priority=10)
        assert hook.call() == "early"

    def test_failing_impl_is_skipped(self):
        def boom():
            raise RuntimeError("nope")

        hook = HookSpec("test", firstresult=True)
        hook.register("bad", boom, priority=1)
        hook.register("good", lambda: "ok")
        assert hook.call() == "ok"

    def test_unregister(self):
        hook = HookSpec("test")
        hook.register("a", lambda: 1)
        hook.register("b", lambda: 2)
        hook.unregister("a")
        assert [impl.plugin_name for impl in hook.implementations] == ["b"]

    def test_default_hooks(self):
        hooks = create_default_hooks()
        assert set(hooks) == {"detect_format", "decode_file", "get_extension_map", "get_format_signatures"}
        assert hooks["decode_file"].firstresult
        assert not hooks["get_extension_map"].firstresult


class TestPluginManager:
    def test_register_and_info(self):
        pm = PluginManager()
        info = pm.register_plugin("extra", version="1.2.0", description="Extra formats")
        assert isinstance(info, PluginInfo)
        assert pm.plugin_names == ["extra"]
        assert pm.get_plugin("extra").version == "1.2.0"

    def test_register_hook_tracks_names(self):
        pm = PluginManager()
        pm.register_plugin("extra")
        pm.register_hook_impl("get_extension_map", "extra", lambda: {"lwx": ("lowrance", "sl2")})
        assert pm.get_plugin("extra").hooks == ["get_extension_map"]

    def test_unknown_hook(self):
        pm = PluginManager()
        with pytest.raises(ValueError, match="Unknown hook"):
            pm.register_hook_impl("nope", "extra", lambda: None)
        with pytest.raises(ValueError, match="Unknown hook"):
            pm.call_hook("nope")

    def test_disable_removes_hooks(self):
        pm = PluginManager()
        pm.register_plugin("extra")
        pm.register_hook_impl("decode_file", "extra", lambda **kw: "claimed")
        pm.disable_plugin("extra")
        assert pm.call_hook("decode_file", data=b"", filename="x", config=None) is None
        assert pm.get_plugin("extra").enabled is False
        assert pm.is_disabled("extra")

    def test_disabled_plugin_not_registered(self):
        pm = PluginManager()
        pm.disable_plugin("extra")
        assert pm.register_plugin("extra") is None

    def test_enable(self):
        pm = PluginManager()
        pm.register_plugin("extra")
        pm.disable_plugin("extra")
        pm.enable_plugin("extra")
        assert not pm.is_disabled("extra")
        assert pm.get_plugin("extra").enabled

    def test_unregister(self):
        pm = PluginManager()
        pm.register_plugin("extra")
        pm.register_hook_impl("decode_file", "extra", lambda **kw: "claimed")
        pm.unregister_plugin("extra")
        assert pm.plugin_names == []
        assert pm.call_hook("decode_file", data=b"") is None

    def test_callbacks(self):
        pm = PluginManager()
        seen = []
        pm.on("register", lambda name: seen.append(("register", name)))
        pm.on("disable", lambda name: seen.append(("disable", name)))
        pm.register_plugin("extra")
        pm.disable_plugin("extra")
        assert seen == [("register", "extra"), ("disable", "extra")]

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            PluginManager().on("explode", lambda name: None)

    def test_merged_mapping_prefers_high_priority(self):
        pm = PluginManager()
        pm.register_hook_impl("get_extension_map", "low", lambda: {"lwx": ("garmin", "gpx"), "a": ("x", "y")})
        pm.register_hook_impl("get_extension_map", "high", lambda: {"lwx": ("lowrance", "sl2")}, priority=10)
        merged = pm.merged_mapping("get_extension_map")
        assert merged["lwx"] == ("lowrance", "sl2")
        assert merged["a"] == ("x", "y")


class TestDiscovery:
    def _entry_point(self, name, module):
        ep = MagicMock()
        ep.name = name
        ep.load.return_value = module
        return ep

    def test_entry_point_with_register(self):
        module = types.SimpleNamespace(__version__="2.0", __doc__="Test plugin", register=MagicMock())
        pm = PluginManager()
        with patch("fishmap_parsers.plugins.manager.entry_points",
                   return_value=[self._entry_point("thirdparty", module)]):
            pm.discover()
        assert pm.get_plugin("thirdparty").version == "2.0"
        module.register.assert_called_once_with(pm)

    def test_disabled_entry_point_skipped(self):
        ep = self._entry_point("thirdparty", types.SimpleNamespace(register=MagicMock()))
        pm = PluginManager()
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[ep]):
            pm.discover(disabled_plugins={"thirdparty"})
        ep.load.assert_not_called()
        assert pm.plugin_names == []

    def test_broken_entry_point_logged(self, caplog):
        ep = MagicMock()
        ep.name = "broken"
        ep.load.side_effect = ImportError("missing dependency")
        pm = PluginManager()
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[ep]):
            pm.discover()
        assert "Failed to load plugin broken" in caplog.text

    def test_entry_point_with_manifest(self, tmp_path):
        (tmp_path / "fishmap-plugin.yaml").write_text(
            "name: aliases\ncontributions:\n  formats:\n"
            "    - name: sl2\n      device: lowrance\n      extensions: ['.lwx']\n"
        )
        module = types.SimpleNamespace(__file__=str(tmp_path / "plugin.py"))
        pm = PluginManager()
        with patch("fishmap_parsers.plugins.manager.entry_points",
                   return_value=[self._entry_point("aliases", module)]):
            pm.discover()
        assert pm.merged_mapping("get_extension_map") == {"lwx": ("lowrance", "sl2")}


class TestInitialize:
    def test_builtin_registered(self):
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]):
            initialize_plugins()
        assert is_initialized()
        info = plugins.plugin_manager.get_plugin("builtin")
        assert set(info.hooks) == {"get_extension_map", "get_format_signatures", "detect_format", "decode_file"}

    def test_initialize_once(self):
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]) as eps:
            initialize_plugins()
            initialize_plugins()
        assert eps.call_count == 1

    def test_decode_through_builtin_matches_direct(self):
        data = _lowrance_buffer()
        direct = decode(data, "trip.sl2")
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]):
            initialize_plugins()
        assert decode(data, "trip.sl2") == direct

    def test_builtin_detect_hook(self):
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]):
            initialize_plugins()
        match = plugins.plugin_manager.call_hook("detect_format", data=b"FSH\x01", filename="x")
        assert match == FormatMatch("raymarine", "fsh", "signature")

    def test_disabled_builtin_falls_back_to_direct(self):
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]):
            initialize_plugins(disabled_plugins={"builtin"})
        assert plugins.plugin_manager.get_plugin("builtin") is None
        result = decode(_lowrance_buffer(), "trip.sl2")
        assert result.success


MANIFEST = """
name: lowrance-extras
version: 1.0.0
description: Extra Lowrance names

contributions:
  formats:
    - name: sl2
      device: lowrance
      extensions: [".lwx"]
    - name: xlog
      device: lowrance
      extensions: [".xlog"]
      magic_bytes: "786c6f67"

  decoders:
    - format: xlog
      python_name: fishmap_parsers.decoders.lowrance:LowranceDecoder
"""


class TestManifest:
    def test_load(self):
        manifest = load_manifest(MANIFEST)
        assert manifest.name == "lowrance-extras"
        assert manifest.version == "1.0.0"
        assert [f.name for f in manifest.formats] == ["sl2", "xlog"]
        assert manifest.formats[0].extension_keys == ["lwx"]
        assert manifest.decoders[0].format == "xlog"

    def test_requires_mapping_and_name(self):
        with pytest.raises(ValueError, match="mapping"):
            load_manifest("- just\n- a list\n")
        with pytest.raises(ValueError, match="name"):
            load_manifest("version: 1.0\n")

    def test_find_manifest(self, tmp_path):
        (tmp_path / "fishmap-plugin.yaml").write_text("name: x\n")
        module = types.SimpleNamespace(__file__=str(tmp_path / "mod.py"))
        assert find_manifest_in_package(module) == "name: x\n"
        assert find_manifest_in_package(types.SimpleNamespace()) is None

    def _initialized_with_manifest(self):
        with patch("fishmap_parsers.plugins.manager.entry_points", return_value=[]):
            initialize_plugins()
        register_from_manifest(plugins.plugin_manager, load_manifest(MANIFEST))

    def test_extension_alias_routes_to_builtin_decoder(self):
        self._initialized_with_manifest()
        result = decode(_lowrance_buffer(), "trip.lwx")
        assert result.success
        assert result.waypoints[0].name == "Hump"
        assert result.file_metadata.file_type == "Lowrance Sonar Log (.sl2)"

    def test_contributed_decoder_claims_its_extension(self):
        self._initialized_with_manifest()
        result = decode(_lowrance_buffer(sig=b"slg"), "log.xlog")
        assert result.success
        assert result.file_metadata.device == "lowrance"

    def test_contributed_decoder_claims_its_signature(self):
        self._initialized_with_manifest()
        decoder_hooks = plugins.plugin_manager.hooks["decode_file"].implementations
        assert decoder_hooks[0].plugin_name == "lowrance-extras"
        # Claimed by signature, then rejected by the Lowrance header check
        result = decode(b"xlog" + b"\x00" * 40, "upload.bin")
        assert not result.success
        assert result.error == "Invalid Lowrance file header"

    def test_decoder_for_undeclared_format_skipped(self, caplog):
        manifest = load_manifest(
            "name: odd\ncontributions:\n  decoders:\n"
            "    - format: nothing\n      python_name: fishmap_parsers.decoders:GarminDecoder\n"
        )
        pm = PluginManager()
        register_from_manifest(pm, manifest)
        assert "undeclared format nothing" in caplog.text
        assert pm.hooks["decode_file"].implementations == []

    def test_unimportable_decoder_skipped(self, caplog):
        manifest = load_manifest(
            "name: odd\ncontributions:\n  formats:\n    - name: zz\n      device: garmin\n"
            "  decoders:\n    - format: zz\n      python_name: not_a_module:Thing\n"
        )
        pm = PluginManager()
        register_from_manifest(pm, manifest)
        assert "failed to load decoder" in caplog.text
