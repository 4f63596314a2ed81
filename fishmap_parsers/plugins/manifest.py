"""
Plugin manifest parser.

A plugin can describe itself in a fishmap-plugin.yaml next to its module
instead of providing register():

    name: lowrance-extras
    version: 1.0.0
    description: Lowrance Zeus exports and a custom log format

    contributions:
      formats:
        - name: sl2
          device: lowrance
          extensions: [".sl2x"]
        - name: xlog
          device: lowrance
          extensions: [".xlog"]
          magic_bytes: "584c4f47"

      decoders:
        - format: xlog
          python_name: lowrance_extras.decoders:XlogDecoder

Format entries alias extensions and signatures onto a device/format key
the built-in decoders (or a contributed decoder) understand. Decoder
classes are fishmap_parsers Decoder subclasses; they run ahead of the
built-in plugin for files matching their format.
"""

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from ..detect import file_extension

logger = logging.getLogger(__name__)

MANIFEST_NAME = "fishmap-plugin.yaml"


@dataclass
class FormatContribution:
    """An extension/signature alias declared by a manifest."""

    name: str
    device: str
    extensions: list[str] = field(default_factory=list)
    magic_bytes: str = ""  # hex-encoded, matched at offset 0

    @property
    def extension_keys(self) -> list[str]:
        return [ext.lower().lstrip(".") for ext in self.extensions]


@dataclass
class DecoderContribution:
    """A decoder class declared by a manifest."""

    format: str
    python_name: str  # "package.module:ClassName"


@dataclass
class PluginManifest:
    name: str
    version: str = "0.0.0"
    description: str = ""
    formats: list[FormatContribution] = field(default_factory=list)
    decoders: list[DecoderContribution] = field(default_factory=list)

    def format(self, name: str) -> Optional[FormatContribution]:
        for fmt in self.formats:
            if fmt.name == name:
                return fmt
        return None


def load_manifest(yaml_text: str) -> PluginManifest:
    """Parse a fishmap-plugin.yaml manifest string."""
    data = yaml.safe_load(yaml_text)
    if not isinstance(data, dict):
        raise ValueError("Manifest must be a YAML mapping")

    name = data.get("name")
    if not name:
        raise ValueError("Manifest must have a 'name' field")

    manifest = PluginManifest(
        name=name,
        version=str(data.get("version", "0.0.0")),
        description=data.get("description", ""),
    )

    contributions = data.get("contributions") or {}

    for fmt_data in contributions.get("formats", []):
        manifest.formats.append(FormatContribution(
            name=fmt_data["name"],
            device=fmt_data["device"],
            extensions=fmt_data.get("extensions", []),
            magic_bytes=fmt_data.get("magic_bytes", ""),
        ))

    for dec_data in contributions.get("decoders", []):
        manifest.decoders.append(DecoderContribution(
            format=dec_data["format"],
            python_name=dec_data["python_name"],
        ))

    return manifest


def find_manifest_in_package(module) -> Optional[str]:
    """Return the text of the manifest beside a plugin module, if any."""
    try:
        manifest_path = Path(module.__file__).parent / MANIFEST_NAME
        if manifest_path.exists():
            return manifest_path.read_text()
    except (AttributeError, TypeError, OSError):
        pass
    return None


def _import_object(python_name: str):
    """Import an object from a 'module.path:ObjectName' string."""
    if ":" not in python_name:
        raise ValueError(f"python_name must be 'module:name', got: {python_name}")
    module_path, obj_name = python_name.rsplit(":", 1)
    module = importlib.import_module(module_path)
    return getattr(module, obj_name)


def _make_decode_func(decoder_cls, fmt: FormatContribution):
    """decode_file hook that claims files of one contributed format."""
    signature = bytes.fromhex(fmt.magic_bytes) if fmt.magic_bytes else None

    def decode_file(data=None, filename=None, config=None, **kwargs):
        claimed = file_extension(filename) in fmt.extension_keys
        if not claimed and signature:
            claimed = bytes(data[:len(signature)]) == signature
        if not claimed:
            return None
        return decoder_cls(config).decode(data, filename or "unknown", fmt.name)

    return decode_file


def register_from_manifest(manager, manifest: PluginManifest):
    """Register a plugin's contributions from its parsed manifest."""
    if manager.get_plugin(manifest.name) is None:
        manager.register_plugin(
            name=manifest.name,
            version=manifest.version,
            description=manifest.description,
        )

    ext_map = {}
    sigs = {}
    for fmt in manifest.formats:
        for ext in fmt.extension_keys:
            ext_map[ext] = (fmt.device, fmt.name)
        if fmt.magic_bytes:
            try:
                sigs[bytes.fromhex(fmt.magic_bytes)] = (fmt.device, fmt.name)
            except ValueError:
                logger.warning(f"Plugin {manifest.name}: invalid magic_bytes: {fmt.magic_bytes}")

    # Manifest plugins run ahead of the built-in plugin (priority 100)
    if ext_map:
        manager.register_hook_impl(
            "get_extension_map", manifest.name, lambda _map=ext_map: dict(_map), priority=50,
        )
    if sigs:
        manager.register_hook_impl(
            "get_format_signatures", manifest.name, lambda _sigs=sigs: dict(_sigs), priority=50,
        )

    for contrib in manifest.decoders:
        fmt = manifest.format(contrib.format)
        if fmt is None:
            logger.warning(
                f"Plugin {manifest.name}: decoder for undeclared format {contrib.format}"
            )
            continue
        try:
            decoder_cls = _import_object(contrib.python_name)
        except Exception as e:
            logger.warning(
                f"Plugin {manifest.name}: failed to load decoder {contrib.python_name}: {e}"
            )
            continue
        manager.register_hook_impl(
            "decode_file", manifest.name, _make_decode_func(decoder_cls, fmt), priority=50,
        )
