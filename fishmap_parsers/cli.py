#!/usr/bin/env python3
"""
fishmap-parse CLI - Main entry point.

Usage:
    fishmap-parse decode FILE [--name HINT]    Decode a file and print its contents
    fishmap-parse identify FILE                Detect device and format without decoding
    fishmap-parse formats [--device D]         List supported extensions
    fishmap-parse config                       Show/create configuration
    fishmap-parse plugins list|info NAME       Inspect plugins
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

from . import __version__, decode, identify
from .config import Config, DEFAULT_CONFIG_PATH
from .detect import accept_string, extensions_for_device, supported_extensions
from .models import DEVICES, ParseResult


def setup_logging(level: str = "INFO", log_file: str = None):
    """Configure logging."""
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt,
        handlers=handlers,
        force=True,
    )


def _read_input(path: str, config: Config) -> bytes:
    """Read a file, enforcing the configured size limit before decoding."""
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"No such file: {path}")
    size = p.stat().st_size
    limit = config.decoder.max_file_size
    if size > limit:
        raise ValueError(f"{path} is {size} bytes, larger than the {limit} byte limit")
    return p.read_bytes()


def _fmt_coord(lat: float, lon: float) -> str:
    return f"{lat:.6f}, {lon:.6f}"


def _fmt_opt(value, spec: str = ".1f", unit: str = "") -> str:
    if value is None:
        return "-"
    return f"{value:{spec}}{unit}"


def _print_result(result: ParseResult):
    meta = result.file_metadata
    print(f"File:     {meta.file_name} ({meta.file_size} bytes)")
    print(f"Type:     {meta.file_type}")
    print(f"Device:   {meta.device}")
    if meta.software_version:
        print(f"Version:  {meta.software_version}")
    if meta.created_date:
        print(f"Created:  {meta.created_date.isoformat()}")
    if meta.content_hash:
        print(f"Hash:     {meta.content_hash}")

    if not result.success:
        print(f"\nDecode failed: {result.error}")
        return

    if result.waypoints:
        print(f"\n=== Waypoints ({len(result.waypoints)}) ===")
        print(f"{'Name':<24} {'Position':<24} {'Depth':>8} {'Temp':>7} {'Icon':<10}")
        print("-" * 77)
        for wp in result.waypoints:
            print(
                f"{wp.name[:24]:<24} {_fmt_coord(wp.latitude, wp.longitude):<24} "
                f"{_fmt_opt(wp.depth, '.1f', 'm'):>8} {_fmt_opt(wp.temperature, '.1f', 'C'):>7} "
                f"{wp.icon or '-':<10}"
            )

    if result.tracks:
        print(f"\n=== Tracks ({len(result.tracks)}) ===")
        print(f"{'Name':<32} {'Points':>8} {'Color':<8} {'Start'}")
        print("-" * 77)
        for track in result.tracks:
            start = track.timestamp.isoformat() if track.timestamp else "-"
            print(f"{track.name[:32]:<32} {len(track.points):>8} {track.color or '-':<8} {start}")

    if result.routes:
        print(f"\n=== Routes ({len(result.routes)}) ===")
        for route in result.routes:
            names = " -> ".join(wp.name for wp in route.waypoints)
            print(f"{route.name}: {names}")

    if result.depth_readings:
        depths = [d.depth for d in result.depth_readings]
        print(f"\n=== Depth ({len(depths)} readings) ===")
        print(f"Min {min(depths):.1f}m  Max {max(depths):.1f}m  Mean {sum(depths) / len(depths):.1f}m")

    if result.sonar_metadata:
        sonar = result.sonar_metadata
        print("\n=== Sonar ===")
        print(f"Frequency:   {sonar.frequency} kHz")
        print(f"Range:       {_fmt_opt(sonar.range, unit=' m')}")
        print(f"Gain:        {_fmt_opt(sonar.gain)}")
        print(f"Chart speed: {_fmt_opt(sonar.chart_speed)}")
        print(f"Palette:     {sonar.color_palette or '-'}")


# ---------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------

def cmd_decode(args, config: Config):
    """Decode a file."""
    data = _read_input(args.file, config)
    result = decode(data, args.name or Path(args.file).name, config.decoder)

    if args.output == "json":
        print(json.dumps(result.to_dict(), indent=2))
    else:
        _print_result(result)

    if not result.success:
        sys.exit(1)


def cmd_identify(args, config: Config):
    """Show device and format for a file without decoding it."""
    data = _read_input(args.file, config)
    info = identify(data, Path(args.file).name)

    if args.output == "json":
        print(json.dumps(info, indent=2))
        return
    print(f"Device:    {info['device']}")
    print(f"Format:    {info['format_type']}")
    print(f"Extension: {info['extension'] or '-'}")
    print(f"Size:      {info['size_formatted']}")


def cmd_formats(args, config: Config):
    """List supported extensions."""
    if args.accept:
        print(accept_string())
        return

    devices = [args.device] if args.device else list(DEVICES)
    for device in devices:
        if device not in DEVICES:
            print(f"Unknown device '{device}'. Choose from: {', '.join(DEVICES)}", file=sys.stderr)
            sys.exit(1)
        exts = ", ".join(f".{ext}" for ext in extensions_for_device(device))
        print(f"{device:<12} {exts}")

    if not args.device:
        print(f"\n{len(supported_extensions())} extensions supported.")


def cmd_config(args, config: Config):
    """Show or create configuration."""
    if args.create:
        config.save(args.path)
        print(f"Config written to {args.path or DEFAULT_CONFIG_PATH}")
    else:
        print(json.dumps(asdict(config), indent=2))


def cmd_plugins(args, config: Config):
    """List or inspect plugins."""
    from . import plugins

    plugin_manager = plugins.plugin_manager

    if args.plugins_action == "list":
        loaded = plugin_manager.list_plugins()
        disabled = set(config.plugins.disabled_plugins)

        if not loaded and not disabled:
            print("No plugins registered.")
            return

        print(f"{'Plugin':<25} {'Version':<10} {'Status':<10} {'Hooks'}")
        print("-" * 70)
        for name, info in sorted(loaded.items()):
            status = "enabled" if info.enabled else "disabled"
            hooks = ", ".join(info.hooks) if info.hooks else "-"
            print(f"{name:<25} {info.version:<10} {status:<10} {hooks}")

        for name in sorted(disabled):
            if name not in loaded:
                print(f"{name:<25} {'?':<10} {'disabled':<10} -")

    elif args.plugins_action == "info":
        info = plugin_manager.get_plugin(args.plugin_name)
        if not info:
            print(f"Plugin '{args.plugin_name}' not found.", file=sys.stderr)
            sys.exit(1)
        print(f"Name:        {info.name}")
        print(f"Version:     {info.version}")
        print(f"Description: {info.description.strip()}")
        print(f"Enabled:     {info.enabled}")
        print(f"Hooks:       {', '.join(info.hooks) if info.hooks else 'none'}")

    else:
        print("Usage: fishmap-parse plugins {list,info NAME}", file=sys.stderr)
        sys.exit(1)


# ---------------------------------------------------------------
# Main
# ---------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        prog="fishmap-parse",
        description="Decode Lowrance, Garmin, Humminbird and Raymarine fish-finder files",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", "-c", default=None, help="Config file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Quiet output")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # decode
    p_decode = subparsers.add_parser("decode", help="Decode a file")
    p_decode.add_argument("file", help="File to decode")
    p_decode.add_argument("--name", help="Filename hint used for detection (default: the file's name)")
    p_decode.add_argument("--output", "-o", choices=["table", "json"],
                          default="table", help="Output format")

    # identify
    p_identify = subparsers.add_parser("identify", help="Detect device and format")
    p_identify.add_argument("file", help="File to inspect")
    p_identify.add_argument("--output", "-o", choices=["table", "json"],
                            default="table", help="Output format")

    # formats
    p_formats = subparsers.add_parser("formats", help="List supported file extensions")
    p_formats.add_argument("--device", "-d", help="Only this device family")
    p_formats.add_argument("--accept", action="store_true",
                           help="Print a file-input accept string")

    # config
    p_config = subparsers.add_parser("config", help="Show/create config")
    p_config.add_argument("--create", action="store_true",
                          help="Create default config file")
    p_config.add_argument("--path", help="Config file path")

    # plugins
    p_plugins = subparsers.add_parser("plugins", help="Inspect plugins")
    p_plugins_sub = p_plugins.add_subparsers(dest="plugins_action")
    p_plugins_sub.add_parser("list", help="List all registered plugins")
    p_plugins_info = p_plugins_sub.add_parser("info", help="Show plugin details")
    p_plugins_info.add_argument("plugin_name", help="Plugin name")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    log_level = "DEBUG" if args.verbose else ("WARNING" if args.quiet else None)

    config = Config.load(args.config)
    setup_logging(log_level or config.log_level, config.log_file)

    from .plugins import initialize_plugins
    initialize_plugins(disabled_plugins=set(config.plugins.disabled_plugins))

    commands = {
        "decode": cmd_decode,
        "identify": cmd_identify,
        "formats": cmd_formats,
        "config": cmd_config,
        "plugins": cmd_plugins,
    }

    cmd_func = commands.get(args.command)
    if cmd_func:
        try:
            cmd_func(args, config)
        except KeyboardInterrupt:
            print("\nInterrupted.", file=sys.stderr)
            sys.exit(130)
        except Exception as e:
            if args.verbose:
                import traceback
                traceback.print_exc()
            else:
                print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == "__main__":
    main()
