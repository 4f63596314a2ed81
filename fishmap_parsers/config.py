"""
Configuration management for fishmap-parsers.
"""

import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".config" / "fishmap-parsers" / "config.json"


@dataclass
class DecoderConfig:
    """Settings consulted by the vendor decoders."""
    # Bytes skipped past a record that failed to decode. 64 clears a damaged
    # record in every known layout; it does not guarantee realignment.
    corrupt_skip: int = 64
    # Upload layer limit (500MB), enforced by the CLI before decoding
    max_file_size: int = 500 * 1024 * 1024
    # Content hash for FileMetadata: "blake3" or "sha256"
    hash_algorithm: str = "blake3"
    compute_hash: bool = True


@dataclass
class PluginConfig:
    """Plugin system settings."""
    disabled_plugins: list = field(default_factory=list)


@dataclass
class Config:
    """Top-level configuration."""
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    plugins: PluginConfig = field(default_factory=PluginConfig)
    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def save(self, path: Optional[Path] = None):
        """Save configuration to JSON file."""
        path = Path(path or DEFAULT_CONFIG_PATH)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(asdict(self), f, indent=2)
        logger.info(f"Configuration saved to {path}")

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load configuration from JSON file, or return defaults."""
        path = Path(path or DEFAULT_CONFIG_PATH)
        if not path.exists():
            logger.info(f"No config at {path}, using defaults")
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()
        if "decoder" in data:
            config.decoder = DecoderConfig(**data["decoder"])
        if "plugins" in data:
            config.plugins = PluginConfig(**data["plugins"])
        if "log_level" in data:
            config.log_level = data["log_level"]
        if "log_file" in data:
            config.log_file = data["log_file"]

        return config
