"""Shared test fixtures for fishmap-parsers tests."""

import pytest

from fishmap_parsers.config import DecoderConfig
from fishmap_parsers.plugins import reset_plugins


@pytest.fixture(autouse=True)
def clean_plugins():
    """Every test starts with an uninitialized plugin system."""
    reset_plugins()
    yield
    reset_plugins()


@pytest.fixture
def decoder_config():
    """Default decoder settings."""
    return DecoderConfig()


@pytest.fixture
def unhashed_config():
    """Decoder settings with content hashing switched off."""
    return DecoderConfig(compute_hash=False)
