"""Global pytest configuration."""

import os

import pytest

from backend.daystream.config import get_settings

# Tests always run against the deterministic stub provider
os.environ.pop("OPENAI_API_KEY", None)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached settings so monkeypatched env vars take effect."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
