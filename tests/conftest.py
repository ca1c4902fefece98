"""Pytest fixtures for feed-mix tests."""

import pytest

from src.config.settings import get_settings


@pytest.fixture(autouse=True)
def _clear_settings_cache(monkeypatch):
    """Settings are cached process-wide; isolate env overrides per test."""
    monkeypatch.delenv("USE_MOCK_SOURCES", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
