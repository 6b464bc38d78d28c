"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from charms_explorer.observability import reset_observability_cache
from charms_explorer.settings import get_settings


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch):
    """Keep cached settings and metrics backends from leaking between tests."""

    for name in ("CHARMS_API_URL", "NEXT_PUBLIC_CHARMS_API_URL", "CHARMS_NETWORK", "CHARMS_SETTINGS_FILE"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    reset_observability_cache()
    yield
    get_settings.cache_clear()
    reset_observability_cache()
