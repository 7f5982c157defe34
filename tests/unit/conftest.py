"""Shared fixtures for unit tests."""

import os
from collections.abc import Generator

import pytest

from backbone.core.config import get_settings
from backbone.core.context import RequestContext

APP_ENV_PREFIXES = (
    "APP_",
    "API_",
    "PORT",
    "ENVIRONMENT",
    "DEBUG",
    "LOG_CONFIG__",
    "SERVER_CONFIG__",
    "CORS_CONFIG__",
    "RATE_LIMIT_CONFIG__",
    "OBSERVABILITY_CONFIG__",
)


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_env(
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[pytest.MonkeyPatch]:
    """Remove application settings from the environment for the test.

    JWT_SECRET is kept so that Settings() can be constructed.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Yields:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for key in list(os.environ):
        if key.startswith(APP_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)

    yield monkeypatch


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Reset the request context around each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()
