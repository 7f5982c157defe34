"""Root conftest.py for the Backbone test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Generator
from typing import TYPE_CHECKING

import pytest
from loguru import logger

from backbone.core.config import Settings

if TYPE_CHECKING:
    from loguru import Message, Record


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture
def captured_logs() -> Generator[list["Record"]]:
    """Collect every Loguru record emitted during the test.

    Yields:
        list[Record]: Records in emission order.
    """
    records: list[Record] = []

    def sink(message: "Message") -> None:
        records.append(message.record)

    handler_id = logger.add(sink, level="DEBUG", format="{message}")
    yield records
    logger.remove(handler_id)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with test defaults, independent of the process environment.

    Returns:
        Settings: Development settings bound to an ephemeral local port.
    """
    return Settings(
        jwt_secret="test-jwt-secret",
        environment="development",
        api_host="127.0.0.1",
        api_port=0,
    )
