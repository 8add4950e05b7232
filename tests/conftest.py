"""Root conftest.py for the Rampart test suite.

This file contains project-wide fixtures and pytest configuration.
"""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest
from loguru import logger

from src.core.config import Settings, get_settings
from src.core.logging import setup_logging

# Environment variables read by Settings
ENV_PREFIXES = (
    "APP_",
    "API_",
    "PORT",
    "ENVIRONMENT",
    "DEBUG",
    "LOG_CONFIG__",
    "RATE_LIMIT_",
    "TRUST_PROXY",
    "CORS_",
    "BODY_LIMIT",
    "HSTS_",
    "CSP_",
    "SHUTDOWN_",
    "TLS_",
    "USER_ID_FORMAT",
)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that run the full request pipeline"
    )


@pytest.fixture(scope="session", autouse=True)
def configure_logging() -> None:
    """Configure Loguru once so later ``create_app`` calls keep test sinks."""
    setup_logging(Settings(_env_file=None))  # type: ignore[call-arg]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch]:
    """Remove configuration variables and clear the settings cache.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for key in list(os.environ):
        if key.upper().startswith(ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)

    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Build Settings from keyword overrides, ignoring any .env file.

    Returns:
        Callable[..., Settings]: Factory accepting field overrides.
    """

    def factory(**overrides: Any) -> Settings:  # noqa: ANN401
        return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]

    return factory


@pytest.fixture
def log_records() -> Generator[list[dict[str, Any]]]:
    """Collect Loguru records emitted during the test.

    Yields:
        list[dict[str, Any]]: Records in emission order.
    """
    records: list[dict[str, Any]] = []
    handler_id = logger.add(
        lambda message: records.append(message.record), level="DEBUG", format="{message}"
    )
    yield records
    logger.remove(handler_id)
