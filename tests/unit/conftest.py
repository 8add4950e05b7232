"""Shared fixtures for unit tests."""

from collections.abc import Callable
from typing import Any

import pytest
from pytest_mock import MockerFixture, MockType
from starlette.requests import Request

from src.core.resources import ResourceTracker


@pytest.fixture
def tracker() -> ResourceTracker:
    """Provide a fresh resource tracker."""
    return ResourceTracker()


@pytest.fixture
def fake_connection(mocker: MockerFixture) -> Callable[[], MockType]:
    """Factory for connection doubles exposing ``close`` and ``abort``."""

    def factory() -> MockType:
        return mocker.Mock(spec=["close", "abort"])

    return factory


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Build a real Starlette request from a minimal ASGI scope.

    Returns:
        Callable[..., Request]: Factory accepting method, path, headers,
            query string and client address.
    """

    def factory(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | None = None,
        query_string: str = "",
        client: tuple[str, int] | None = ("127.0.0.1", 50000),
    ) -> Request:
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "raw_path": path.encode(),
            "query_string": query_string.encode(),
            "headers": [
                (key.lower().encode(), value.encode())
                for key, value in (headers or {}).items()
            ],
            "client": client,
            "server": ("test", 80),
            "scheme": "http",
        }
        return Request(scope)

    return factory
