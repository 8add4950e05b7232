"""Shared fixtures for integration tests.

Every client runs the complete middleware pipeline in-process through
httpx's ASGI transport. Each application gets its own tracker and rate
limit storage, so tests never share counters or shutdown state.
"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.api.main import create_app
from src.core.config import Settings
from src.core.resources import ResourceTracker

type ClientFactory = Callable[..., Awaitable[AsyncClient]]


@pytest.fixture
async def make_client(
    make_settings: Callable[..., Settings],
) -> AsyncGenerator[ClientFactory]:
    """Build clients for applications with custom settings.

    The factory accepts settings overrides as keyword arguments plus an
    optional ``tracker``, ``hpp_whitelist`` and ``configure`` callback that
    receives the app before the client is created.

    Yields:
        ClientFactory: Async factory returning a ready client.
    """
    clients: list[AsyncClient] = []

    async def factory(
        *,
        tracker: ResourceTracker | None = None,
        hpp_whitelist: tuple[str, ...] = (),
        configure: Callable[[FastAPI], None] | None = None,
        **overrides: Any,  # noqa: ANN401
    ) -> AsyncClient:
        app = create_app(
            make_settings(**overrides),
            tracker or ResourceTracker(),
            hpp_whitelist=hpp_whitelist,
        )
        if configure is not None:
            configure(app)
        client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.aclose()


@pytest.fixture
async def client(make_client: ClientFactory) -> AsyncClient:
    """Client for a development application with default settings."""
    return await make_client()


@pytest.fixture
async def production_client(make_client: ClientFactory) -> AsyncClient:
    """Client for a production application."""
    return await make_client(environment="production")
