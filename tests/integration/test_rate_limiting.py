"""Integration tests for per-client fixed-window rate limiting."""

import asyncio
from collections.abc import Awaitable, Callable

import pytest
from httpx import AsyncClient

type ClientFactory = Callable[..., Awaitable[AsyncClient]]


@pytest.mark.integration
class TestRateLimiting:
    """Test request counting, rejection and window expiry."""

    async def test_budget_then_429(self, make_client: ClientFactory) -> None:
        """Test the (N+1)-th request in a window is rejected."""
        client = await make_client(rate_limit_max=3, rate_limit_window_ms=60000)

        remaining = []
        for _ in range(3):
            response = await client.get("/api/docs")
            assert response.status_code == 200
            assert response.headers["ratelimit-limit"] == "3"
            remaining.append(response.headers["ratelimit-remaining"])

        rejected = await client.get("/api/docs")

        assert remaining == ["2", "1", "0"]
        assert rejected.status_code == 429
        assert rejected.headers["ratelimit-remaining"] == "0"
        assert int(rejected.headers["retry-after"]) > 0
        error = rejected.json()["error"]
        assert error["statusCode"] == 429
        assert error["message"] == "Too many requests, please try again later."
        assert error["referenceId"]

    async def test_rejection_is_hardened(self, make_client: ClientFactory) -> None:
        """Test throttled responses still carry the security headers."""
        client = await make_client(rate_limit_max=1)

        await client.get("/")
        rejected = await client.get("/")

        assert rejected.status_code == 429
        assert rejected.headers["x-content-type-options"] == "nosniff"
        assert "content-security-policy" in rejected.headers

    async def test_new_window_succeeds(self, make_client: ClientFactory) -> None:
        """Test the first request of a new window succeeds again."""
        client = await make_client(rate_limit_max=1, rate_limit_window_ms=1000)

        assert (await client.get("/")).status_code == 200
        assert (await client.get("/")).status_code == 429

        await asyncio.sleep(1.2)

        assert (await client.get("/")).status_code == 200

    async def test_health_is_exempt(self, make_client: ClientFactory) -> None:
        """Test /health answers while other routes are throttled."""
        client = await make_client(rate_limit_max=100)

        statuses: list[int] = []
        for _ in range(150):
            assert (await client.get("/health")).status_code == 200
            statuses.append((await client.get("/api/docs")).status_code)

        assert statuses.count(200) == 100
        assert statuses.count(429) == 50

    async def test_clients_counted_separately(self, make_client: ClientFactory) -> None:
        """Test each forwarded client address has its own budget."""
        client = await make_client(
            rate_limit_max=1, environment="production", trust_proxy=True
        )

        first = await client.get("/", headers={"X-Forwarded-For": "203.0.113.1"})
        second = await client.get("/", headers={"X-Forwarded-For": "203.0.113.2"})
        repeat = await client.get("/", headers={"X-Forwarded-For": "203.0.113.1"})

        assert first.status_code == 200
        assert second.status_code == 200
        assert repeat.status_code == 429

    async def test_forwarded_header_ignored_without_trust(
        self, make_client: ClientFactory
    ) -> None:
        """Test clients cannot pick a fresh key unless the proxy is trusted."""
        client = await make_client(rate_limit_max=1)

        await client.get("/", headers={"X-Forwarded-For": "203.0.113.1"})
        response = await client.get("/", headers={"X-Forwarded-For": "203.0.113.2"})

        assert response.status_code == 429
