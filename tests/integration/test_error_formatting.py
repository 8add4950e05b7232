"""Integration tests for the error envelope, logging and response hardening."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from src.core.constants import PATH_REDACTED, UNEXPECTED_ERROR_MESSAGE
from src.core.exceptions import InternalError

type ClientFactory = Callable[..., Awaitable[AsyncClient]]

SECRET_MESSAGE = "failed reading /etc/app/secret.conf"


def add_failing_routes(app: FastAPI) -> None:
    """Register routes that fail in different ways."""

    @app.get("/boom")
    async def boom() -> None:
        raise RuntimeError(SECRET_MESSAGE)

    @app.get("/internal")
    async def internal() -> None:
        msg = "database at 10.0.0.5 refused the connection"
        raise InternalError(msg)


def failure_record(records: list[dict[str, Any]], status_code: int) -> dict[str, Any]:
    """Return the formatter's log record for a failed request."""
    return next(
        record
        for record in records
        if record["message"] == f"Request failed with status {status_code}"
    )


@pytest.mark.integration
class TestUnhandledErrors:
    """Test faults raised by route code."""

    async def test_development_detail(self, make_client: ClientFactory) -> None:
        """Test development responses expose the real error."""
        client = await make_client(configure=add_failing_routes)

        response = await client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["success"] is False
        assert body["error"]["message"] == SECRET_MESSAGE
        assert body["error"]["name"] == "RuntimeError"
        assert "RuntimeError" in body["error"]["stack"]

    async def test_production_hides_detail(self, make_client: ClientFactory) -> None:
        """Test production responses carry only the generic message."""
        client = await make_client(environment="production", configure=add_failing_routes)

        response = await client.get("/boom")

        assert response.status_code == 500
        error = response.json()["error"]
        assert set(error) == {"message", "statusCode", "referenceId"}
        assert error["message"] == UNEXPECTED_ERROR_MESSAGE
        assert "secret.conf" not in response.text

    async def test_internal_error_production(self, make_client: ClientFactory) -> None:
        """Test internal failures raised as RampartError are also hidden."""
        client = await make_client(environment="production", configure=add_failing_routes)

        response = await client.get("/internal")

        assert response.status_code == 500
        assert response.json()["error"]["message"] == UNEXPECTED_ERROR_MESSAGE
        assert "10.0.0.5" not in response.text

    async def test_failures_are_hardened(self, make_client: ClientFactory) -> None:
        """Test error responses pass back through the outer stages."""
        client = await make_client(configure=add_failing_routes)

        response = await client.get("/boom", headers={"Origin": "http://localhost:3000"})

        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["access-control-allow-origin"] == "http://localhost:3000"
        assert "ratelimit-limit" in response.headers
        assert response.headers["content-type"] == "application/json"


@pytest.mark.integration
class TestFailureLogging:
    """Test the log record written for every failure."""

    async def test_reference_id_matches_log(
        self, make_client: ClientFactory, log_records: list[dict[str, Any]]
    ) -> None:
        """Test the client's reference id identifies the log record."""
        client = await make_client(configure=add_failing_routes)

        response = await client.get("/boom")

        record = failure_record(log_records, 500)
        assert record["extra"]["reference_id"] == response.json()["error"]["referenceId"]
        assert record["level"].name == "ERROR"
        assert record["extra"]["error_message"] == SECRET_MESSAGE
        assert "stack" in record["extra"]

    async def test_production_log_is_scrubbed(
        self, make_client: ClientFactory, log_records: list[dict[str, Any]]
    ) -> None:
        """Test production logs drop paths and stacks."""
        client = await make_client(environment="production", configure=add_failing_routes)

        await client.get("/boom")

        record = failure_record(log_records, 500)
        assert record["extra"]["error_message"] == f"failed reading {PATH_REDACTED}"
        assert "stack" not in record["extra"]

    async def test_client_errors_log_as_warning(
        self, client: AsyncClient, log_records: list[dict[str, Any]]
    ) -> None:
        """Test 4xx failures are warnings."""
        await client.get("/api/resources/-5")

        assert failure_record(log_records, 400)["level"].name == "WARNING"


@pytest.mark.integration
class TestRoutingErrors:
    """Test unmatched routes and methods."""

    async def test_not_found(self, client: AsyncClient) -> None:
        """Test unknown routes get a 404 envelope naming the route."""
        response = await client.get("/nope")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["message"] == "Route GET /nope not found"
        assert error["path"] == "/nope"
        assert error["method"] == "GET"
        assert error["statusCode"] == 404
        assert error["referenceId"]
        assert response.headers["x-content-type-options"] == "nosniff"

    async def test_method_not_allowed(self, production_client: AsyncClient) -> None:
        """Test a wrong method is a 405 envelope."""
        response = await production_client.delete("/api/docs")

        assert response.status_code == 405
        assert response.json()["error"]["message"] == "Method Not Allowed"


@pytest.mark.integration
class TestSecurityHeaders:
    """Test response hardening."""

    async def test_development_headers(self, client: AsyncClient) -> None:
        """Test the baseline header set."""
        response = await client.get("/")

        assert response.headers["x-frame-options"] == "DENY"
        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["referrer-policy"] == "no-referrer"
        assert "'unsafe-inline'" in response.headers["content-security-policy"]
        assert "preload" not in response.headers["strict-transport-security"]
        assert "cross-origin-embedder-policy" not in response.headers
        assert "server" not in response.headers
        assert "x-powered-by" not in response.headers

    async def test_production_headers(self, production_client: AsyncClient) -> None:
        """Test production adds the strict directives."""
        response = await production_client.get("/")

        assert response.headers["cross-origin-embedder-policy"] == "require-corp"
        assert response.headers["strict-transport-security"].endswith("preload")
        assert "upgrade-insecure-requests" in (
            response.headers["content-security-policy"]
        )
