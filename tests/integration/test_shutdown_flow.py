"""Integration tests for draining and the shutdown sequence."""

from collections.abc import Awaitable, Callable
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from pytest_mock import MockerFixture

from src.core.resources import ResourceTracker
from src.core.shutdown import EXIT_SUCCESS, ShutdownController, ShutdownState

type ClientFactory = Callable[..., Awaitable[AsyncClient]]


class StubListener:
    """Listener recording that it stopped accepting."""

    def __init__(self) -> None:
        self.stopped = False

    def stop_accepting(self) -> None:
        self.stopped = True


@pytest.mark.integration
class TestRequestsDuringDrain:
    """Test the shutdown guard."""

    async def test_new_requests_get_503(self, make_client: ClientFactory) -> None:
        """Test a previously successful endpoint answers 503 once draining."""
        tracker = ResourceTracker()
        calls: list[str] = []

        def add_probe(app: FastAPI) -> None:
            @app.get("/probe")
            async def probe() -> dict[str, bool]:
                calls.append("probe")
                return {"ok": True}

        client = await make_client(tracker=tracker, configure=add_probe)
        assert (await client.get("/probe")).status_code == 200

        tracker.mark_shutting_down()
        response = await client.get("/probe")

        assert response.status_code == 503
        assert response.headers["connection"] == "close"
        assert response.json()["error"]["message"] == "Server is shutting down"
        assert calls == ["probe"]

    async def test_writes_rejected(self, make_client: ClientFactory) -> None:
        """Test request bodies are not even parsed while draining."""
        tracker = ResourceTracker()
        client = await make_client(tracker=tracker)
        tracker.mark_shutting_down()

        response = await client.post(
            "/api/echo", content=b"{bad", headers={"content-type": "application/json"}
        )

        assert response.status_code == 503

    @pytest.mark.parametrize("path", ["/health", "/api/health"])
    async def test_health_reports_shutting_down(
        self, make_client: ClientFactory, path: str
    ) -> None:
        """Test health stays reachable and reports the drain."""
        tracker = ResourceTracker()
        client = await make_client(tracker=tracker)
        tracker.mark_shutting_down()

        response = await client.get(path)

        assert response.status_code == 503
        assert response.json()["status"] == "shutting_down"

    async def test_rate_limit_checked_before_drain(
        self, make_client: ClientFactory
    ) -> None:
        """Test an exhausted client gets 429 rather than 503."""
        tracker = ResourceTracker()
        client = await make_client(tracker=tracker, rate_limit_max=1)
        await client.get("/")
        tracker.mark_shutting_down()

        response = await client.get("/")

        assert response.status_code == 429

    async def test_controller_drain_rejects_requests(
        self, make_client: ClientFactory
    ) -> None:
        """Test a completed drain leaves the application rejecting work."""
        tracker = ResourceTracker()
        client = await make_client(tracker=tracker)
        exit_codes: list[int] = []
        controller = ShutdownController(
            tracker, on_terminate=exit_codes.append, timeout_seconds=1
        )

        await controller.shutdown("SIGTERM")
        response = await client.get("/api/docs")

        assert exit_codes == [EXIT_SUCCESS]
        assert response.status_code == 503


@pytest.mark.integration
class TestShutdownSequence:
    """Test the ordered drain as an operator would observe it."""

    async def test_sigterm_with_one_connection(
        self, mocker: MockerFixture, log_records: list[dict[str, Any]]
    ) -> None:
        """Test the logged steps for one open socket and no timers."""
        tracker = ResourceTracker()
        connection = mocker.Mock(spec=["close", "abort"])
        tracker.add_connection(connection)
        listener = StubListener()
        exit_codes: list[int] = []
        controller = ShutdownController(
            tracker,
            on_terminate=exit_codes.append,
            timeout_seconds=5,
            listener=listener,
        )

        await controller.shutdown("SIGTERM")

        messages = [record["message"] for record in log_records]
        expected = [
            "Received SIGTERM. Starting graceful shutdown",
            "Step 1: New requests are now rejected",
            "Step 2: Stopping listener from accepting new connections",
            "Step 3: Closed 1 active connections",
            "Step 4: Cleared 0 active timers",
            "Step 5: Running cleanup hook",
            "All resources cleaned up",
            "Graceful shutdown completed successfully",
        ]
        positions = [messages.index(message) for message in expected]
        assert positions == sorted(positions)
        assert listener.stopped is True
        connection.abort.assert_called_once_with()
        assert exit_codes == [EXIT_SUCCESS]
        assert controller.state is ShutdownState.TERMINATED

    async def test_repeated_signals_run_one_cleanup(self, mocker: MockerFixture) -> None:
        """Test N signals produce exactly one cleanup."""
        hook = mocker.AsyncMock()
        tracker = ResourceTracker(cleanup_hook=hook)
        exit_codes: list[int] = []
        controller = ShutdownController(
            tracker, on_terminate=exit_codes.append, timeout_seconds=5
        )

        tasks = [controller.trigger(name) for name in ("SIGTERM", "SIGINT", "SIGTERM")]
        started = [task for task in tasks if task is not None]
        for task in started:
            await task

        assert len(started) == 1
        hook.assert_awaited_once_with()
        assert exit_codes == [EXIT_SUCCESS]
