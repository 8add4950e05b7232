"""Graceful shutdown state machine.

The controller moves the process through ``RUNNING -> DRAINING ->
TERMINATED`` exactly once. Termination signals and process-level faults
both enter through :meth:`ShutdownController.trigger`; duplicates are
logged and ignored.

The drain sequence runs in a fixed order and races a deadline:

1. Flip the shared shutdown flag so new requests are rejected with 503
2. Stop the listener from accepting new connections
3. Abort every tracked connection
4. Cancel every tracked timer
5. Await the cleanup hook

Completing all steps reports exit code 0. An error in any step reports exit
code 1. When the deadline expires first the drain is cancelled and exit code
1 is reported at once, even if the drain ignores the cancellation.
"""

from __future__ import annotations

import asyncio
import inspect
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from loguru import logger

if TYPE_CHECKING:
    from src.core.resources import ResourceTracker
    from src.core.types import ExitHandler

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class ShutdownState(Enum):
    """Lifecycle states of the process."""

    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


class Listener(Protocol):
    """The network listener the controller stops during the drain."""

    def stop_accepting(self) -> object:
        """Stop accepting new connections. May return an awaitable."""
        ...


class ShutdownController:
    """Runs the drain sequence once and reports the resulting exit code.

    Args:
        tracker: Shared connection, timer and flag state.
        on_terminate: Receives the exit code when the sequence ends.
        timeout_seconds: Deadline for the whole drain sequence.
        listener: Listener to stop. Can be attached later.
        production: Whether fault logs must omit messages and tracebacks.
    """

    def __init__(
        self,
        tracker: ResourceTracker,
        on_terminate: ExitHandler,
        timeout_seconds: float,
        listener: Listener | None = None,
        *,
        production: bool = False,
    ) -> None:
        self.tracker = tracker
        self.on_terminate = on_terminate
        self.timeout_seconds = timeout_seconds
        self.listener = listener
        self.production = production
        self.exit_code: int | None = None
        self._state = ShutdownState.RUNNING
        self._task: asyncio.Task[int | None] | None = None

    @property
    def state(self) -> ShutdownState:
        """Current lifecycle state."""
        return self._state

    def attach_listener(self, listener: Listener) -> None:
        """Set the listener once it exists."""
        self.listener = listener

    def trigger(self, reason: str) -> asyncio.Task[int | None] | None:
        """Schedule the shutdown sequence on the running loop.

        Safe to call from signal handlers and loop callbacks. Repeated calls
        after the first are ignored.

        Args:
            reason: Signal name or fault description, used in logs.

        Returns:
            asyncio.Task | None: The scheduled task, or None if ignored.
        """
        if self._state is not ShutdownState.RUNNING or self._task is not None:
            logger.info(
                "Shutdown already in progress, ignoring {}", reason, reason=reason
            )
            return None

        self._task = asyncio.get_running_loop().create_task(self.shutdown(reason))
        return self._task

    async def shutdown(self, reason: str) -> int | None:
        """Run the drain sequence against the configured deadline.

        Args:
            reason: Signal name or fault description, used in logs.

        Returns:
            int | None: Exit code, or None when shutdown was already underway.
        """
        if self._state is not ShutdownState.RUNNING:
            logger.info(
                "Shutdown already in progress, ignoring {}", reason, reason=reason
            )
            return None

        self._state = ShutdownState.DRAINING
        logger.warning(
            "Received {}. Starting graceful shutdown", reason, reason=reason
        )

        # The deadline does not wait for the drain to acknowledge cancellation
        drain = asyncio.ensure_future(self._drain())
        done, _ = await asyncio.wait({drain}, timeout=self.timeout_seconds)

        if not done:
            drain.cancel()
            logger.error(
                "Forced shutdown after {}s timeout",
                self.timeout_seconds,
                timeout_seconds=self.timeout_seconds,
            )
            code = EXIT_FAILURE
        elif (error := drain.exception()) is not None:
            logger.error(
                "Error during graceful shutdown: {}",
                type(error).__name__,
                error_type=type(error).__name__,
                error_message=str(error),
            )
            code = EXIT_FAILURE
        else:
            logger.info("Graceful shutdown completed successfully")
            code = EXIT_SUCCESS

        self._state = ShutdownState.TERMINATED
        self.exit_code = code
        self.on_terminate(code)
        return code

    async def _drain(self) -> None:
        self.tracker.mark_shutting_down()
        logger.info("Step 1: New requests are now rejected")

        logger.info("Step 2: Stopping listener from accepting new connections")
        if self.listener is not None:
            result = self.listener.stop_accepting()
            if inspect.isawaitable(result):
                await result

        closed = self.tracker.close_all_connections()
        logger.info("Step 3: Closed {} active connections", closed, connections=closed)

        cleared = self.tracker.clear_all_timers()
        logger.info("Step 4: Cleared {} active timers", cleared, timers=cleared)

        logger.info("Step 5: Running cleanup hook")
        await self.tracker.cleanup()

    def report_uncaught_exception(self, exc: BaseException) -> None:
        """Log a fault that escaped every handler and start shutting down.

        The process state may be inconsistent, so this always triggers.
        """
        self._log_fault("Uncaught exception", exc)
        self.trigger("UNCAUGHT_EXCEPTION")

    def report_unhandled_rejection(self, exc: BaseException) -> None:
        """Log an async error nobody awaited and start shutting down."""
        self._log_fault("Unhandled async error", exc)
        self.trigger("UNHANDLED_REJECTION")

    def _log_fault(self, label: str, exc: BaseException) -> None:
        if self.production:
            logger.error(
                "{} occurred", label, error_type=type(exc).__name__, fault=label
            )
        else:
            logger.opt(exception=exc).error(
                "{}: {}", label, exc, error_type=type(exc).__name__, fault=label
            )
