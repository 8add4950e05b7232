"""Tracking of live connections and timers for graceful shutdown.

The tracker is the only state the request pipeline shares with the
shutdown controller. The listener adds and removes connections as they
open and close, stages read the shutdown flag, and only the controller
flips it.

All mutations are synchronous, so under the single-threaded event loop no
mutation can interleave with another at a suspension point.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from loguru import logger

if TYPE_CHECKING:
    from src.core.types import CleanupHook


class Closable(Protocol):
    """A live connection handle (an asyncio transport in practice)."""

    def close(self) -> None:
        """Close gracefully."""
        ...

    def abort(self) -> None:
        """Close immediately, discarding buffered data."""
        ...


class Cancellable(Protocol):
    """A pending timer (``asyncio.TimerHandle`` or ``asyncio.Task``)."""

    def cancel(self) -> object:
        """Cancel the pending callback."""
        ...


async def _default_cleanup() -> None:
    logger.info("All resources cleaned up")


class ResourceTracker:
    """Owns the live connections, pending timers and the shutdown flag.

    Args:
        cleanup_hook: Awaited as the last step of the drain sequence.
    """

    def __init__(self, cleanup_hook: CleanupHook | None = None) -> None:
        self.connections: set[Closable] = set()
        self.timers: set[Cancellable] = set()
        self.cleanup_hook: CleanupHook = cleanup_hook or _default_cleanup
        self._shutting_down = False

    @property
    def is_shutting_down(self) -> bool:
        """Whether the drain sequence has started. Never reverts."""
        return self._shutting_down

    def mark_shutting_down(self) -> bool:
        """Flip the shutdown flag.

        Returns:
            bool: True if this call flipped the flag, False if it was set already.
        """
        if self._shutting_down:
            return False
        self._shutting_down = True
        return True

    def add_connection(self, connection: Closable) -> Closable:
        """Start tracking a connection."""
        self.connections.add(connection)
        return connection

    def remove_connection(self, connection: Closable) -> None:
        """Stop tracking a connection. Unknown connections are ignored."""
        self.connections.discard(connection)

    def close_all_connections(self) -> int:
        """Forcibly close every tracked connection.

        Returns:
            int: How many connections were closed.
        """
        connections = list(self.connections)
        self.connections.clear()
        for connection in connections:
            connection.abort()
        return len(connections)

    def add_timer[T: Cancellable](self, timer: T) -> T:
        """Start tracking a timer and return it unchanged."""
        self.timers.add(timer)
        return timer

    def remove_timer(self, timer: Cancellable) -> None:
        """Stop tracking a timer. Unknown timers are ignored."""
        self.timers.discard(timer)

    def clear_all_timers(self) -> int:
        """Cancel every tracked timer. Clearing an empty set is a no-op.

        Returns:
            int: How many timers were cancelled.
        """
        timers = list(self.timers)
        self.timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    def set_cleanup_hook(self, hook: CleanupHook) -> None:
        """Replace the cleanup hook."""
        self.cleanup_hook = hook

    async def cleanup(self) -> None:
        """Await the cleanup hook."""
        await self.cleanup_hook()
