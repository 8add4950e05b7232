"""Rejection of new work while the process drains."""

from collections.abc import Iterable

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.middleware.error_handler import render_failure
from src.core.constants import HEALTH_PATHS
from src.core.exceptions import ServiceUnavailableError
from src.core.resources import ResourceTracker


class ShutdownGuardMiddleware(BaseHTTPMiddleware):
    """Answers 503 with ``Connection: close`` once shutdown has begun.

    Health paths stay reachable so orchestrators can observe the
    ``shutting_down`` status.

    Args:
        app: The ASGI application to wrap.
        tracker: Shared state holding the shutdown flag.
        exempt_paths: Paths served even while draining.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        tracker: ResourceTracker,
        exempt_paths: Iterable[str] = HEALTH_PATHS,
    ) -> None:
        super().__init__(app)
        self.tracker = tracker
        self.exempt_paths = frozenset(exempt_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Reject the request if the process is draining."""
        if self.tracker.is_shutting_down and request.url.path not in self.exempt_paths:
            logger.warning(
                "Rejecting request during shutdown",
                method=request.method,
                path=request.url.path,
            )
            return render_failure(request, ServiceUnavailableError())
        return await call_next(request)
