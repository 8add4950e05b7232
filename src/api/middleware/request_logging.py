"""HTTP request/response logging with performance monitoring.

This module implements the outermost middleware, which logs every HTTP
transaction. Failures are logged separately by the error formatter with
their reference id; this stage only records that a request happened, how
long it took and which status it ended with.

Features:
- **Structured logging**: Request fields bound as Loguru context
- **Performance tracking**: Request duration and slow request detection
- **Client identification**: Same IP resolution as the rate limiter
- **Exclusion patterns**: Configurable path exclusion (e.g., health checks)
"""

import time
import uuid

from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.utils.request import get_client_ip
from src.core.config import LogConfig

MAX_USER_AGENT_LENGTH = 200


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses.

    Args:
        app: The ASGI application.
        log_config: Logging configuration.
        trust_proxy: Whether client IPs come from proxy headers.
    """

    def __init__(
        self, app: ASGIApp, *, log_config: LogConfig, trust_proxy: bool = False
    ) -> None:
        super().__init__(app)
        self.log_config = log_config
        self.excluded_paths = set(log_config.excluded_paths)
        self.trust_proxy = trust_proxy

    def _get_user_agent(self, request: Request) -> str:
        ua = request.headers.get("user-agent", "")
        # Truncate extremely long user agents to prevent log pollution
        return ua[:MAX_USER_AGENT_LENGTH] if ua else "unknown"

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: The response from the application.

        Raises:
            Exception: Any exception raised by the application is re-raised
                after logging.
        """
        if request.url.path in self.excluded_paths:
            return await call_next(request)

        request_id = str(uuid.uuid4())

        with logger.contextualize(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=get_client_ip(request, trust_proxy=self.trust_proxy),
            user_agent=self._get_user_agent(request),
        ):
            logger.info("Request started")
            start_time = time.perf_counter()

            try:
                response = await call_next(request)
            except Exception as exc:
                duration_ms = (time.perf_counter() - start_time) * 1000
                logger.error(
                    "Request failed",
                    duration_ms=round(duration_ms, 2),
                    error_type=type(exc).__name__,
                )
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Request completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            if duration_ms > self.log_config.slow_request_threshold_ms:
                logger.warning(
                    "Slow request detected",
                    duration_ms=round(duration_ms, 2),
                    threshold_ms=self.log_config.slow_request_threshold_ms,
                )

            response.headers["X-Request-ID"] = request_id
            return response
