"""Per-client fixed-window rate limiting.

Counting is delegated to the ``limits`` package (the engine behind
slowapi): a ``FixedWindowRateLimiter`` over in-process ``MemoryStorage``.
Each client's window opens with its first counted request. ``hit``
increments and decides in one synchronous call, so no other request can
interleave between the increment and the decision.

Counters are per process. Several workers or instances each keep their
own budget.
"""

import math
import time
from collections.abc import Callable, Iterable

from fastapi import Request, Response
from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.constants import (
    RATE_LIMIT_LIMIT_HEADER,
    RATE_LIMIT_REMAINING_HEADER,
    RATE_LIMIT_RESET_HEADER,
    RETRY_AFTER_HEADER,
)
from src.api.middleware.error_handler import render_failure
from src.api.utils.request import get_client_ip
from src.core.exceptions import RateLimitExceededError

type KeyFunc = Callable[[Request], str]

_NAMESPACE = "rampart"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Counts requests per client and rejects those over budget with 429.

    Every counted response carries ``RateLimit-Limit``,
    ``RateLimit-Remaining`` and ``RateLimit-Reset``. Exempt paths are not
    counted and get no headers.

    Args:
        app: The ASGI application to wrap.
        max_requests: Requests allowed per client per window.
        window_seconds: Window length in seconds.
        exempt_paths: Paths that bypass counting entirely.
        trust_proxy: Whether the default key function trusts proxy headers.
        key_func: Overrides how a request maps to a client key.
        storage: Counter storage, in-memory by default.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        max_requests: int,
        window_seconds: int,
        exempt_paths: Iterable[str] = (),
        trust_proxy: bool = False,
        key_func: KeyFunc | None = None,
        storage: Storage | None = None,
    ) -> None:
        super().__init__(app)
        self.item: RateLimitItem = RateLimitItemPerSecond(max_requests, window_seconds)
        self.limiter = FixedWindowRateLimiter(storage or MemoryStorage())
        self.exempt_paths = frozenset(exempt_paths)
        self.key_func: KeyFunc = key_func or (
            lambda request: get_client_ip(request, trust_proxy=trust_proxy)
        )

    def _headers(self, key: str) -> dict[str, str]:
        stats = self.limiter.get_window_stats(self.item, _NAMESPACE, key)
        reset_in = max(0, math.ceil(stats.reset_time - time.time()))
        return {
            RATE_LIMIT_LIMIT_HEADER: str(self.item.amount),
            RATE_LIMIT_REMAINING_HEADER: str(max(0, stats.remaining)),
            RATE_LIMIT_RESET_HEADER: str(reset_in),
        }

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Count the request and reject it when the client is over budget.

        Args:
            request: The incoming request.
            call_next: The next pipeline stage.

        Returns:
            Response: The downstream response, or a 429 failure.
        """
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        key = self.key_func(request)
        allowed = self.limiter.hit(self.item, _NAMESPACE, key)
        headers = self._headers(key)

        if not allowed:
            headers[RETRY_AFTER_HEADER] = headers[RATE_LIMIT_RESET_HEADER]
            logger.warning(
                "Rate limit exceeded",
                client_ip=key,
                path=request.url.path,
                limit=self.item.amount,
            )
            return render_failure(request, RateLimitExceededError(headers=headers))

        response = await call_next(request)
        response.headers.update(headers)
        return response
