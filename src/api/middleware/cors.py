"""Whitelist-based CORS enforcement.

Unlike Starlette's ``CORSMiddleware``, which only omits the CORS headers
for an unknown origin, this stage rejects such requests outright with a
403 failure before any route code runs.
"""

from collections.abc import Iterable

from fastapi import Request, Response, status
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.constants import (
    CORS_ALLOWED_HEADERS,
    CORS_ALLOWED_METHODS,
    CORS_EXPOSED_HEADERS,
)
from src.api.middleware.error_handler import render_failure
from src.core.constants import DEFAULT_CORS_MAX_AGE
from src.core.exceptions import ForbiddenOriginError


class CORSMiddleware(BaseHTTPMiddleware):
    """Allows whitelisted origins, rejects every other origin with 403.

    Requests without an ``Origin`` header (same-origin browsers, curl,
    server-to-server calls) pass through untouched.

    Args:
        app: The ASGI application to wrap.
        allowed_origins: Exact origins that may make cross-origin calls.
        allow_credentials: Send ``Access-Control-Allow-Credentials: true``.
        max_age: Seconds browsers may cache a preflight response.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        allowed_origins: Iterable[str],
        allow_credentials: bool = True,
        max_age: int = DEFAULT_CORS_MAX_AGE,
    ) -> None:
        super().__init__(app)
        self.allowed_origins = frozenset(allowed_origins)
        self.allow_credentials = allow_credentials
        self.max_age = max_age

    def _origin_headers(self, origin: str) -> dict[str, str]:
        headers = {"Access-Control-Allow-Origin": origin}
        if self.allow_credentials:
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    def _preflight_response(self, origin: str) -> Response:
        headers = self._origin_headers(origin)
        headers["Access-Control-Allow-Methods"] = ", ".join(CORS_ALLOWED_METHODS)
        headers["Access-Control-Allow-Headers"] = ", ".join(CORS_ALLOWED_HEADERS)
        headers["Access-Control-Max-Age"] = str(self.max_age)
        headers["Vary"] = "Origin"
        return Response(status_code=status.HTTP_204_NO_CONTENT, headers=headers)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Apply the origin policy to the request.

        Args:
            request: The incoming request.
            call_next: The next pipeline stage.

        Returns:
            Response: A preflight answer, a 403 failure or the decorated
                downstream response.
        """
        origin = request.headers.get("origin")
        if origin is None:
            return await call_next(request)

        if origin not in self.allowed_origins:
            logger.warning(
                "Blocked cross-origin request", origin=origin, path=request.url.path
            )
            return render_failure(request, ForbiddenOriginError(origin))

        if (
            request.method == "OPTIONS"
            and "access-control-request-method" in request.headers
        ):
            return self._preflight_response(origin)

        response = await call_next(request)
        response.headers.update(self._origin_headers(origin))
        response.headers["Access-Control-Expose-Headers"] = ", ".join(
            CORS_EXPOSED_HEADERS
        )
        response.headers.add_vary_header("Origin")
        return response
