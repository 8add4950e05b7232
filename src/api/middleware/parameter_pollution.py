"""HTTP parameter pollution guard.

A field supplied several times (``?sort=asc&sort=desc``) arrives as a
list. Validators expect scalars, so the guard keeps only the last value.
Whitelisted fields keep their list. JSON bodies are left alone because
their arrays are intentional.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.utils.request import get_request_context


def collapse_repeated(
    params: Mapping[str, Any], whitelist: frozenset[str] = frozenset()
) -> dict[str, Any]:
    """Collapse repeated parameters to their last value.

    Examples:
        >>> collapse_repeated({"sort": ["asc", "desc"], "page": "2"})
        {'sort': 'desc', 'page': '2'}
    """
    return {
        key: value[-1]
        if isinstance(value, list) and value and key not in whitelist
        else value
        for key, value in params.items()
    }


class ParameterPollutionMiddleware(BaseHTTPMiddleware):
    """Normalizes query parameters and form fields to one value each.

    Args:
        app: The ASGI application to wrap.
        whitelist: Fields allowed to stay repeated.
    """

    def __init__(self, app: ASGIApp, *, whitelist: Iterable[str] = ()) -> None:
        super().__init__(app)
        self.whitelist = frozenset(whitelist)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Collapse repeated query and form fields, then continue."""
        context = get_request_context(request)
        context.query = collapse_repeated(context.query, self.whitelist)
        if context.body_is_form and isinstance(context.body, dict):
            context.body = collapse_repeated(context.body, self.whitelist)
        return await call_next(request)
