"""Helpers for reading per-request state from a Starlette request."""

from starlette.requests import Request

from src.core.config import Settings, get_settings
from src.core.context import RequestContext


def get_app_settings(request: Request) -> Settings:
    """Return the settings the application was built with.

    Falls back to the cached global settings for requests served by an
    application that did not store its own.
    """
    settings = getattr(request.app.state, "settings", None)
    return settings if settings is not None else get_settings()


def get_request_context(request: Request) -> RequestContext:
    """Return the context record for this request, creating it on first use.

    The record lives in ``request.state``, which is backed by the ASGI scope,
    so every middleware and the endpoint see the same instance.

    Args:
        request: The incoming request.

    Returns:
        RequestContext: The context for this request.
    """
    context = getattr(request.state, "context", None)
    if context is None:
        context = RequestContext(
            method=request.method,
            path=request.url.path,
            headers={key.lower(): value for key, value in request.headers.items()},
            query={
                key: values if len(values) > 1 else values[0]
                for key in request.query_params
                if (values := request.query_params.getlist(key))
            },
        )
        request.state.context = context
    return context


def get_client_ip(request: Request, *, trust_proxy: bool) -> str:
    """Extract the client address used as the rate-limit key.

    Proxy headers are only honoured when ``trust_proxy`` is set, otherwise a
    client could pick its own key by sending ``X-Forwarded-For``.

    Args:
        request: The incoming request.
        trust_proxy: Whether to trust ``X-Forwarded-For`` and ``X-Real-IP``.

    Returns:
        str: The client IP address.
    """
    if trust_proxy:
        # Try X-Forwarded-For first (standard proxy header)
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # Take the first IP (original client)
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host
    return "unknown"
