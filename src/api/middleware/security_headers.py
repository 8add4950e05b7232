"""Security headers middleware for hardening every response."""

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.constants import FRAMEWORK_HEADERS
from src.core.constants import DEFAULT_HSTS_MAX_AGE


def build_content_security_policy(*, production: bool) -> str:
    """Build the Content-Security-Policy directive string.

    Inline scripts are only allowed outside production, and
    ``upgrade-insecure-requests`` is only sent in production.

    Args:
        production: Whether the strict production policy applies.

    Returns:
        str: The policy value.
    """
    script_src = "'self'" if production else "'self' 'unsafe-inline'"
    directives = [
        "default-src 'self'",
        f"script-src {script_src}",
        "style-src 'self' 'unsafe-inline'",
        "img-src 'self' data: https:",
        "font-src 'self'",
        "object-src 'none'",
        "frame-ancestors 'none'",
        "form-action 'self'",
        "base-uri 'self'",
    ]
    if production:
        directives.append("upgrade-insecure-requests")
    return "; ".join(directives)


def build_hsts_header(max_age: int, *, preload: bool) -> str:
    """Build the Strict-Transport-Security header value.

    Returns:
        str: The HSTS header value string.
    """
    parts = [f"max-age={max_age}", "includeSubDomains"]
    if preload:
        parts.append("preload")
    return "; ".join(parts)


def build_security_headers(
    *,
    production: bool,
    hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
    csp_report_only: bool = False,
) -> dict[str, str]:
    """Compute the fixed header set for one environment.

    Args:
        production: Whether the strict production policy applies.
        hsts_max_age: HSTS max-age in seconds.
        csp_report_only: Send the policy in report-only mode.

    Returns:
        dict[str, str]: Header names mapped to values.
    """
    csp_header = (
        "Content-Security-Policy-Report-Only"
        if csp_report_only
        else "Content-Security-Policy"
    )
    headers = {
        csp_header: build_content_security_policy(production=production),
        "Strict-Transport-Security": build_hsts_header(hsts_max_age, preload=production),
        "X-Frame-Options": "DENY",
        "X-Content-Type-Options": "nosniff",
        "Referrer-Policy": "no-referrer",
        "X-DNS-Prefetch-Control": "off",
        "Cross-Origin-Opener-Policy": "same-origin",
        "Cross-Origin-Resource-Policy": "same-origin",
        "Origin-Agent-Cluster": "?1",
        "X-Download-Options": "noopen",
        "X-Permitted-Cross-Domain-Policies": "none",
    }
    if production:
        headers["Cross-Origin-Embedder-Policy"] = "require-corp"
    return headers


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses.

    The header set is computed once at construction. Responses also lose
    any header that identifies the server implementation.

    Args:
        app: The ASGI application to wrap.
        production: Whether the strict production policy applies.
        hsts_max_age: Max age for HSTS in seconds (defaults to 1 year).
        csp_report_only: Send CSP as ``Content-Security-Policy-Report-Only``.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        production: bool = False,
        hsts_max_age: int = DEFAULT_HSTS_MAX_AGE,
        csp_report_only: bool = False,
    ) -> None:
        super().__init__(app)
        self.headers = build_security_headers(
            production=production,
            hsts_max_age=hsts_max_age,
            csp_report_only=csp_report_only,
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Add security headers to the response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            Response: The HTTP response with security headers added.
        """
        response = await call_next(request)

        response.headers.update(self.headers)
        for header in FRAMEWORK_HEADERS:
            if header in response.headers:
                del response.headers[header]

        return response
