"""Centralized error formatting for every failure the pipeline produces.

All failure paths end in :func:`render_failure`:

- middleware stages return it directly when they short-circuit
- exceptions raised by dependencies and routes reach it through the
  exception handlers registered by :func:`register_exception_handlers`
- anything else a route raises is caught by :class:`ErrorBoundaryMiddleware`,
  the innermost middleware, so outer stages still decorate the response

The formatter generates a reference id, classifies the status code, writes
one log record and renders the :class:`~src.api.schemas.errors.ErrorEnvelope`
with the amount of detail the environment allows.
"""

import json
import traceback
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from pydantic import ValidationError
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.api.schemas.errors import ErrorDetail, ErrorEnvelope, FieldErrorDetail
from src.api.utils.request import get_app_settings
from src.api.utils.responses import ORJSONResponse
from src.api.validation.validator import violations_from_errors
from src.core.constants import BAD_REQUEST_MESSAGE, UNEXPECTED_ERROR_MESSAGE
from src.core.context import generate_reference_id
from src.core.exceptions import (
    PUBLIC_MESSAGES,
    FieldViolation,
    RampartError,
    ValidationFailedError,
)
from src.core.redaction import describe_violations, scrub_message


def resolve_status_code(exc: BaseException) -> int:
    """Classify the HTTP status of a failure.

    An explicit status on the exception wins. Otherwise validation-shaped
    failures and JSON syntax errors are 400 and everything else is 500.

    Args:
        exc: The failure.

    Returns:
        int: The HTTP status code.
    """
    for attribute in ("status_code", "status"):
        explicit = getattr(exc, attribute, None)
        if isinstance(explicit, int) and not isinstance(explicit, bool):
            return explicit

    if isinstance(exc, RequestValidationError | ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, json.JSONDecodeError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def extract_violations(exc: BaseException) -> list[FieldViolation]:
    """Return the per-field violations carried by a validation failure."""
    if isinstance(exc, ValidationFailedError):
        return exc.violations
    if isinstance(exc, RequestValidationError):
        # FastAPI prefixes locations with the request part (body, query, path)
        return violations_from_errors(exc.errors(), skip=1)
    if isinstance(exc, ValidationError):
        return violations_from_errors(exc.errors())
    return []


def _full_message(exc: BaseException) -> str:
    if isinstance(exc, RampartError):
        return exc.message
    if isinstance(exc, HTTPException):
        return str(exc.detail)
    return str(exc) or type(exc).__name__


def _public_message(exc: BaseException, status_code: int) -> str:
    if status_code == status.HTTP_400_BAD_REQUEST:
        return BAD_REQUEST_MESSAGE
    if isinstance(exc, RampartError) and exc.kind in PUBLIC_MESSAGES:
        return PUBLIC_MESSAGES[exc.kind]
    if isinstance(exc, HTTPException) and status_code < status.HTTP_500_INTERNAL_SERVER_ERROR:
        return HTTPStatus(status_code).phrase
    return UNEXPECTED_ERROR_MESSAGE


def _format_stack(exc: BaseException) -> str:
    return "".join(traceback.format_exception(exc))


def _log_failure(
    request: Request,
    exc: BaseException,
    reference_id: str,
    status_code: int,
    *,
    production: bool,
) -> None:
    context = {
        "reference_id": reference_id,
        "status_code": status_code,
        "method": request.method,
        "path": request.url.path,
        "error_type": type(exc).__name__,
    }
    if production:
        context["error_message"] = scrub_message(_full_message(exc))
    else:
        context["error_message"] = _full_message(exc)
        context["stack"] = _format_stack(exc)

    if isinstance(exc, RampartError):
        level = "WARNING" if exc.is_expected else "ERROR"
    elif status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        level = "ERROR"
    else:
        level = "WARNING"
    logger.bind(**context).log(level, "Request failed with status {}", status_code)


def build_envelope(
    exc: BaseException,
    status_code: int,
    reference_id: str,
    *,
    production: bool,
) -> ErrorEnvelope:
    """Build the client-facing envelope for a failure.

    Args:
        exc: The failure.
        status_code: Status resolved by :func:`resolve_status_code`.
        reference_id: Identifier shared with the log record.
        production: Whether to hide diagnostic detail.

    Returns:
        ErrorEnvelope: The envelope to render.
    """
    violations = extract_violations(exc)
    validation_errors = (
        [
            FieldErrorDetail.model_validate(entry)
            for entry in describe_violations(violations, redact=production)
        ]
        if violations
        else None
    )

    if production:
        detail = ErrorDetail(
            message=_public_message(exc, status_code),
            status_code=status_code,
            reference_id=reference_id,
            validation_errors=validation_errors,
        )
    else:
        detail = ErrorDetail(
            message=_full_message(exc),
            status_code=status_code,
            reference_id=reference_id,
            name=type(exc).__name__,
            stack=_format_stack(exc),
            validation_errors=validation_errors,
        )
    return ErrorEnvelope(error=detail)


def render_failure(request: Request, exc: BaseException) -> Response:
    """Format any failure into a JSON error response.

    Args:
        request: The request that failed.
        exc: The failure.

    Returns:
        Response: ORJSONResponse carrying the error envelope.
    """
    settings = get_app_settings(request)
    reference_id = generate_reference_id()
    status_code = resolve_status_code(exc)

    _log_failure(
        request, exc, reference_id, status_code, production=settings.is_production
    )
    envelope = build_envelope(
        exc, status_code, reference_id, production=settings.is_production
    )

    headers = dict(getattr(exc, "headers", None) or {})
    return ORJSONResponse(
        status_code=status_code, content=envelope.render(), headers=headers
    )


def not_found_response(request: Request) -> Response:
    """Render the fallback response for a route that does not exist."""
    method, path = request.method, request.url.path
    logger.info("Route not found", method=method, path=path, status_code=404)

    envelope = ErrorEnvelope(
        error=ErrorDetail(
            message=f"Route {method} {path} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            reference_id=generate_reference_id(),
            path=path,
            method=method,
        )
    )
    return ORJSONResponse(
        status_code=status.HTTP_404_NOT_FOUND, content=envelope.render()
    )


async def rampart_error_handler(request: Request, exc: Exception) -> Response:
    """Handle RampartError raised by dependencies and routes."""
    return render_failure(request, exc)


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError as a 400 validation failure."""
    return render_failure(request, exc)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException, including the router's 404."""
    if isinstance(exc, HTTPException) and exc.status_code == status.HTTP_404_NOT_FOUND:
        return not_found_response(request)
    return render_failure(request, exc)


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Last-resort handler for exceptions raised outside the error boundary."""
    return render_failure(request, exc)


class ErrorBoundaryMiddleware(BaseHTTPMiddleware):
    """Innermost stage turning unhandled route exceptions into formatted 500s.

    Without it such exceptions would travel past every other stage to the
    server error middleware, and the response would miss the security,
    CORS and rate limit headers.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Run the route and format any exception it raises.

        Args:
            request: The incoming request.
            call_next: The router.

        Returns:
            Response: The route response or a formatted failure.
        """
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001 - every route failure is formatted
            return render_failure(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(RampartError, rampart_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
