"""Size-limited parsing of JSON and URL-encoded request bodies.

The parsed body is stored on the request context; routes and validators
read it from there and never touch the raw stream. Only JSON objects and
arrays are accepted at the top level. Bodies of other content types are
still size-checked but left unparsed.
"""

from urllib.parse import parse_qsl

import orjson
from fastapi import Request, Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from src.api.constants import FORM_CONTENT_TYPES, JSON_CONTENT_TYPES, REQUEST_BODY_METHODS
from src.api.middleware.error_handler import render_failure
from src.api.utils.request import get_request_context
from src.core.constants import DEFAULT_BODY_LIMIT_BYTES
from src.core.exceptions import MalformedBodyError, PayloadTooLargeError, RampartError
from src.core.types import JsonValue


def _media_type(request: Request) -> str:
    content_type = request.headers.get("content-type", "")
    return content_type.split(";", 1)[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type in JSON_CONTENT_TYPES or media_type.endswith("+json")


def parse_json_body(raw: bytes) -> JsonValue:
    """Parse a JSON body, accepting only an object or array at the top level.

    Raises:
        MalformedBodyError: If the bytes are not valid JSON or hold a primitive.
    """
    try:
        value = orjson.loads(raw)
    except orjson.JSONDecodeError as e:
        msg = "Malformed JSON in request body"
        raise MalformedBodyError(msg, cause=e) from e

    if not isinstance(value, dict | list):
        msg = "Request body must be a JSON object or array"
        raise MalformedBodyError(msg)
    return value


def parse_form_body(raw: bytes) -> dict[str, str | list[str]]:
    """Parse a URL-encoded body. Repeated keys become lists.

    Raises:
        MalformedBodyError: If the body is not UTF-8.
    """
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        msg = "Form body is not valid UTF-8"
        raise MalformedBodyError(msg, cause=e) from e

    form: dict[str, str | list[str]] = {}
    for key, value in parse_qsl(text, keep_blank_values=True):
        existing = form.get(key)
        if existing is None:
            form[key] = value
        elif isinstance(existing, list):
            existing.append(value)
        else:
            form[key] = [existing, value]
    return form


class BodyParserMiddleware(BaseHTTPMiddleware):
    """Reads, size-checks and parses bodies of POST, PUT and PATCH requests.

    Args:
        app: The ASGI application to wrap.
        limit: Maximum body size in bytes.
    """

    def __init__(self, app: ASGIApp, *, limit: int = DEFAULT_BODY_LIMIT_BYTES) -> None:
        super().__init__(app)
        self.limit = limit

    async def _read(self, request: Request) -> bytes:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > self.limit:
            raise PayloadTooLargeError(self.limit)

        # Content-Length can be absent or wrong, so the stream is checked too
        body = bytearray()
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > self.limit:
                raise PayloadTooLargeError(self.limit)
        return bytes(body)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Parse the body into the request context.

        Args:
            request: The incoming request.
            call_next: The next pipeline stage.

        Returns:
            Response: The downstream response, or a 413/400 failure.
        """
        context = get_request_context(request)
        if request.method not in REQUEST_BODY_METHODS:
            return await call_next(request)

        media_type = _media_type(request)
        try:
            raw = await self._read(request)
            if not raw.strip():
                context.body = {}
            elif _is_json(media_type):
                context.body = parse_json_body(raw)
            elif media_type in FORM_CONTENT_TYPES:
                context.body = parse_form_body(raw)
                context.body_is_form = True
            else:
                logger.debug("Leaving {} body unparsed", media_type or "untyped")
        except RampartError as exc:
            return render_failure(request, exc)

        return await call_next(request)
