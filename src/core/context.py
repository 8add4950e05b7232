"""Per-request context record and reference identifiers."""

import uuid
from dataclasses import dataclass, field
from typing import Any

from src.core.exceptions import FieldViolation
from src.core.types import JsonValue


@dataclass
class RequestContext:
    """Transient record carried through the pipeline for one request.

    The context is created when the first stage touches the request and is
    discarded with the response. It is never shared across requests.

    Attributes:
        method: HTTP method.
        path: Request path without the query string.
        headers: Lower-cased request headers.
        query: Query parameters, one value per key once normalized.
        body: Parsed request body, ``None`` when the request has none.
        path_params: Route parameters, filled in once routing has happened.
        violations: Validation failures collected for this request.
        body_is_form: Whether the body came from a URL-encoded form.
    """

    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    body: JsonValue = None
    path_params: dict[str, Any] = field(default_factory=dict)
    violations: list[FieldViolation] = field(default_factory=list)
    body_is_form: bool = False

    def get_target(self, target: str) -> Any:  # noqa: ANN401 - targets hold arbitrary JSON
        """Return the part of the request a validator works on.

        Args:
            target: One of ``body``, ``query``, ``path`` or ``headers``.

        Returns:
            Any: The current value of that part.
        """
        if target == "body":
            return self.body
        if target == "query":
            return self.query
        if target == "path":
            return self.path_params
        if target == "headers":
            return self.headers
        msg = f"Unknown validation target: {target}"
        raise ValueError(msg)

    def set_target(self, target: str, value: Any) -> None:  # noqa: ANN401
        """Replace a request part with its coerced value."""
        if target == "body":
            self.body = value
        elif target == "query":
            self.query = value
        elif target == "path":
            self.path_params = value
        elif target == "headers":
            # Coerced headers are merged so unvalidated ones stay readable
            self.headers = {**self.headers, **value}
        else:
            msg = f"Unknown validation target: {target}"
            raise ValueError(msg)


def generate_reference_id() -> str:
    """Generate an opaque identifier for one failure occurrence.

    The identifier is returned to the client and written to the server log so
    support reports can be correlated without exposing internals.

    Returns:
        str: A random UUID4 string.

    Examples:
        >>> reference_id = generate_reference_id()
        >>> len(reference_id)
        36
    """
    return str(uuid.uuid4())
