"""Schema validation for request bodies, query strings, paths and headers.

``validate`` checks a value against a pydantic model and turns every
failure into a :class:`~src.core.exceptions.FieldViolation`. The
``validate_body`` / ``validate_query`` / ``validate_path`` / ``validate_headers``
factories wrap it as FastAPI dependencies that read the request context
prepared by the earlier pipeline stages, replace the validated part with its
coerced value and raise
:class:`~src.core.exceptions.ValidationFailedError` with the full list of
violations when anything is wrong.

Example:
    >>> @router.post("/users")
    ... async def create_user(
    ...     body: Annotated[CreateUserRequest, Depends(validate_body(CreateUserRequest))],
    ... ) -> dict[str, Any]: ...
"""

from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ValidationError
from pydantic_core import ErrorDetails
from starlette.requests import Request

from src.api.utils.request import get_app_settings, get_request_context
from src.core.exceptions import FieldViolation, ValidationFailedError

type Target = Literal["body", "query", "path", "headers"]

ROOT_FIELD = "root"

# pydantic error types that map to a friendlier rule name
_RULE_NAMES: dict[str, str] = {
    "missing": "required",
    "extra_forbidden": "unknown",
    "model_type": "type",
    "dict_type": "type",
}


def _violation_from_error(error: ErrorDetails, skip: int) -> FieldViolation:
    location = error.get("loc", ())[skip:]
    field = ".".join(str(part) for part in location) or ROOT_FIELD
    error_type = error["type"]
    rule = _RULE_NAMES.get(error_type, error_type)

    if error_type == "missing":
        return FieldViolation(field, f"{field} is required", rule)
    if error_type == "extra_forbidden":
        message = f"{field} is not allowed"
    elif error_type in {"model_type", "dict_type"}:
        message = "Expected an object"
    else:
        message = error["msg"]
    return FieldViolation(field, message, rule, error.get("input"))


def violations_from_errors(
    errors: Iterable[ErrorDetails], *, skip: int = 0
) -> list[FieldViolation]:
    """Convert pydantic error details into one violation per field.

    Args:
        errors: Errors from ``ValidationError.errors()`` or FastAPI.
        skip: Leading location parts to drop (FastAPI prefixes ``body``).

    Returns:
        list[FieldViolation]: Violations in the order pydantic reported them.
    """
    violations: dict[str, FieldViolation] = {}
    for error in errors:
        violation = _violation_from_error(error, skip)
        violations.setdefault(violation.field, violation)
    return list(violations.values())


def validate[M: BaseModel](
    schema: type[M],
    data: object,
    *,
    context: Mapping[str, Any] | None = None,
) -> M:
    """Validate ``data`` against ``schema``, collecting every violation.

    Args:
        schema: The pydantic model describing the target.
        data: Raw target value.
        context: Extra validation context passed to field validators.

    Returns:
        M: The coerced, defaulted model instance.

    Raises:
        ValidationFailedError: With one violation per offending field.
    """
    try:
        return schema.model_validate(data, context=dict(context or {}))
    except ValidationError as exc:
        raise ValidationFailedError(violations_from_errors(exc.errors())) from exc


def _validation_dependency[M: BaseModel](
    schema: type[M], target: Target
) -> Callable[[Request], Awaitable[M]]:
    async def dependency(request: Request) -> M:
        context = get_request_context(request)
        if target == "path":
            context.path_params = dict(request.path_params)

        data = context.get_target(target)
        if data is None:
            data = {}

        settings = get_app_settings(request)
        model = validate(
            schema, data, context={"user_id_format": settings.user_id_format}
        )
        context.set_target(target, model.model_dump(by_alias=True))
        return model

    dependency.__name__ = f"validate_{target}_{schema.__name__}"
    return dependency


def validate_body[M: BaseModel](schema: type[M]) -> Callable[[Request], Awaitable[M]]:
    """Build a dependency validating the parsed request body."""
    return _validation_dependency(schema, "body")


def validate_query[M: BaseModel](schema: type[M]) -> Callable[[Request], Awaitable[M]]:
    """Build a dependency validating the normalized query parameters."""
    return _validation_dependency(schema, "query")


def validate_path[M: BaseModel](schema: type[M]) -> Callable[[Request], Awaitable[M]]:
    """Build a dependency validating the route's path parameters."""
    return _validation_dependency(schema, "path")


def validate_headers[M: BaseModel](
    schema: type[M],
) -> Callable[[Request], Awaitable[M]]:
    """Build a dependency validating the lower-cased request headers.

    Header schemas should ignore extra fields and alias each field to its
    header name, since every request carries headers the schema does not
    describe.
    """
    return _validation_dependency(schema, "headers")
