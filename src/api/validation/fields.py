"""Reusable field types for request schemas.

Each type is an ``Annotated`` alias whose ``BeforeValidator`` applies the
rules of one kind of field in a fixed order and reports the first broken
rule as a ``PydanticCustomError``. The error type doubles as the rule
category shown to clients (``email``, ``min_length``, ``pattern`` ...), so
every field contributes at most one violation.

Values arriving from paths, query strings and forms are strings, so the
numeric types accept digit strings and coerce them.
"""

import re
import uuid
from collections.abc import Callable
from typing import Annotated, Any, Final, NoReturn

from email_validator import EmailNotValidError, validate_email
from pydantic import BeforeValidator, ValidationInfo
from pydantic_core import PydanticCustomError

MAX_EMAIL_LENGTH: Final = 254
PASSWORD_MIN_LENGTH: Final = 8
PASSWORD_MAX_LENGTH: Final = 128
NAME_MIN_LENGTH: Final = 2
NAME_MAX_LENGTH: Final = 100
USERNAME_MIN_LENGTH: Final = 3
USERNAME_MAX_LENGTH: Final = 50
LIMIT_MAX: Final = 100
# Largest integer JSON clients can represent exactly
MAX_SAFE_INTEGER: Final = 2**53 - 1
SORT_FIELDS: Final = ("asc", "desc", "createdAt", "updatedAt", "name", "email")

_PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
_NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
_USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
_OBJECT_ID_PATTERN = re.compile(r"^[a-fA-F0-9]{24}$")
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


def _fail(rule: str, message: str) -> NoReturn:
    raise PydanticCustomError(rule, message)


def _require_string(value: object, label: str) -> str:
    if not isinstance(value, str):
        _fail("string", f"{label} must be a string")
    return value


def _optional(check: Callable[[Any], Any]) -> Callable[[Any], Any]:
    def wrapper(value: object) -> object:
        return None if value is None else check(value)

    return wrapper


def check_email(value: object) -> str:
    """Trim, lower-case and validate an email address."""
    email = _require_string(value, "Email").strip().lower()
    if not email:
        _fail("required", "Email address is required")
    if len(email) > MAX_EMAIL_LENGTH:
        _fail("max_length", "Email address is too long")
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        _fail("email", "Invalid email format")
    return email


def check_password(value: object) -> str:
    """Validate password length and character classes. Never trimmed."""
    password = _require_string(value, "Password")
    if not password:
        _fail("required", "Password is required")
    if len(password) < PASSWORD_MIN_LENGTH:
        _fail("min_length", "Password must be at least 8 characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        _fail("max_length", "Password must not exceed 128 characters")
    if not _PASSWORD_PATTERN.match(password):
        _fail(
            "pattern",
            "Password must contain at least one uppercase letter, "
            "one lowercase letter, and one number",
        )
    return password


def check_name(value: object) -> str:
    """Validate a person name."""
    name = _require_string(value, "Name").strip()
    if not name:
        _fail("required", "Name is required")
    if len(name) < NAME_MIN_LENGTH:
        _fail("min_length", "Name must be at least 2 characters long")
    if len(name) > NAME_MAX_LENGTH:
        _fail("max_length", "Name must not exceed 100 characters")
    if not _NAME_PATTERN.match(name):
        _fail(
            "pattern",
            "Name can only contain letters, spaces, hyphens, and apostrophes",
        )
    return name


def check_username(value: object) -> str:
    """Validate a username."""
    username = _require_string(value, "Username").strip()
    if not username:
        _fail("required", "Username is required")
    if not USERNAME_MIN_LENGTH <= len(username) <= USERNAME_MAX_LENGTH:
        _fail("length", "Username must be between 3 and 50 characters")
    if not _USERNAME_PATTERN.match(username):
        _fail(
            "pattern",
            "Username can only contain letters, numbers, and underscores",
        )
    return username


def check_object_id(value: object) -> str:
    """Validate a 24-character hexadecimal identifier."""
    identifier = _require_string(value, "ID")
    if not _OBJECT_ID_PATTERN.match(identifier):
        _fail("object_id", "Invalid ID format (must be 24-character hex string)")
    return identifier


def check_uuid4(value: object) -> str:
    """Validate a version 4 UUID, returned in canonical lower-case form."""
    identifier = _require_string(value, "UUID")
    try:
        parsed = uuid.UUID(identifier)
    except ValueError:
        _fail("uuid", "Invalid UUID format")
    if parsed.version != 4:  # noqa: PLR2004 - UUID version number
        _fail("uuid", "Invalid UUID format")
    return str(parsed)


def check_user_id(value: object, info: ValidationInfo) -> str:
    """Validate a user identifier in the format chosen by configuration.

    The format is read from the validation context under ``user_id_format``
    and defaults to ``object_id``.
    """
    id_format = (info.context or {}).get("user_id_format", "object_id")
    if id_format == "uuid4":
        return check_uuid4(value)
    return check_object_id(value)


def _to_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_PATTERN.match(value.strip()):
        return int(value.strip())
    return None


def positive_int(label: str) -> Any:  # noqa: ANN401 - returns an Annotated type
    """Build an integer field type accepting 1 up to ``MAX_SAFE_INTEGER``.

    Args:
        label: Field label used in the error message.

    Returns:
        Any: An ``Annotated[int, ...]`` type.

    Examples:
        >>> ResourceId = positive_int("Resource ID")
    """
    message = f"{label} must be a positive integer"

    def check(value: object) -> int:
        number = _to_int(value)
        if number is None or not 1 <= number <= MAX_SAFE_INTEGER:
            _fail("positive_integer", message)
        return number

    return Annotated[int, BeforeValidator(check)]


def check_limit(value: object) -> int:
    """Validate a page size between 1 and 100."""
    number = _to_int(value)
    if number is None:
        _fail("integer", "Limit must be a whole number")
    if number < 1:
        _fail("min", "Limit must be at least 1")
    if number > LIMIT_MAX:
        _fail("max", "Limit cannot exceed 100")
    return number


def check_sort(value: object) -> str:
    """Validate a sort key."""
    if value not in SORT_FIELDS:
        _fail("enum", f"Sort must be one of: {', '.join(SORT_FIELDS)}")
    return str(value)


Email = Annotated[str, BeforeValidator(check_email)]
Password = Annotated[str, BeforeValidator(check_password)]
PersonName = Annotated[str, BeforeValidator(check_name)]
Username = Annotated[str, BeforeValidator(check_username)]
ObjectId = Annotated[str, BeforeValidator(check_object_id)]
UUID4 = Annotated[str, BeforeValidator(check_uuid4)]
UserId = Annotated[str, BeforeValidator(check_user_id)]
ResourceId = positive_int("Resource ID")
Page = positive_int("Page")
Limit = Annotated[int, BeforeValidator(check_limit)]
Sort = Annotated[str, BeforeValidator(check_sort)]

OptionalEmail = Annotated[str | None, BeforeValidator(_optional(check_email))]
OptionalPassword = Annotated[str | None, BeforeValidator(_optional(check_password))]
OptionalPersonName = Annotated[str | None, BeforeValidator(_optional(check_name))]
