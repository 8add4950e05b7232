"""Declarative request validation built on pydantic models."""

from src.api.validation.validator import (
    validate,
    validate_body,
    validate_headers,
    validate_path,
    validate_query,
    violations_from_errors,
)

__all__ = [
    "validate",
    "validate_body",
    "validate_headers",
    "validate_path",
    "validate_query",
    "violations_from_errors",
]
