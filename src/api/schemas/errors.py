"""Error envelope returned for every failed request.

Every failure, whatever stage produced it, is rendered with the same
shape::

    {"success": false, "error": {"message": ..., "statusCode": ..., "referenceId": ...}}

Development responses add ``name``, ``stack`` and the full
``validationErrors`` list. Production responses carry only the generic
message, the status, the reference id and, for schema failures, the
redacted ``validationErrors`` list.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldErrorDetail(_CamelModel):
    """One violated rule in a validation failure."""

    field: str = Field(..., description="Dotted path of the offending field")
    message: str = Field(..., description="Human readable rule description")
    rule: str | None = Field(default=None, description="Rule category")
    value: Any = Field(
        default=None,
        description="Submitted value, or a placeholder in production",
    )


class ErrorDetail(_CamelModel):
    """Body of the ``error`` member of the envelope."""

    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Bad Request: Invalid input provided"],
    )
    status_code: int = Field(..., description="HTTP status code", examples=[400])
    reference_id: str | None = Field(
        default=None,
        description="Opaque identifier for correlating with server logs",
        examples=["550e8400-e29b-41d4-a716-446655440000"],
    )
    name: str | None = Field(
        default=None, description="Error class name (development only)"
    )
    stack: str | None = Field(default=None, description="Stack trace (development only)")
    validation_errors: list[FieldErrorDetail] | None = Field(
        default=None, description="Per-field validation failures"
    )
    path: str | None = Field(default=None, description="Unmatched route path")
    method: str | None = Field(default=None, description="Unmatched route method")


class ErrorEnvelope(_CamelModel):
    """Standardized error response model for API errors."""

    success: Literal[False] = False
    error: ErrorDetail

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "success": False,
                    "error": {
                        "message": "Bad Request: Invalid input provided",
                        "statusCode": 400,
                        "referenceId": "550e8400-e29b-41d4-a716-446655440000",
                        "validationErrors": [
                            {
                                "field": "email",
                                "message": "Invalid email format",
                                "rule": "email",
                                "value": "[REDACTED]",
                            }
                        ],
                    },
                },
                {
                    "success": False,
                    "error": {
                        "message": "Route GET /missing not found",
                        "statusCode": 404,
                        "path": "/missing",
                        "method": "GET",
                    },
                },
            ]
        },
    )

    def render(self) -> dict[str, Any]:
        """Dump to the wire shape, omitting members that do not apply."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
