"""Request schemas for the demonstration routes.

Unknown fields are rejected on every schema except ``ItemsQuery``, which
only reads the pagination keys it knows about.
"""

from typing import Self

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic_core import PydanticCustomError

from src.api.validation.fields import (
    Email,
    Limit,
    OptionalEmail,
    OptionalPassword,
    OptionalPersonName,
    Page,
    Password,
    ResourceId,
    Sort,
    UserId,
    Username,
)


class StrictModel(BaseModel):
    """Base for schemas that reject unknown fields."""

    model_config = ConfigDict(extra="forbid")


class CreateUserRequest(StrictModel):
    """Body of ``POST /api/users``."""

    username: Username
    email: Email
    password: Password
    name: OptionalPersonName = None


class UpdateUserRequest(StrictModel):
    """Body of ``PUT /api/users/{id}``. At least one field is required."""

    email: OptionalEmail = None
    name: OptionalPersonName = None
    password: OptionalPassword = None

    @model_validator(mode="after")
    def require_one_field(self) -> Self:
        """Reject an empty update."""
        if not self.model_fields_set:
            raise PydanticCustomError(
                "min_fields", "At least one field must be provided for update"
            )
        return self


class UserIdPath(StrictModel):
    """Path parameters of the single-user routes."""

    id: UserId


class ResourceIdPath(StrictModel):
    """Path parameters of ``GET /api/resources/{id}``."""

    id: ResourceId


class PaginationQuery(StrictModel):
    """Query parameters of ``GET /api/users``."""

    page: Page = 1
    limit: Limit = 10
    sort: Sort = "createdAt"


class ItemsQuery(BaseModel):
    """Query parameters of ``GET /api/items``."""

    model_config = ConfigDict(extra="ignore")

    page: Page = 1
    limit: Limit = 10
