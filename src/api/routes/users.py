"""Demonstration user endpoints.

Nothing is persisted. The handlers exist to show how validated input
reaches business code: every request part arrives as a model that has
already passed its schema.
"""

import secrets
import uuid
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from loguru import logger

from src.api.schemas.users import (
    CreateUserRequest,
    PaginationQuery,
    UpdateUserRequest,
    UserIdPath,
)
from src.api.utils.request import get_app_settings
from src.api.validation import validate_body, validate_path, validate_query

router = APIRouter(prefix="/api/users", tags=["users"])


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _new_user_id(id_format: str) -> str:
    if id_format == "uuid4":
        return str(uuid.uuid4())
    return secrets.token_hex(12)


@router.get("")
async def list_users(
    query: Annotated[PaginationQuery, Depends(validate_query(PaginationQuery))],
) -> dict[str, Any]:
    """List users with validated pagination."""
    return {
        "success": True,
        "data": {
            "users": [],
            "pagination": {
                "page": query.page,
                "limit": query.limit,
                "sort": query.sort,
                "total": 0,
                "totalPages": 0,
            },
        },
    }


@router.get("/{id}")
async def get_user(
    path: Annotated[UserIdPath, Depends(validate_path(UserIdPath))],
) -> dict[str, Any]:
    """Return a placeholder user for a well-formed identifier."""
    return {
        "success": True,
        "data": {"user": {"id": path.id, "message": "User endpoint demonstration"}},
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    request: Request,
    body: Annotated[CreateUserRequest, Depends(validate_body(CreateUserRequest))],
) -> dict[str, Any]:
    """Create a user. The password is accepted but never echoed."""
    settings = get_app_settings(request)
    user = {
        "id": _new_user_id(settings.user_id_format),
        "username": body.username,
        "email": body.email,
        "name": body.name,
        "createdAt": _now(),
    }
    logger.info("New user registered", username=body.username)
    return {"success": True, "message": "User created successfully", "data": {"user": user}}


@router.put("/{id}")
async def update_user(
    path: Annotated[UserIdPath, Depends(validate_path(UserIdPath))],
    body: Annotated[UpdateUserRequest, Depends(validate_body(UpdateUserRequest))],
) -> dict[str, Any]:
    """Apply a partial update."""
    updates = body.model_dump(exclude_unset=True, exclude={"password"})
    return {
        "success": True,
        "message": "User updated successfully",
        "data": {"user": {"id": path.id, **updates, "updatedAt": _now()}},
    }


@router.delete("/{id}")
async def delete_user(
    path: Annotated[UserIdPath, Depends(validate_path(UserIdPath))],
) -> dict[str, Any]:
    """Delete a user."""
    return {
        "success": True,
        "message": "User deleted successfully",
        "data": {"deletedId": path.id, "deletedAt": _now()},
    }
