"""Demonstration resource and item endpoints."""

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from src.api.schemas.users import ItemsQuery, ResourceIdPath
from src.api.validation import validate_path, validate_query

TOTAL_ITEMS = 100

router = APIRouter(prefix="/api", tags=["resources"])


@router.get("/resources/{id}")
async def get_resource(
    path: Annotated[ResourceIdPath, Depends(validate_path(ResourceIdPath))],
) -> dict[str, Any]:
    """Look up a resource by its positive integer id."""
    return {
        "success": True,
        "data": {
            "id": path.id,
            "name": f"Resource {path.id}",
            "type": "example",
            "status": "active",
            "createdAt": datetime.now(UTC).isoformat(),
        },
    }


@router.get("/items")
async def list_items(
    query: Annotated[ItemsQuery, Depends(validate_query(ItemsQuery))],
) -> dict[str, Any]:
    """Page through a simulated collection of 100 items."""
    offset = (query.page - 1) * query.limit
    total_pages = math.ceil(TOTAL_ITEMS / query.limit)
    created_at = datetime.now(UTC).isoformat()
    items = [
        {"id": number, "name": f"Item {number}", "createdAt": created_at}
        for number in range(offset + 1, min(offset + query.limit, TOTAL_ITEMS) + 1)
    ]
    return {
        "success": True,
        "data": items,
        "pagination": {
            "currentPage": query.page,
            "totalPages": total_pages,
            "totalItems": TOTAL_ITEMS,
            "limit": query.limit,
            "hasNextPage": query.page < total_pages,
            "hasPreviousPage": query.page > 1,
        },
    }
