"""Service information, endpoint catalogue and the echo endpoint."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request

from src.api.utils.request import get_app_settings, get_client_ip, get_request_context

router = APIRouter(tags=["misc"])

ENDPOINTS: tuple[dict[str, str], ...] = (
    {"method": "GET", "path": "/", "description": "Service information"},
    {"method": "GET", "path": "/health", "description": "Health check"},
    {"method": "GET", "path": "/api/health", "description": "Health check"},
    {"method": "GET", "path": "/api/users", "description": "List users"},
    {"method": "POST", "path": "/api/users", "description": "Create user"},
    {"method": "GET", "path": "/api/users/{id}", "description": "Get user"},
    {"method": "PUT", "path": "/api/users/{id}", "description": "Update user"},
    {"method": "DELETE", "path": "/api/users/{id}", "description": "Delete user"},
    {"method": "GET", "path": "/api/resources/{id}", "description": "Get resource by ID"},
    {"method": "GET", "path": "/api/items", "description": "Get paginated items"},
    {"method": "POST", "path": "/api/echo", "description": "Echo the parsed request"},
)


@router.get("/")
async def root(request: Request) -> dict[str, Any]:
    """Root endpoint describing the service."""
    settings = get_app_settings(request)
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "environment": settings.environment,
        "documentation": "/api/docs",
        "health": "/health",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/api/docs")
async def docs() -> dict[str, Any]:
    """List the available endpoints."""
    return {"message": "API Documentation", "endpoints": list(ENDPOINTS)}


@router.post("/api/echo")
async def echo(request: Request) -> dict[str, Any]:
    """Echo the request as the pipeline sees it after parsing and normalization."""
    context = get_request_context(request)
    settings = get_app_settings(request)
    return {
        "success": True,
        "data": {
            "method": context.method,
            "path": context.path,
            "query": context.query,
            "body": context.body,
            "ip": get_client_ip(request, trust_proxy=bool(settings.trust_proxy)),
            "timestamp": datetime.now(UTC).isoformat(),
        },
    }
