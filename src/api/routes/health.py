"""Health check endpoints for orchestrators and load balancers.

Both paths are exempt from rate limiting and from the shutdown guard, so
they keep answering while the process drains and report
``shutting_down`` with a 503.
"""

import time
from datetime import UTC, datetime
from typing import Any

import psutil
from fastapi import APIRouter, Request, status
from fastapi.responses import Response

from src.api.utils.request import get_app_settings
from src.api.utils.responses import ORJSONResponse

BYTES_PER_MEGABYTE = 1024 * 1024

router = APIRouter(tags=["health"])


def memory_summary() -> dict[str, str]:
    """Resident and virtual memory of this process, rounded to megabytes."""
    info = psutil.Process().memory_info()
    return {
        "rss": f"{round(info.rss / BYTES_PER_MEGABYTE)} MB",
        "vms": f"{round(info.vms / BYTES_PER_MEGABYTE)} MB",
    }


@router.get("/health")
@router.get("/api/health")
async def health(request: Request) -> Response:
    """Report liveness, uptime and memory usage.

    Used by:
    - Docker health checks
    - Kubernetes liveness/readiness probes
    - Load balancers

    Returns:
        Response: 200 while running, 503 once shutdown has begun.
    """
    state = request.app.state
    shutting_down = state.resources.is_shutting_down
    payload: dict[str, Any] = {
        "status": "shutting_down" if shutting_down else "healthy",
        "uptime": round(time.monotonic() - state.started_at, 3),
        "timestamp": datetime.now(UTC).isoformat(),
        "environment": get_app_settings(request).environment,
        "memory": memory_summary(),
    }
    status_code = (
        status.HTTP_503_SERVICE_UNAVAILABLE if shutting_down else status.HTTP_200_OK
    )
    return ORJSONResponse(status_code=status_code, content=payload)
