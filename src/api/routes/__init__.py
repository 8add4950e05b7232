"""HTTP routes grouped by concern."""

from src.api.routes import health, misc, resources, users

ROUTERS = (misc.router, health.router, users.router, resources.router)

__all__ = ["ROUTERS"]
