"""FastAPI application initialization and configuration module.

This module builds the Rampart application. It handles:
- Application lifecycle management (startup/shutdown)
- The request pipeline, assembled as an explicit ordered middleware list
- Exception handler registration
- Route registration

Starlette runs the first entry of the middleware list outermost, so the
list below reads in request order.
"""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from starlette.middleware import Middleware

from src.api.middleware.body_parser import BodyParserMiddleware
from src.api.middleware.cors import CORSMiddleware
from src.api.middleware.error_handler import (
    ErrorBoundaryMiddleware,
    register_exception_handlers,
)
from src.api.middleware.parameter_pollution import ParameterPollutionMiddleware
from src.api.middleware.rate_limit import RateLimitMiddleware
from src.api.middleware.request_logging import RequestLoggingMiddleware
from src.api.middleware.security_headers import SecurityHeadersMiddleware
from src.api.middleware.shutdown_guard import ShutdownGuardMiddleware
from src.api.routes import ROUTERS
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.resources import ResourceTracker


@asynccontextmanager
async def lifespan(app_instance: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan events.

    Args:
        app_instance: The FastAPI application instance.

    Yields:
        None: Nothing is yielded, this is just a lifespan context.
    """
    app_instance.state.started_at = time.monotonic()
    logger.info(
        "Application startup complete - {} v{}",
        app_instance.title,
        app_instance.version,
    )

    yield

    logger.info("Application shutdown complete")


def build_middleware(
    settings: Settings,
    tracker: ResourceTracker,
    *,
    hpp_whitelist: tuple[str, ...] = (),
) -> list[Middleware]:
    """Assemble the pipeline stages in request order.

    Security headers wrap the rate limiter so that throttled responses are
    hardened too. The stage never fails, so this does not change which
    stage rejects a request first.

    Args:
        settings: Policy for every stage.
        tracker: Shared shutdown state read by the shutdown guard.
        hpp_whitelist: Fields allowed to stay repeated.

    Returns:
        list[Middleware]: Outermost stage first.
    """
    return [
        Middleware(
            RequestLoggingMiddleware,
            log_config=settings.log_config,
            trust_proxy=bool(settings.trust_proxy),
        ),
        Middleware(
            SecurityHeadersMiddleware,
            production=settings.is_production,
            hsts_max_age=settings.hsts_max_age,
            csp_report_only=settings.csp_report_only,
        ),
        Middleware(
            RateLimitMiddleware,
            max_requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
            exempt_paths=settings.rate_limit_exempt_paths,
            trust_proxy=bool(settings.trust_proxy),
        ),
        Middleware(ShutdownGuardMiddleware, tracker=tracker),
        Middleware(
            CORSMiddleware,
            allowed_origins=settings.cors_whitelist,
            allow_credentials=settings.cors_credentials,
            max_age=settings.cors_max_age,
        ),
        Middleware(BodyParserMiddleware, limit=settings.body_limit),
        Middleware(ParameterPollutionMiddleware, whitelist=hpp_whitelist),
        Middleware(ErrorBoundaryMiddleware),
    ]


def create_app(
    settings: Settings | None = None,
    tracker: ResourceTracker | None = None,
    *,
    hpp_whitelist: tuple[str, ...] = (),
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().
        tracker: Shared resource tracker. A fresh one is created if omitted.
        hpp_whitelist: Fields allowed to stay repeated in query and form data.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()
    if tracker is None:
        tracker = ResourceTracker()

    # Setup logging first
    setup_logging(settings)

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        default_response_class=ORJSONResponse,
        middleware=build_middleware(settings, tracker, hpp_whitelist=hpp_whitelist),
        lifespan=lifespan,
    )
    application.state.settings = settings
    application.state.resources = tracker
    application.state.started_at = time.monotonic()

    register_exception_handlers(application)

    for router in ROUTERS:
        application.include_router(router)

    return application
