"""Uvicorn bootstrap with connection tracking and graceful shutdown.

``GracefulServer`` replaces uvicorn's own signal handling with the
:class:`~src.core.shutdown.ShutdownController`, so SIGINT, SIGTERM and
SIGQUIT all run the same ordered drain sequence. Every accepted
connection is registered with the shared
:class:`~src.core.resources.ResourceTracker` by a thin subclass of
uvicorn's h11 protocol.

Faults that escape request handling, such as exceptions in worker
threads or asyncio errors nobody retrieved, are routed into the
controller as well.
"""

import asyncio
import contextlib
import signal
import ssl
import threading
from collections.abc import Generator
from typing import Any, Final

import uvicorn
from loguru import logger
from uvicorn.protocols.http.h11_impl import H11Protocol

from src.api.main import create_app
from src.core.config import Settings, get_settings
from src.core.logging import setup_logging
from src.core.resources import ResourceTracker
from src.core.shutdown import EXIT_SUCCESS, ShutdownController

HANDLED_SIGNALS: Final[tuple[signal.Signals, ...]] = tuple(
    sig
    for sig in (
        signal.SIGINT,
        signal.SIGTERM,
        getattr(signal, "SIGQUIT", None),
    )
    if sig is not None
)

# Route uvicorn's own loggers through Loguru
UVICORN_LOG_CONFIG: Final[dict[str, Any]] = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "default": {
            "class": "src.core.logging.InterceptHandler",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
        "uvicorn.access": {
            "handlers": ["default"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def tracked_protocol(tracker: ResourceTracker) -> type[H11Protocol]:
    """Build an h11 protocol class that registers its transport with ``tracker``."""

    class TrackedH11Protocol(H11Protocol):
        def connection_made(self, transport: asyncio.BaseTransport) -> None:
            super().connection_made(transport)  # type: ignore[arg-type]
            tracker.add_connection(transport)  # type: ignore[arg-type]

        def connection_lost(self, exc: Exception | None) -> None:
            tracker.remove_connection(self.transport)
            super().connection_lost(exc)

    return TrackedH11Protocol


def load_tls_files(settings: Settings) -> tuple[str, str] | None:
    """Decide whether to serve HTTPS.

    TLS is only used in production with both paths configured. The pair is
    loaded up front so that a bad certificate degrades to plain HTTP with a
    warning instead of aborting startup.

    Args:
        settings: Application settings.

    Returns:
        tuple[str, str] | None: Certificate and key paths, or None for HTTP.
    """
    if not settings.is_production:
        return None

    cert_path, key_path = settings.tls_cert_path, settings.tls_key_path
    if not (cert_path and key_path):
        logger.warning(
            "Running production without HTTPS. Set TLS_CERT_PATH and TLS_KEY_PATH."
        )
        return None

    try:
        ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER).load_cert_chain(cert_path, key_path)
    except (OSError, ssl.SSLError) as e:
        logger.error("Failed to load TLS certificates", error_type=type(e).__name__)
        logger.warning("Falling back to HTTP server")
        return None

    logger.info("HTTPS enabled with TLS certificates")
    return cert_path, key_path


def build_config(
    app: Any,  # noqa: ANN401 - any ASGI application
    settings: Settings,
    tracker: ResourceTracker,
) -> uvicorn.Config:
    """Build the uvicorn configuration for ``app``."""
    tls_files = load_tls_files(settings)
    return uvicorn.Config(
        app,
        host=settings.api_host,
        port=settings.api_port,
        http=tracked_protocol(tracker),
        log_config=UVICORN_LOG_CONFIG,
        server_header=False,
        date_header=True,
        ssl_certfile=tls_files[0] if tls_files else None,
        ssl_keyfile=tls_files[1] if tls_files else None,
        timeout_graceful_shutdown=max(1, int(settings.shutdown_timeout_seconds)),
    )


class GracefulServer(uvicorn.Server):
    """Uvicorn server whose lifecycle is driven by a ShutdownController.

    Args:
        config: Uvicorn configuration.
        tracker: Shared connection, timer and shutdown state.
        settings: Application settings.
    """

    def __init__(
        self,
        config: uvicorn.Config,
        *,
        tracker: ResourceTracker,
        settings: Settings,
    ) -> None:
        super().__init__(config)
        self.settings = settings
        self.exit_code = EXIT_SUCCESS
        self.controller = ShutdownController(
            tracker,
            on_terminate=self.terminate,
            timeout_seconds=settings.shutdown_timeout_seconds,
            listener=self,
            production=settings.is_production,
        )

    def stop_accepting(self) -> None:
        """Close the listening sockets. Accepted connections stay open."""
        for server in getattr(self, "servers", []):
            server.close()

    def terminate(self, code: int) -> None:
        """Record the exit code and stop the uvicorn main loop."""
        self.exit_code = code
        self.should_exit = True
        if code != EXIT_SUCCESS:
            self.force_exit = True

    @contextlib.contextmanager
    def capture_signals(self) -> Generator[None]:
        """Send termination signals to the shutdown controller.

        Uvicorn's default handlers would re-raise the signal after shutdown;
        here the controller owns the exit code instead.
        """
        if threading.current_thread() is not threading.main_thread():
            # Signals can only be handled from the main thread
            yield
            return

        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in HANDLED_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.controller.trigger, sig.name)
            except NotImplementedError:
                # Windows event loops do not support add_signal_handler
                signal.signal(
                    sig,
                    lambda signum, _frame: loop.call_soon_threadsafe(
                        self.controller.trigger, signal.Signals(signum).name
                    ),
                )
            else:
                installed.append(sig)
        try:
            yield
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    def _install_fault_handlers(self) -> None:
        loop = asyncio.get_running_loop()

        def on_loop_error(
            _loop: asyncio.AbstractEventLoop, context: dict[str, Any]
        ) -> None:
            exc = context.get("exception")
            if exc is None:
                logger.error("Event loop error: {}", context.get("message"))
                return
            self.controller.report_unhandled_rejection(exc)

        def on_thread_error(args: threading.ExceptHookArgs) -> None:
            if args.exc_value is not None:
                loop.call_soon_threadsafe(
                    self.controller.report_uncaught_exception, args.exc_value
                )

        loop.set_exception_handler(on_loop_error)
        threading.excepthook = on_thread_error

    async def serve(self, sockets: Any = None) -> None:  # noqa: ANN401 - uvicorn signature
        """Install fault handlers, then serve until shutdown completes."""
        self._install_fault_handlers()
        await super().serve(sockets=sockets)

    async def startup(self, sockets: Any = None) -> None:  # noqa: ANN401 - uvicorn signature
        """Start listening and log the startup banner."""
        await super().startup(sockets=sockets)
        if self.started:
            log_banner(self.settings, tls=self.config.is_ssl)


def log_banner(settings: Settings, *, tls: bool) -> None:
    """Log where the server listens and which protections are active."""
    protocol = "https" if tls else "http"
    window_minutes = settings.rate_limit_window_ms / 60000
    logger.info(
        "Server listening on {}://{}:{} ({}, {})",
        protocol,
        settings.api_host,
        settings.api_port,
        settings.environment,
        "HTTPS (TLS)" if tls else "HTTP",
        environment=settings.environment,
        rate_limit=f"{settings.rate_limit_max} requests per {window_minutes:g} minutes",
        cors_origins=", ".join(settings.cors_whitelist),
        body_limit=settings.body_limit,
    )


def run(settings: Settings | None = None) -> int:
    """Build the application and serve it until shutdown.

    Args:
        settings: Optional settings instance. If not provided, will use get_settings().

    Returns:
        int: The process exit code chosen by the shutdown controller.
    """
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    tracker = ResourceTracker()
    app = create_app(settings, tracker)
    server = GracefulServer(
        build_config(app, settings, tracker), tracker=tracker, settings=settings
    )
    server.run()
    return server.exit_code
