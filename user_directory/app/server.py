"""
Process wiring: one store, one service, two front‑ends.

``build_manager`` constructs the object graph explicitly.  The store
is created here and handed to the service; the service is handed to
both the FastAPI app and the gRPC server; nothing is reached through
module globals.  ``main`` runs the resulting ``LifecycleManager`` and
``run`` is the synchronous console entry point.
"""

import asyncio
import logging
import sys
from typing import Optional

from .core.config import Settings, load_settings
from .core.logging_config import setup_logging
from .core.store import UserStore
from .grpc_api.servicer import create_server
from .lifecycle import GrpcListener, HttpListener, LifecycleManager, ShutdownReport, StartupError
from .main import create_app
from .services.user_service import UserService

logger = logging.getLogger(__name__)


def build_manager(settings: Settings, service: Optional[UserService] = None, handle_signals: bool = True) -> LifecycleManager:
    """Wire both listeners to a single ``UserService``.

    ``service`` may be passed in to share state with a caller, which is
    how tests inspect what the servers stored.
    """
    if service is None:
        service = UserService(UserStore())
    http = HttpListener(create_app(service, settings), settings.http_host, settings.http_port)
    grpc_listener = GrpcListener(create_server(service), settings.grpc_host, settings.grpc_port)
    return LifecycleManager([http, grpc_listener], grace=settings.shutdown_grace_seconds, handle_signals=handle_signals)


async def main(settings: Optional[Settings] = None) -> ShutdownReport:
    """Run both servers until a signal or a server failure."""
    settings = settings or load_settings()
    manager = build_manager(settings)
    return await manager.run()


def run() -> None:
    settings = load_settings()
    setup_logging(settings.log_level, settings.log_file or None)
    try:
        report = asyncio.run(main(settings))
    except StartupError as exc:
        logger.error("Startup failed: %s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        # A second interrupt during shutdown lands here.
        logger.warning("Interrupted")
        sys.exit(130)
    if report.error is not None:
        sys.exit(1)
