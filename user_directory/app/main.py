"""
HTTP application factory for the User Directory.

``create_app`` assembles the FastAPI application around an existing
``UserService``.  The service is stored on ``app.state`` so endpoints
reach it through a dependency rather than a module global; the gRPC
front‑end is handed the very same instance by
``server.build_manager``.  Serve the result with uvicorn, for example
through ``HttpListener`` in ``lifecycle``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .api.v1.router import router as v1_router
from .core.config import Settings
from .services.user_service import UserService

logger = logging.getLogger(__name__)


def create_app(service: UserService, settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure a FastAPI application.

    Parameters
    ----------
    service : UserService
        The service every endpoint operates on.
    settings : Optional[Settings]
        Provides the title and version.  A fresh ``Settings`` is read
        from the environment when omitted.

    Returns
    -------
    FastAPI
        A configured FastAPI application instance.
    """
    settings = settings or Settings()
    app = FastAPI(title=settings.project_name, version=settings.api_version)
    app.state.user_service = service

    @app.exception_handler(RequestValidationError)
    async def invalid_payload_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed bodies are a client error like any other bad input.
        logger.debug("Rejected payload for %s %s: %s", request.method, request.url.path, exc.errors())
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": "invalid JSON payload"})

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict:
        return {"status": "ok"}

    app.include_router(v1_router, prefix="/api/v1")
    return app
