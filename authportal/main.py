"""
FastAPI Auth Portal Application Factory
=======================================

Entry point for the portal that hosts the web application's sign-in pages
and keeps the client-side session in step with the external Auth Service.

Architecture:
    Browser pages <-> Portal (this service) <-> Auth Service (GoTrue) <-> Google / GitHub

    The portal is a single-user companion process running next to the browser.
    It holds one session and one browser location for the whole process and
    its routes carry no access check, so it binds to 127.0.0.1 by default.
    Do not expose it on a shared interface.

Routers:
    - /auth/*       : Session snapshot, sign-in, sign-out, OAuth callback
    - /realtime/*   : WebSocket channel for session snapshots and navigation
    - /health       : Health check endpoint

Environment Variables Required:
    - DASHBOARD_URL: Post-login destination
    - AUTH_URL: Base URL of the auth entry pages
    - AUTH_SERVICE_URL: Auth Service project URL
    - AUTH_SERVICE_API_KEY: Auth Service public API key
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn authportal.main:create_application --factory --reload --port 5173

    Installed:
        authportal    # binds PORTAL_HOST:PORTAL_PORT (127.0.0.1:5173 by default)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .auth import AuthProvider, auth_router
from .auth.gotrue import GoTrueAuthService
from .auth.redirects import BrowserLocation
from .auth.service import AuthService
from .config import Settings, get_settings, validate_configuration
from .models import HealthResponse
from .realtime import ConnectionManager, realtime_router
from .realtime.ws import navigate_message, session_message

logger = logging.getLogger("authportal.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Validate configuration
        - Create the Auth Service client (unless one was injected)
        - Create the AuthProvider and subscribe to session changes
        - Wire store changes and navigation to the realtime channel

    Shutdown tasks:
        - Release the session subscription
        - Close WebSocket connections
        - Close the Auth Service HTTP client
    """
    settings: Settings = app.state.settings
    setup_logging(settings.LOG_LEVEL)

    status = validate_configuration(settings)
    for warning in status["warnings"]:
        logger.warning(f"Configuration warning: {warning}")
    for error in status["errors"]:
        logger.error(f"Configuration error: {error}")

    location: BrowserLocation = app.state.location
    manager: ConnectionManager = app.state.realtime_manager

    owns_service = app.state.auth_service is None
    if owns_service:
        app.state.auth_service = GoTrueAuthService.from_settings(settings, location)

    provider = AuthProvider.from_settings(app.state.auth_service, location, settings)
    provider.store.observe(lambda session: manager.publish_nowait(session_message(session)))
    remove_navigation_hook = location.on_navigate(lambda url: manager.publish_nowait(navigate_message(url)))
    app.state.auth_provider = provider

    provider.start()
    logger.info(
        "Auth portal started",
        extra={
            "auth_service_url": settings.auth_service_url,
            "dashboard_url": settings.dashboard_url,
        },
    )

    yield

    logger.info("Shutting down auth portal")
    await provider.close()
    remove_navigation_hook()
    await manager.disconnect_all()

    if owns_service:
        await app.state.auth_service.aclose()
        app.state.auth_service = None

    logger.info("Auth portal shutdown complete")


def create_application(
    settings: Optional[Settings] = None,
    auth_service: Optional[AuthService] = None,
    location: Optional[BrowserLocation] = None,
) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Settings to use instead of the environment
        auth_service: Auth Service client to use instead of GoTrue over HTTP
        location: Browser location mirror shared with ``auth_service``

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Auth Portal",
        description="Client-side session manager for OAuth sign-in via an external Auth Service",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.location = location or BrowserLocation()
    app.state.realtime_manager = ConnectionManager()
    app.state.auth_service = auth_service
    app.state.auth_provider = None

    if settings.allowed_origins_list:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.allowed_origins_list,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=["*"],
        )

    app.include_router(auth_router)
    app.include_router(realtime_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check(request: Request):
        provider: Optional[AuthProvider] = request.app.state.auth_provider
        return HealthResponse(
            status="ok",
            service="authportal",
            session_resolved=provider is not None and not provider.store.is_loading,
        )

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        return {
            "service": "authportal",
            "version": "1.0.0",
            "endpoints": {
                "health": "/health",
                "session": "/auth/session",
                "signin": "/auth/signin/{provider}",
                "signout": "/auth/signout",
                "realtime": "/realtime/ws",
            },
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log unhandled errors and return a standardized 500 response."""
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
            },
            exc_info=True,
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None,
            },
        )

    return app


def run() -> None:
    """Console entry point."""
    settings = get_settings()
    uvicorn.run(
        "authportal.main:create_application",
        factory=True,
        host=settings.PORTAL_HOST,
        port=settings.PORTAL_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
