"""
Team Tasks API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.database import async_session_factory
from app.core.exception_handlers import register_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestContextMiddleware, SecurityHeadersMiddleware
from app.core.realtime import EventBroadcaster
from app.core.redis import close_redis
from app.api.v1 import router as api_v1_router
from app.api.v1.auth import router as auth_router
from app.api.v1.realtime import router as realtime_router

settings = get_settings()
log = structlog.get_logger()


def log_audit_failure(entry, exc: Exception) -> None:
    """Default hook for audit appends that could not be written."""
    log.critical(
        "activity.audit_gap",
        type=entry.type,
        actor_id=str(entry.actor_id),
        error=type(exc).__name__,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Team Tasks",
        description="Task coordination for superadmins, team leaders and team members.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # One hub per process, injected into publishers through app.state.
    app.state.broadcaster = EventBroadcaster()
    app.state.session_factory = async_session_factory
    app.state.on_audit_failure = log_audit_failure

    # Middleware (order matters - outermost last)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)

    app.include_router(auth_router, prefix="/auth", tags=["Authentication"])
    app.include_router(api_v1_router, prefix="/api/v1")
    app.include_router(realtime_router, tags=["Realtime"])

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        log.info("Team Tasks starting", debug=settings.debug)

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Team Tasks shutting down")
        await close_redis()

    return app


app = create_app()
