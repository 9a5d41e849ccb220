"""
Mechanic Chat - FastAPI Application

Main entry point for the backend API.
Provides the paid chat-support endpoints for users and the admin console.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from mechanic_chat.config.settings import settings
from mechanic_chat.infrastructure.exceptions import MechanicChatError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info(f"Mechanic Chat backend starting in {settings.environment} mode...")

    from mechanic_chat.infrastructure.db.database import init_db, close_db, get_session_context
    from mechanic_chat.infrastructure.services.auth_service import AuthService
    from mechanic_chat.infrastructure.services.attachment_sweeper import (
        start_sweeper,
        stop_sweeper,
    )

    await init_db()
    logger.info("Database connection pool initialized")

    async with get_session_context() as session:
        await AuthService(session).bootstrap_admin()

    sweeper = None
    if settings.attachment_sweep_enabled:
        sweeper = start_sweeper(settings.attachment_sweep_interval_seconds)

    yield

    # Shutdown
    await stop_sweeper(sweeper)
    await close_db()
    logger.info("Database connection pool closed")
    logger.info("Mechanic Chat backend shutting down...")


app = FastAPI(
    title="Mechanic Chat",
    description="Paid chat support with professional mechanics",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)

# CORS configuration from Settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, client, status and latency. Never bodies."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        client = request.client.host if request.client else "-"
        logger.info(
            f"{request.method} {request.url.path} from {client} "
            f"-> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response


app.add_middleware(RequestLoggingMiddleware)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(MechanicChatError)
async def app_error_handler(request: Request, exc: MechanicChatError):
    """
    Map application errors to their HTTP status.

    Internal failures are logged with context and returned opaque.
    """
    if exc.status_code >= 500:
        logger.error(
            f"{exc.__class__.__name__} on {request.method} {request.url.path}: "
            f"{exc.message} {exc.details}",
            exc_info=exc.original_error,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "InternalError", "message": "Internal server error", "details": {}},
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "mechanic-chat"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Mechanic Chat API",
        "version": "1.0.0",
        "docs": "/docs",
    }


# ============================================================================
# Import and register routers
# ============================================================================

from mechanic_chat.api.routes import users, subscriptions, chats, attachments, admin  # noqa: E402

app.include_router(users.router, prefix="/api", tags=["Users"])
app.include_router(subscriptions.router, prefix="/api", tags=["Subscriptions"])
app.include_router(chats.router, prefix="/api", tags=["Chat"])
app.include_router(attachments.router, prefix="/api", tags=["Attachments"])
app.include_router(admin.router, prefix="/api")
