"""
Echo FastAPI Application Entry Point.

Run with: uvicorn echo_api.main:app --reload
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from echo_api import __version__
from echo_api.api.deps import GatewayDep, StorageDep, enforce_rate_limit
from echo_api.api.routes import auth, chat, share
from echo_api.config import Settings, get_settings, sanitize_error
from echo_api.errors import EchoError
from echo_api.logging_config import setup_logging
from echo_api.schemas.base import ErrorResponse
from echo_api.services.auth import build_auth_provider
from echo_api.services.model_gateway import ModelGateway
from echo_api.services.rate_limiter import RateLimiter
from echo_api.services.turn_orchestrator import TurnOrchestrator
from echo_api.storage import Storage, select_storage

logger = logging.getLogger(__name__)
settings = get_settings()

# Pending title tasks get this long to finish on shutdown
SHUTDOWN_DRAIN_SECONDS = 10.0


def init_app_state(
    app: FastAPI,
    storage: Storage,
    settings: Settings,
    gateway: ModelGateway | None = None,
) -> None:
    """Wire the services every request dependency reads from app.state."""
    gateway = gateway or ModelGateway(settings)
    app.state.settings = settings
    app.state.storage = storage
    app.state.gateway = gateway
    app.state.orchestrator = TurnOrchestrator(storage.conversations, gateway, settings)
    app.state.auth_provider = build_auth_provider(settings)
    app.state.rate_limiter = (
        RateLimiter(settings.rate_limit_requests, settings.rate_limit_window_seconds)
        if settings.rate_limit_enabled
        else None
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown."""
    # Startup
    setup_logging(settings.log_level)
    if getattr(app.state, "storage", None) is None:
        init_app_state(app, await select_storage(settings), settings)
    logger.info(
        "%s started (environment=%s, storage=%s, ai=%s)",
        settings.app_name,
        settings.environment,
        app.state.storage.backend,
        "configured" if app.state.gateway.configured else "placeholder",
    )
    yield
    # Shutdown
    try:
        await asyncio.wait_for(app.state.orchestrator.drain(), timeout=SHUTDOWN_DRAIN_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("Abandoning %d pending title tasks", app.state.orchestrator.pending_tasks)
    await app.state.storage.aclose()


app = FastAPI(
    title=settings.app_name,
    description="Conversational chat API",
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


if settings.environment == "development":

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s %s -> %d (%.1fms)",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - start) * 1000,
        )
        return response


# =============================================================================
# ERROR ENVELOPE
# =============================================================================


def error_response(
    status_code: int,
    message: str,
    *,
    error: str | None = None,
    conversation_id=None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    body = ErrorResponse(message=message, error=error, conversation_id=conversation_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


@app.exception_handler(EchoError)
async def echo_error_handler(request: Request, exc: EchoError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.detail or exc.message)
    error = None
    if exc.detail and settings.environment == "development":
        error = exc.detail
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return error_response(
        exc.status_code,
        exc.message,
        error=error,
        conversation_id=exc.conversation_id,
        headers=headers,
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.method} {request.url.path} not found"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path"))
        problems.append(f"{location}: {err.get('msg')}" if location else err.get("msg", "invalid"))
    return error_response(400, "Invalid request: " + "; ".join(problems))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return error_response(
        500,
        "Internal server error",
        error=sanitize_error(exc, generic_message="") or None,
    )


# =============================================================================
# ROUTES
# =============================================================================

rate_limited = [Depends(enforce_rate_limit)]

app.include_router(auth.router, prefix=settings.api_prefix, dependencies=rate_limited)
app.include_router(chat.router, prefix=settings.api_prefix, dependencies=rate_limited)
app.include_router(share.router, prefix=settings.api_prefix, dependencies=rate_limited)


@app.get(f"{settings.api_prefix}/health")
async def health_check(storage: StorageDep, gateway: GatewayDep) -> dict:
    """Health check endpoint."""
    return {
        "success": True,
        "status": "healthy",
        "storage": storage.backend,
        "aiConfigured": gateway.configured,
    }
