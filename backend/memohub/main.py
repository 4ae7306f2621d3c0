"""
MemoHub Backend — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers.
Who:   uvicorn (uvicorn memohub.main:app) and the test client.

Error mapping (every body is an ErrorResponse):
    AuthenticationRequiredError  → 401 (+ WWW-Authenticate: Bearer)
    PermissionDeniedError        → 403
    NotFoundError                → 404
    ConflictError (+ subclasses) → 409
    InvitationExpiredError       → 410
    ValidationError              → 400
    RateLimitExceededError       → 429 (+ Retry-After)
    DependencyFailureError       → 503 (+ Retry-After when known)
    DatabaseError                → 500, generic message
    anything else                → 500, generic message, traceback logged

Lifecycle:
    Startup:  logging, configuration check
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Optional, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from memohub import __version__
from memohub.config import settings
from memohub.database import dispose_engine
from memohub.exceptions import (
    AuthenticationRequiredError,
    ConflictError,
    DependencyFailureError,
    InvitationExpiredError,
    MemoHubError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitExceededError,
    ValidationError,
)
from memohub.middleware.logging import RequestLoggingMiddleware
from memohub.middleware.rate_limit import RateLimitMiddleware
from memohub.middleware.request_id import RequestIDMiddleware, request_id_var
from memohub.routes import ai, auth, health, invitations, memos, search, tags, teams, users

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once at startup.

    Format: 2024-05-01T12:00:00 [INFO] memohub.services.team_service: message
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our own access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("MemoHub Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving so /health can report the problem
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    if not settings.ai_enabled:
        logger.warning("GEMINI_API_KEY not set: AI routes will answer 503")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("MemoHub Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# First isinstance match wins, so subclasses must precede their bases
HTTP_STATUS_BY_ERROR: Tuple[Tuple[Type[MemoHubError], int], ...] = (
    (AuthenticationRequiredError, 401),
    (PermissionDeniedError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (InvitationExpiredError, 410),
    (ValidationError, 400),
    (RateLimitExceededError, 429),
    (DependencyFailureError, 503),
)

GENERIC_SERVER_ERROR = "An internal error occurred. Please try again later."


def status_for(exc: MemoHubError) -> int:
    for error_type, status_code in HTTP_STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _response_headers(exc: MemoHubError) -> Optional[Dict[str, str]]:
    if isinstance(exc, AuthenticationRequiredError):
        return {"WWW-Authenticate": "Bearer"}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after:
        return {"Retry-After": str(retry_after)}
    return None


def render_error(exc: MemoHubError, request_id: str) -> JSONResponse:
    """
    The error envelope for an application exception.

    4xx bodies carry the exception context as `details` (except 401, which
    never explains itself). 5xx bodies other than 503 are generic; their
    context goes to the log only.
    """
    status_code = status_for(exc)
    content = {"error": exc.error_code, "message": exc.message, "request_id": request_id}

    if status_code == 500:
        content["message"] = GENERIC_SERVER_ERROR
    elif exc.context and status_code != 401:
        content["details"] = exc.context

    return JSONResponse(status_code=status_code, content=content, headers=_response_headers(exc))


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(MemoHubError)
    async def handle_memohub_error(request: Request, exc: MemoHubError):
        rid = request_id_var.get("")
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error(
                "[%s] %s (%s): %s | Context: %s",
                rid, type(exc).__name__, exc.error_code, exc.message, exc.context,
            )
        elif status_code in (403, 409):
            logger.info("[%s] %s: %s", rid, exc.error_code, exc.message)
        elif status_code == 400:
            logger.warning("[%s] Validation error: %s", rid, exc.message)
        return render_error(exc, rid)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unhandled %s on %s %s", rid, type(exc).__name__,
                     request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": GENERIC_SERVER_ERROR,
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="MemoHub API",
        description=(
            "Personal and team memos with tags, role-based team collaboration, "
            "email invitations, search and Gemini-powered writing assistance."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(memos.router)
    app.include_router(tags.router)
    app.include_router(teams.router)
    app.include_router(invitations.router)
    app.include_router(ai.router)
    app.include_router(search.router)

    return app


app = create_app()
