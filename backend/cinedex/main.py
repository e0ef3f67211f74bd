"""
Cinedex Backend: FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app(store, mailer) returns a configured app.
       Collaborators live on app.state and are injected, never imported as
       module globals, so tests can hand in an in-memory store and a
       recording mailer.
Who:   `python -m cinedex` (uvicorn factory mode) and the test suite.

Application Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                        FastAPI App                         │
    │                                                            │
    │  Middleware Chain (outermost first):                       │
    │  Recovery → RequestID → Logging → Metrics → RateLimit      │
    │           → CORS → Authenticate                            │
    │                                                            │
    │  Routes:                                                   │
    │  /v1/healthcheck   /v1/movies[/{id}]   /v1/users[...]      │
    │  /v1/tokens/...    /debug/vars                             │
    │                                                            │
    │  Exception Handlers:                                       │
    │  CinedexError → its status │ 404/405 → envelope │ 422      │
    └────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration for non-development environments
    3. Start the rate limiter's sweeper

    Shutdown (after uvicorn stops accepting connections and drains requests):
    1. Stop the sweeper
    2. Wait up to SHUTDOWN_TIMEOUT for background tasks (emails)
    3. Release the store's connection pool
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cinedex import __version__
from cinedex.config import settings
from cinedex.exceptions import CinedexError, MethodNotAllowedError, RecordNotFoundError
from cinedex.middleware.authenticate import AuthenticateMiddleware
from cinedex.middleware.logging import RequestLoggingMiddleware
from cinedex.middleware.metrics import MetricsMiddleware
from cinedex.middleware.rate_limit import RateLimitMiddleware
from cinedex.middleware.recovery import RecoveryMiddleware
from cinedex.middleware.request_id import RequestIDMiddleware, request_id_var
from cinedex.repositories import Store
from cinedex.routes import debug, health, movies, tokens, users
from cinedex.services.background import BackgroundTasks
from cinedex.services.mailer import Mailer, SmtpMailer
from cinedex.services.metrics import Metrics
from cinedex.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    When:    Called once during app startup, before anything logs.
    Format:  2024-01-15T12:00:00 [INFO] cinedex.routes.movies: Created movie 7
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("Cinedex %s starting (env=%s)", __version__, settings.env)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Non-fatal: the process keeps serving
        logger.error("Configuration error: %s", str(e))

    limiter: Optional[RateLimiter] = app.state.rate_limiter
    if limiter is not None:
        limiter.start()
        logger.info("Rate limiter: %.1f rps, burst %d", limiter.rps, limiter.burst)
    else:
        logger.info("Rate limiter disabled")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Cinedex shutting down...")

    if limiter is not None:
        await limiter.stop()

    background: BackgroundTasks = app.state.background
    if background.pending:
        logger.info("Waiting for %d background task(s)", background.pending)
    await background.wait(settings.shutdown_timeout)

    await app.state.store.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to the `{"error": ...}` envelope.

    Handler hierarchy:
        CinedexError              → exc.status_code (5xx bodies are generic)
        HTTPException 404         → 404 the requested resource could not be found
        HTTPException 405         → 405 the <METHOD> method is not supported ...
        RequestValidationError    → 422 field → message map

    Anything else propagates to RecoveryMiddleware.
    """

    @app.exception_handler(CinedexError)
    async def handle_cinedex_error(request: Request, exc: CinedexError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s on %s %s: %s | Context: %s",
                rid,
                type(exc).__name__,
                request.method,
                request.url.path,
                exc,
                exc.context,
                exc_info=exc.__cause__ is not None,
            )
        elif exc.context:
            logger.debug("[%s] %s | Context: %s", rid, type(exc).__name__, exc.context)
        return exc.to_response()

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return RecordNotFoundError().to_response()
        if exc.status_code == 405:
            return MethodNotAllowedError(request.method, headers=exc.headers).to_response()
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = {}
        for error in exc.errors():
            key = str(error["loc"][-1]) if error.get("loc") else "request"
            if error["type"] == "int_parsing":
                message = "must be an integer value"
            else:
                message = error["msg"]
            errors.setdefault(key, message)
        return JSONResponse(status_code=422, content={"error": errors})


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    store: Optional[Store] = None,
    mailer: Optional[Mailer] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        store:        Defaults to the PostgreSQL store built from settings.
        mailer:       Defaults to SMTP from settings.
        rate_limiter: Defaults to one built from LIMITER_RPS/LIMITER_BURST,
                      or none at all when LIMITER_ENABLED is false.
    """
    if store is None:
        from cinedex.repositories.sql import SqlStore

        store = SqlStore()
    if rate_limiter is None and settings.limiter_enabled:
        rate_limiter = RateLimiter(rps=settings.limiter_rps, burst=settings.limiter_burst)

    app = FastAPI(
        title="Cinedex API",
        description="Movie catalog with user accounts, bearer tokens and permission-gated writes.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.mailer = mailer or SmtpMailer()
    app.state.rate_limiter = rate_limiter
    app.state.trust_proxy_headers = settings.limiter_trust_proxy_headers
    app.state.background = BackgroundTasks()
    app.state.metrics = Metrics()
    app.state.movies_public_read = settings.movies_public_read

    # ── Register Middleware ───────────────────────────────────────────────
    # Starlette runs the LAST added middleware FIRST, so these are added
    # innermost → outermost.
    app.add_middleware(AuthenticateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_trusted_origins_list,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Expected-Version", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Location"],
    )
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RecoveryMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(movies.router)
    app.include_router(users.router)
    app.include_router(tokens.router)
    app.include_router(debug.router)

    return app
