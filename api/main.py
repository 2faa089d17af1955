"""
api/main.py -- FastAPI application entry point for SessionGate.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  0. attach_rotated_token  -- copies a rotated access token onto every response
     log_requests          -- one log line per request, rejected ones included
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Lifespan builds the database engine and the stores on startup and disposes
the engine on shutdown. Every router installs the request guard
(auth.dependencies.authenticate_request); only @public handlers skip it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.posts import router as posts_router
from api.routes.v1.users import router as users_router
from auth.dependencies import ACCESS_TOKEN_HEADER, require_identity
from auth.models import AccessClaims
from auth.sessions import SessionManager
from auth.store import TokenStore
from core.config import get_settings
from core.db import create_db_engine
from core.errors import ServiceError
from posts.store import PostStore
from users.store import UserStore

API_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessiongate.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the engine and stores on startup; dispose the engine on shutdown.

    All stores share one engine. SessionManager is the only component that
    writes token records.
    """
    logger.info("SessionGate API starting up")
    engine = create_db_engine(settings.database_url)
    app.state.engine = engine
    app.state.settings = settings
    app.state.users = UserStore(engine)
    app.state.token_store = TokenStore(engine)
    app.state.sessions = SessionManager(app.state.users, app.state.token_store, settings)
    app.state.posts = PostStore(engine)
    logger.info("Database initialized (%s)", engine.url.render_as_string(hide_password=True))

    yield

    engine.dispose()
    logger.info("SessionGate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="SessionGate API",
    description="Email/password accounts with JWT access and refresh token sessions.",
    version=API_VERSION,
    lifespan=lifespan,
    # Built-in /docs, /redoc and /openapi.json are replaced by guarded routes below.
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps everything registered before it, so the last call is
# the outermost layer. Registered innermost first: SlowAPI -> CORS ->
# TrustedHost; the request logging middleware below wraps all three.
# ---------------------------------------------------------------------------

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    # Browsers hide response headers from scripts unless they are exposed.
    expose_headers=[ACCESS_TOKEN_HEADER],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts,
)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Rotated access token middleware
#
# The guard returns a rotated token through the injected Response, which
# FastAPI merges only into responses it builds itself. Handlers that return a
# Response directly (/docs, /redoc, /openapi.json) would drop it, so the token
# is also copied from request.state here.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def attach_rotated_token(request: Request, call_next):
    response = await call_next(request)
    token = getattr(request.state, "rotated_access_token", None)
    if token and ACCESS_TOKEN_HEADER not in response.headers:
        response.headers[ACCESS_TOKEN_HEADER] = token
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(posts_router, prefix="/api/v1", tags=["Posts"])

# ---------------------------------------------------------------------------
# Guarded API documentation
#
# The schema lists every route, so browsing it requires a valid Bearer token.
# ---------------------------------------------------------------------------


@app.get("/docs", include_in_schema=False)
def docs(identity: AccessClaims = Depends(require_identity)):
    """Swagger UI -- requires authentication."""
    return get_swagger_ui_html(openapi_url="/openapi.json", title="SessionGate API")


@app.get("/redoc", include_in_schema=False)
def redoc(identity: AccessClaims = Depends(require_identity)):
    """ReDoc UI -- requires authentication."""
    return get_redoc_html(openapi_url="/openapi.json", title="SessionGate API")


@app.get("/openapi.json", include_in_schema=False)
def openapi_schema(identity: AccessClaims = Depends(require_identity)) -> JSONResponse:
    """OpenAPI schema -- requires authentication.

    Swagger UI and ReDoc fetch this from the browser without the Bearer
    header, so they render the schema only behind a proxy or client that
    injects Authorization.
    """
    return JSONResponse(app.openapi())


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Render a domain error.

    4xx errors are returned as raised. 5xx errors are logged with their cause;
    a 500 is replaced by a generic body so storage and configuration details
    stay in the server log.
    """
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s",
            type(exc).__name__,
            request.method,
            request.url.path,
            exc.message,
            exc_info=exc,
        )
    if exc.status_code == 500:
        return _error_response(500, "internal_error", "An unexpected error occurred.")
    response = _error_response(exc.status_code, exc.error_code, exc.message, exc.detail)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error_response(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 route, 405 method)."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a guarded router) so load balancers can
# reach it without a token. No rate limit applied.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=API_VERSION)
