"""
api/main.py -- FastAPI application entry point for the auth backend.

Run with:      uvicorn asgi:app --reload
               python main.py --port 8000

Middleware stack (outermost to innermost):
  1. cors_headers           -- echoes Origin and adds the allowed methods/headers
  2. log_requests           -- one access log line per request with latency
  3. TrustedHostMiddleware  -- rejects requests with unexpected Host headers

Lifespan builds the user store selected by settings on startup and closes it
on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import HealthResponse
from api.routes.auth import router as auth_router
from auth.service import AuthError
from auth.store import build_store
from auth.validation import NON_FIELD_ERRORS
from core.config import get_settings

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authbackend.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the user store on startup and release it on shutdown."""
    logger.info("Auth backend starting up")
    app.state.user_store = build_store(get_settings())
    logger.info("User storage initialized (%s)", type(app.state.user_store).__name__)

    yield

    app.state.user_store.close()
    logger.info("Auth backend shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Auth Backend",
    description="Email/password signup and login over a relational users table.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() and @app.middleware both wrap the app built so far, so the
# last one registered sees the request first. TrustedHost is registered first
# to sit innermost; cors_headers last so even rejected requests carry CORS
# headers the browser can read.
# ---------------------------------------------------------------------------

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)


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


_CORS_METHODS = "POST, GET, OPTIONS, PUT, DELETE"
_CORS_HEADERS = "Accept, Content-Type, Content-Length, Accept-Encoding, X-CSRF-Token, Authorization, X-REAL"


@app.middleware("http")
async def cors_headers(request: Request, call_next):
    """Allow any browser origin to call the API.

    The request's Origin is echoed back rather than answered with "*", so the
    response names exactly one origin. Requests without Origin (curl, server
    to server) get no CORS headers at all.
    """
    response = await call_next(request)
    return _add_cors_headers(request, response)


def _add_cors_headers(request: Request, response: Response) -> Response:
    # Also called from generic_exception_handler: unhandled errors are answered
    # by ServerErrorMiddleware, outside every @app.middleware.
    origin = request.headers.get("origin")
    if origin:
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Methods"] = _CORS_METHODS
        response.headers["Access-Control-Allow-Headers"] = _CORS_HEADERS
        response.headers["Vary"] = "Origin"
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body uses the same field-keyed shape as validation failures:
# {"<field>": ["message", ...]}, with "__error__" for non-field problems.
# Clients parse one schema regardless of status code.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render the service's collected errors with the status it chose."""
    return JSONResponse(status_code=exc.status_code, content=exc.errors.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the body is not a JSON object or a field has the wrong type.

    Errors located on a named body field go under that field; anything about
    the body as a whole (malformed JSON, missing body, non-object) goes under
    __error__.
    """
    content: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = error.get("loc", ())
        if error.get("type") == "json_invalid" or len(loc) < 2:
            content.setdefault(NON_FIELD_ERRORS, []).append("cannot decode request body")
        else:
            content.setdefault(str(loc[-1]), []).append(str(error.get("msg", "invalid value")))
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return routing errors (404, 405) in the same error-map shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content={NON_FIELD_ERRORS: [str(exc.detail)]},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    response = JSONResponse(
        status_code=500,
        content={NON_FIELD_ERRORS: ["an unexpected error occurred"]},
    )
    return _add_cors_headers(request, response)


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and whether the user store answers."""
    database = "ok" if request.app.state.user_store.ping() else "error"
    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        version=API_VERSION,
        components={"app": "ok", "database": database},
    )
