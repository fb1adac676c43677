"""
Travel Log API — FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn travellog.main:app).

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware Chain:                                      │
    │  ┌──────────┐ ┌────────┐ ┌────────────┐ ┌──────────┐   │
    │  │  Req ID  │→│  CORS  │→│  Logging   │→│  GZip    │   │
    │  └──────────┘ └────────┘ └────────────┘ └──────────┘   │
    │                                                         │
    │  Routes:                                                │
    │  /api  /health  /api/auth  /api/users  /api/trips       │
    │  /api/places  /ws                                       │
    │                                                         │
    │  Exception Handlers:                                    │
    │  TravelLogError → status │ HTTP 404/405 │ other → 500   │
    └─────────────────────────────────────────────────────────┘

Every error response has the same shape: {"code", "message", ...properties}.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from travellog import __version__
from travellog.config import settings
from travellog.database import dispose_engine
from travellog.exceptions import UNEXPECTED_MESSAGE, ResourceNotFoundError, TravelLogError
from travellog.middleware.logging import RequestLoggingMiddleware
from travellog.middleware.request_id import RequestIDLogFilter, RequestIDMiddleware
from travellog.routes import auth, health, places, realtime, trips, users

logger = logging.getLogger(__name__)

# Response headers browsers may read on cross-origin requests
EXPOSED_HEADERS = [
    "Link",
    "Location",
    "Pagination-Page",
    "Pagination-Page-Size",
    "Pagination-Total",
    "Pagination-Filtered-Total",
    "X-Request-ID",
]


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-01T12:00:00 [INFO] [3fa2b1c0] travellog.access: GET /api/trips 200 ...

    The bracketed request ID is filled in by RequestIDLogFilter; records
    emitted outside of a request show `-`.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] [%(request_id)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Our own access log replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    if settings.log_level != "DEBUG":
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Travel Log API %s starting up", __version__)
    logger.info("Listening for requests at %s", settings.base_url)
    if settings.cors:
        logger.info("CORS enabled for origins: %s", ", ".join(settings.cors_origins_list))

    yield

    logger.info("Travel Log API shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(status: int, code: str, message: str, **properties) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"code": code, "message": message, **properties},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        TravelLogError              → its own status, code and properties
        HTTPException 404           → 404 resourceNotFound (unknown path)
        HTTPException 405           → 405 methodNotAllowed
        HTTPException (other)       → its status, code "httpError"
        RequestValidationError      → 422 invalid (malformed path parameters)
        Exception (fallback)        → 500 unexpected

    Server errors are logged at WARNING with their stack trace; the response
    only ever carries the generic message.
    """

    @app.exception_handler(TravelLogError)
    async def handle_travel_log_error(request: Request, exc: TravelLogError):
        if exc.is_client_error:
            logger.debug("%s %s failed with %s: %s", request.method, request.url.path, exc.code, exc.message)
        else:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message, exc_info=exc)
        return JSONResponse(status_code=exc.status, content=exc.to_response_body())

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content=ResourceNotFoundError().to_response_body())
        if exc.status_code == 405:
            return error_response(
                405,
                "methodNotAllowed",
                f"The {request.method} method is not allowed for this resource",
            )
        return error_response(exc.status_code, "httpError", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        details = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
        )
        return error_response(422, "invalid", f"Request validation failed: {details}")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.warning(
            "Unexpected error on %s %s: %s",
            request.method,
            request.url.path,
            str(exc),
            exc_info=True,
        )
        return error_response(500, "unexpected", UNEXPECTED_MESSAGE)


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Travel Log API",
        description=(
            "Record trips and the places visited along the way. "
            "Users own trips; trips group geolocated places."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → CORS → Logging → GZip → routes
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)

    if settings.cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins_list,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=EXPOSED_HEADERS,
        )

    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(trips.router)
    app.include_router(places.router)
    app.include_router(realtime.router)

    return app


app = create_app()
