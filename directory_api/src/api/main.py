from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.core.errors import (
    DirectoryError,
    InvalidRequestError,
    NotFoundError,
    SlugConflictError,
    UnavailableError,
)
from src.core.logging import configure_logging, correlation_id_var, site_key_var
from src.core.settings import get_app_settings
from src.db.session import create_tables
from src.schemas.common import ErrorInfo, ErrorResponse, MessageResponse

# Routers
from src.api.routes.admin import router as admin_router
from src.api.routes.permissions import router as permissions_router
from src.api.routes.public import PUBLIC_PREFIX, router as public_router

settings = get_app_settings()

# Configure structured logging once at import
configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness checks."},
    {"name": "Public", "description": "Slug resolution and canonical redirects."},
    {"name": "Permissions", "description": "Effective permission checks for the current user."},
    {"name": "Admin", "description": "Membership listings and slug publishing."},
]

app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    openapi_tags=openapi_tags,
)

# CORS - avoid wildcard with credentials
cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
    logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
    cors_allow_credentials = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=cors_allow_credentials,
    allow_methods=settings.CORS_ALLOW_METHODS,
    allow_headers=settings.CORS_ALLOW_HEADERS,
)


_PUBLIC_PATH_PREFIX = f"/api/v1{PUBLIC_PREFIX}/"


def _site_key_from_path(path: str) -> Optional[str]:
    """Site key of a public path (/api/v1/public/{lang}/{site_key}/...), else None."""
    if not path.startswith(_PUBLIC_PATH_PREFIX):
        return None
    parts = path[len(_PUBLIC_PATH_PREFIX):].split("/")
    if len(parts) < 3 or not parts[1]:
        return None
    return parts[1]


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Enrich request context with a correlation id and, on public paths, the
    site key, for logging and error responses.
    Adds 'X-Correlation-ID' to every response.
    """
    corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
    token_corr = correlation_id_var.set(corr)
    token_site = site_key_var.set(_site_key_from_path(request.url.path))
    request.state.correlation_id = corr

    logger.info("Incoming request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token_corr)
        site_key_var.reset(token_site)

    response.headers["X-Correlation-ID"] = corr
    return response


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details),
        correlation_id=getattr(request.state, "correlation_id", None),
        site_key=request.path_params.get("site_key"),
        path=request.url.path,
        method=request.method,
        timestamp=datetime.now(tz=timezone.utc),
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """
    Global handler for HTTPException to produce a standardized error envelope.
    """
    detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
    response = _build_error_response(
        request=request,
        status_code=exc.status_code,
        error_type="http_error",
        message=str(detail),
        details=None if isinstance(exc.detail, str) else exc.detail,
    )
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Global handler for request validation errors with a standard structure.
    """
    return _build_error_response(
        request=request,
        status_code=422,
        error_type="validation_error",
        message="Request validation failed",
        details=exc.errors(),
    )


@app.exception_handler(DirectoryError)
async def directory_exception_handler(request: Request, exc: DirectoryError):
    """
    Map resolver errors onto HTTP statuses.

    NotFound is a plain 404. Unavailable is a transient 503 the client may
    retry. InvalidRequest is a programming error: logged, and reported to the
    client without details.
    """
    if isinstance(exc, NotFoundError):
        status_code, details = 404, exc.details
    elif isinstance(exc, UnavailableError):
        logger.warning("Lookup unavailable for %s: %s", request.url.path, exc.__cause__ or exc)
        status_code, details = 503, None
    elif isinstance(exc, SlugConflictError):
        status_code, details = 409, exc.details
    elif isinstance(exc, InvalidRequestError):
        logger.error("Invalid permission request on %s", request.url.path, exc_info=exc)
        return _build_error_response(
            request=request,
            status_code=500,
            error_type="internal_error",
            message="An unexpected error occurred",
        )
    else:
        logger.error("Unmapped directory error on %s", request.url.path, exc_info=exc)
        status_code, details = 500, None
    return _build_error_response(
        request=request,
        status_code=status_code,
        error_type=exc.error_type,
        message=exc.message,
        details=details,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _build_error_response(
        request=request,
        status_code=500,
        error_type="internal_error",
        message="An unexpected error occurred",
        details=None,
    )


@app.on_event("startup")
async def on_startup() -> None:
    """
    Optionally create the lookup tables on service startup.
    """
    if settings.CREATE_TABLES_ON_STARTUP:
        try:
            logger.info("Creating lookup tables")
            await create_tables()
            logger.info("Lookup tables ready.")
        except Exception as exc:
            logger.exception("Table creation failed: %s", exc)
            # Keep serving; lookups report Unavailable until the database is reachable.


# Build API v1 router and include sub-routers
api_v1 = APIRouter(prefix="/api/v1")


# PUBLIC_INTERFACE
@api_v1.get(
    "/health",
    response_model=MessageResponse,
    summary="Health Check",
    tags=["Health"],
)
def health_check() -> MessageResponse:
    """
    Basic liveness health check endpoint.

    Returns:
        MessageResponse: Simple confirmation that the service is running.
    """
    return MessageResponse(message="Healthy")


# Include all routers under /api/v1
api_v1.include_router(public_router)
api_v1.include_router(permissions_router)
api_v1.include_router(admin_router)

# Attach api_v1 to app
app.include_router(api_v1)
