"""
Portfolio Media API - FastAPI Application Entry Point

This module builds the FastAPI application that stores and deletes media for
the portfolio site's admin CMS:

- Lifespan hook configuring logging from Settings
- CORS middleware for the CMS origin
- Request logging middleware adding X-Request-ID and X-Process-Time headers
- The v1 media router under /api/v1
- Exception handlers rendering media errors, 404s and 500s as JSON

Usage:
    uvicorn portfolio_media.main:app --host 0.0.0.0 --port 8000 --reload
"""

import logging
import time
import uuid

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import uvicorn

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portfolio_media import __version__
from portfolio_media.api.v1 import api_router
from portfolio_media.api.v1.media import media_error_handler
from portfolio_media.config import get_settings
from portfolio_media.services.errors import MediaServiceError
from portfolio_media.utils.logger import setup_logging


logger = logging.getLogger(__name__)

HTTP_ERROR_THRESHOLD = 400


# =============================================================================
# Application Lifespan Management
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """
    Configure logging on startup and report the storage target.

    No connections are opened here: the boto3 client is created lazily on
    the first storage operation.
    """
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    logger.info(
        f"Starting {settings.app_name} ({settings.app_env}) on {settings.host}:{settings.port}"
    )
    if settings.is_storage_configured:
        logger.info(
            f"Media bucket '{settings.s3_bucket_name}', "
            f"public URLs under {settings.resolved_public_base_url}"
        )
    else:
        logger.warning("S3 storage is not configured; uploads and deletes will be refused")

    yield

    logger.info(f"{settings.app_name} shutdown complete")


# =============================================================================
# FastAPI Application Instance
# =============================================================================

_settings = get_settings()

app = FastAPI(
    title="Portfolio Media API",
    description=(
        "Uploads images and videos for the portfolio CMS. HEIC/HEIF photos are "
        "converted to JPEG, files are validated per category and stored in an "
        "S3-compatible bucket under unique keys."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    debug=_settings.debug,
)


# =============================================================================
# Middleware Configuration
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "X-Process-Time"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next) -> Response:
    """
    Log each request with its duration and tag the response for tracing.

    Adds ``X-Request-ID`` (client-supplied or generated) and ``X-Process-Time``.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    start_time = time.perf_counter()

    logger.debug(f"Request started: {request.method} {request.url.path} [Request-ID: {request_id}]")

    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            f"Request failed: {request.method} {request.url.path} [Request-ID: {request_id}]"
        )
        raise

    process_time_ms = round((time.perf_counter() - start_time) * 1000, 2)
    response.headers["X-Process-Time"] = f"{process_time_ms}ms"
    response.headers["X-Request-ID"] = request_id

    log_level = logging.INFO if response.status_code < HTTP_ERROR_THRESHOLD else logging.WARNING
    logger.log(
        log_level,
        f"Request completed: {request.method} {request.url.path} "
        f"[Status: {response.status_code}] [Time: {process_time_ms}ms] [Request-ID: {request_id}]",
    )
    return response


# =============================================================================
# API Router Registration
# =============================================================================

app.include_router(api_router, prefix="/api/v1")


# =============================================================================
# Core Endpoints
# =============================================================================


@app.get("/", tags=["root"], summary="API Root")
async def root() -> dict[str, Any]:
    """Return the API name, version and where to find things."""
    return {
        "name": "Portfolio Media API",
        "version": __version__,
        "documentation": {
            "swagger": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json",
        },
        "api_prefix": "/api/v1",
        "endpoints": {
            "upload_image": "/api/v1/media/image",
            "upload_video": "/api/v1/media/video",
            "delete": "/api/v1/media/",
            "bulk_delete": "/api/v1/media/bulk-delete",
        },
    }


@app.get("/health", tags=["health"], summary="Health Check")
async def health_check() -> dict[str, Any]:
    """
    Liveness probe.

    Always answers ``healthy`` while the process runs; ``storage_configured``
    tells monitoring whether uploads can succeed.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": __version__,
        "service": get_settings().app_name,
        "storage_configured": get_settings().is_storage_configured,
    }


# =============================================================================
# Exception Handlers
# =============================================================================

app.add_exception_handler(MediaServiceError, media_error_handler)


@app.exception_handler(404)
async def not_found_handler(request: Request, _exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={
            "error": "not_found",
            "message": f"The requested path '{request.url.path}' was not found",
            "status_code": 404,
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer without leaking internals."""
    logger.error(
        f"Internal server error on {request.method} {request.url.path}: {exc}", exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred. Please try again later.",
            "status_code": 500,
        },
    )


if __name__ == "__main__":
    uvicorn.run(
        "portfolio_media.main:app",
        host=_settings.host,
        port=_settings.port,
        reload=_settings.debug,
        log_level=_settings.log_level,
    )
