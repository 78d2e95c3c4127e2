"""CCPP API - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app

from ccpp_api import __version__
from ccpp_api.errors import (
    ConflictError,
    CoreError,
    DecodeError,
    PersistenceError,
    RenderError,
    ValidationError,
)
from ccpp_api.middleware.correlation import CorrelationIdFilter, CorrelationIDMiddleware
from ccpp_api.routes import admin, logbook, provision, sync, vision
from ccpp_api.settings import get_settings

settings = get_settings()

# Configure logging
_handler = logging.StreamHandler(sys.stdout)
_handler.addFilter(CorrelationIdFilter())
if settings.log_format == "json":
    _format = (
        '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
        '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}'
    )
else:
    _format = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"
logging.basicConfig(level=settings.log_level, format=_format, handlers=[_handler])
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 422,
    DecodeError: 422,
    ConflictError: 409,
    PersistenceError: 503,
    RenderError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting CCPP API...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise
    yield
    logger.info("Shutting down CCPP API...")


app = FastAPI(
    title="CCPP API",
    description="Combined-cycle plant logbook and visual provisioning",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(logbook.router)
app.include_router(vision.router)
app.include_router(provision.router)
app.include_router(sync.router)
app.include_router(admin.router)


@app.exception_handler(CoreError)
async def core_error_handler(request: Request, exc: CoreError):
    """Translate core errors into HTTP responses the remote backend can map back."""
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
    content = {"detail": str(exc), "error": type(exc).__name__}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    return JSONResponse(status_code=status_code, content=content)


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "ccpp-api",
        "version": __version__,
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (verifies dependencies)."""
    from sqlalchemy import text

    from ccpp_api.db.session import get_session_factory

    checks = {
        "database": False,
        "redis": False,
        "object_storage": False,
    }

    try:
        db = get_session_factory()()
        try:
            db.execute(text("SELECT 1"))
            checks["database"] = True
        finally:
            db.close()
    except Exception as e:
        logger.error(f"Database check failed: {e}")

    try:
        import redis

        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        redis_client.ping()
        checks["redis"] = True
    except Exception as e:
        logger.error(f"Redis check failed: {e}")

    try:
        from ccpp_api.storage.images import get_image_store

        store = get_image_store()
        if store.client is not None and store.client.bucket_exists(store.bucket):
            checks["object_storage"] = True
        else:
            logger.warning(f"Object storage bucket {store.bucket} not reachable")
    except Exception as e:
        logger.error(f"Object storage check failed: {e}")

    # Redis only backs admin task queueing; the core serves without it
    required_checks = ["database", "object_storage"]
    all_ready = all(checks[check] for check in required_checks)

    return JSONResponse(
        content={
            "status": "ready" if all_ready else "not_ready",
            "checks": checks,
        },
        status_code=200 if all_ready else 503,
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "CCPP API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
