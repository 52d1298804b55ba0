"""Lease document API - Main FastAPI application."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from sqlalchemy import text

from leasedoc_api.db.session import SessionLocal
from leasedoc_api.documents.errors import DocumentError
from leasedoc_api.middleware.auth import AuthMiddleware
from leasedoc_api.middleware.correlation import CorrelationIDMiddleware, CorrelationIdLogFilter
from leasedoc_api.routes import documents
from leasedoc_api.settings import get_settings

settings = get_settings()

# Configure logging
_log_handler = logging.StreamHandler(sys.stdout)
_log_handler.addFilter(CorrelationIdLogFilter())
logging.basicConfig(
    level=settings.log_level,
    format=(
        '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s", '
        '"module": "%(name)s", "correlation_id": "%(correlation_id)s"}'
        if settings.log_format == "json"
        else "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"
    ),
    handlers=[_log_handler],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting lease document API...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise
    yield
    logger.info("Shutting down lease document API...")


# Create FastAPI app
app = FastAPI(
    title="Lease Document API",
    description="Generation and cache of lease contract documents",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Custom middleware (order matters - last added is first executed)
app.add_middleware(AuthMiddleware)
app.add_middleware(CorrelationIDMiddleware)

# Prometheus metrics
metrics_app = make_asgi_app()
app.mount("/metrics", metrics_app)

# Register routers
app.include_router(documents.router)


@app.exception_handler(DocumentError)
async def document_error_handler(request: Request, exc: DocumentError):
    """Answer pipeline errors with a stable code and a safe message."""
    return JSONResponse(
        status_code=exc.http_status,
        content={"error": exc.message, "code": exc.code},
        headers={"x-correlation-id": getattr(request.state, "correlation_id", "") or ""},
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    """Log unexpected errors server-side only."""
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
        extra={"correlation_id": getattr(request.state, "correlation_id", None)},
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "code": "internal_error"},
    )


@app.get("/health")
async def health_check():
    """Health check endpoint (basic liveness)."""
    return {
        "status": "healthy",
        "service": "leasedoc-api",
        "version": "0.1.0",
    }


@app.get("/ready")
def readiness_check():
    """Readiness check endpoint (verifies dependencies)."""
    checks = {
        "database": False,
        "migrations": False,
        "object_storage": False,
        "redis": None,  # None if the local render lock is used
    }

    # Check database connectivity
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = True

        # Check Alembic migrations are at head
        from alembic.config import Config
        from alembic.runtime.migration import MigrationContext
        from alembic.script import ScriptDirectory

        context = MigrationContext.configure(db.connection())
        current_rev = context.get_current_revision()
        alembic_ini_path = os.path.join(os.path.dirname(__file__), "..", "alembic.ini")
        alembic_cfg = Config(alembic_ini_path)
        alembic_cfg.set_main_option("script_location", os.path.join(os.path.dirname(__file__), "..", "alembic"))
        head_rev = ScriptDirectory.from_config(alembic_cfg).get_current_head()
        checks["migrations"] = current_rev == head_rev
        if not checks["migrations"]:
            logger.warning(f"Migrations not at head: current={current_rev}, head={head_rev}")
    except Exception as e:
        logger.error(f"Database check failed: {e}")
    finally:
        db.close()

    # Check object storage (MinIO/S3) connectivity and bucket existence
    from leasedoc_api.storage.service import get_storage_service

    checks["object_storage"] = get_storage_service().is_available()

    # Check Redis when it backs the render lock
    if settings.render_lock_backend == "redis":
        from leasedoc_api.documents.locks import get_render_lock

        checks["redis"] = get_render_lock().ping()

    required_checks = [name for name, value in checks.items() if value is not None]
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
        "service": "Lease Document API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
    }
