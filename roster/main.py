"""
FastAPI application entry point.

This module initializes the FastAPI application, configures middleware,
registers the API routers and maps ingestion errors to JSON responses.
"""
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.logging_config import configure_logging
from .api.routers import admin, auth, records, uploads
from .domain.ingestion.exceptions import IngestionError

# Ensure logging is configured before the application starts serving requests.
configure_logging(settings.log_level)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown events."""
    if os.getenv("SKIP_DB_INIT") == "1":
        logger.info("SKIP_DB_INIT=1 detected; skipping database bootstrap during startup")
        yield
        return

    try:
        from .core.security import init_auth_tables
        from .db.models import create_tables

        logger.info("Initializing database tables...")
        init_auth_tables()
        create_tables()
        logger.info("All database tables initialized successfully")
    except Exception:
        logger.exception("Failed to initialize database tables; the application cannot start")
        raise

    yield


app = FastAPI(
    title="Roster API",
    version="1.0.0",
    description="Upload student spreadsheets and browse, filter and export their rows",
    lifespan=lifespan
)

allowed_origins = [origin.strip() for origin in settings.allowed_origins.split(",") if origin.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(IngestionError)
async def ingestion_error_handler(request: Request, exc: IngestionError):
    body = {"success": False, "message": exc.message}
    if exc.upload_id:
        body["uploadId"] = exc.upload_id
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"success": False, "message": "Internal server error"})


app.include_router(auth.router)
app.include_router(uploads.router)
app.include_router(records.router)
app.include_router(admin.router)


@app.get("/")
async def root():
    """Root endpoint returning API information."""
    return {
        "message": "Roster API",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for deployment monitoring."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "service": "roster-api"
    }
