"""
Main FastAPI application entry point.
"""
import logging
import os
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from apihub.api.v1.router import api_router, gateway_router
from apihub.core.config import settings
from apihub.core.database import Base, SessionLocal, engine
from apihub.core.exceptions import APIHubError, error_body
from apihub.core.logging_config import setup_logging
from apihub.middleware.request_logging import RequestLoggingMiddleware

# Import all models to ensure they register with Base.metadata
from apihub.models import APIKey, AdminBootstrap, Dataset, Endpoint, RequestLog, User  # noqa: F401

setup_logging()
logger = logging.getLogger(__name__)


def run_migrations() -> None:
    """Apply Alembic migrations when a hosted DATABASE_URL is configured."""
    if not os.getenv("DATABASE_URL"):
        logger.info("[MIGRATION] DATABASE_URL not set, skipping migrations (local dev mode)")
        return
    try:
        from alembic import command
        from alembic.config import Config

        logger.info("[MIGRATION] DATABASE_URL detected, running Alembic migrations...")
        command.upgrade(Config("alembic.ini"), "head")
        logger.info("[MIGRATION] Alembic migrations completed (or already up-to-date)")
    except Exception as e:
        # Startup continues; create_all below and the health endpoint surface real problems
        trace_id = str(uuid.uuid4())
        logger.warning(f"[MIGRATION] [{trace_id}] Alembic migration failed: {e}")
        logger.debug(f"[MIGRATION] [{trace_id}] Migration error details:", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    logger.info(f"Starting up {settings.APP_NAME} ({settings.APP_ENV})...")

    run_migrations()

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}", exc_info=True)

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            logger.info("Database connectivity verified")
        finally:
            db.close()
    except SQLAlchemyError as e:
        logger.error(f"Database connectivity test failed: {e}. Check DATABASE_URL.", exc_info=True)

    yield
    logger.info(f"Shutting down {settings.APP_NAME}...")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Publish datasets as read-only REST endpoints behind API keys",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    redirect_slashes=False,
)

# Request logging middleware (must be added before other middleware)
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix="/api")
app.include_router(gateway_router, prefix=settings.API_VERSION_PREFIX, tags=["gateway"])


@app.exception_handler(APIHubError)
async def apihub_exception_handler(request: Request, exc: APIHubError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.error))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Collapse pydantic errors into one readable message."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return JSONResponse(status_code=400, content=error_body("; ".join(messages) or "Invalid request"))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors with trace_id."""
    trace_id = getattr(request.state, "trace_id", str(uuid.uuid4()))
    logger.error(f"[{trace_id}] Unhandled exception: {type(exc).__name__}: {exc}", exc_info=True)

    if isinstance(exc, SQLAlchemyError):
        message = "Database error"
    else:
        message = str(exc) if settings.DEBUG else "Internal server error"

    body = error_body(message)
    body["trace_id"] = trace_id
    return JSONResponse(status_code=500, content=body)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "success": True,
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "docs": "/docs",
        "gateway": settings.API_VERSION_PREFIX,
    }


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    uvicorn.run("apihub.main:app", host=settings.HOST, port=settings.PORT, reload=settings.DEBUG)


if __name__ == "__main__":
    run()
