"""
FastAPI application for lexiflow.

Provides REST API for:
- Study batch selection
- Session lifecycle and rating submission
- Progress dashboards
"""

from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from config import get_settings
from lexiflow import __version__
from lexiflow.core.errors import LexiflowError
from lexiflow.core.models import utc_now
from lexiflow.db.database import get_engine, init_db

settings = get_settings()


def configure_logging() -> None:
    """Route loguru output to stderr (and the log file when configured)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level=settings.log_level, rotation="10 MB", retention=5)


def _check_database_health() -> tuple[str, str | None]:
    """
    Check database connectivity.

    Returns:
        Tuple of (status, error_message). Status is "ok" or "error".
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return "ok", None
    except SQLAlchemyError as e:
        return "error", str(e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    configure_logging()
    logger.info("Starting lexiflow service...")
    init_db()
    logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

    yield

    logger.info("Shutting down lexiflow service...")


app = FastAPI(
    title="Lexiflow",
    description="""
    Adaptive study scheduler and progress tracking for vocabulary learning.

    ## Features

    - **Study batches**: due reviews first, then new words by frequency
    - **Responses**: easy / hard / forgot ratings drive the learning status and review schedule
    - **Sessions**: one open session per learner, closed idempotently
    - **Statistics**: daily streaks, accuracy and category progress
    """,
    version=__version__,
    lifespan=lifespan,
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LexiflowError)
async def lexiflow_error_handler(request: Request, exc: LexiflowError) -> JSONResponse:
    """Map engine errors onto HTTP status codes."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.debug(f"{request.method} {request.url.path}: {exc.__class__.__name__}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "detail": exc.message,
            "retryable": exc.retryable,
        },
    )


# ========================================
# Health & Status Endpoints
# ========================================


@app.get("/", tags=["Health"])
def root() -> dict[str, str]:
    """Root endpoint returning service info."""
    return {
        "service": "lexiflow",
        "version": __version__,
        "status": "ok",
    }


@app.get("/health", tags=["Health"])
def health_check() -> dict[str, Any]:
    """Health check with an actual database round trip."""
    db_status, db_error = _check_database_health()
    result: dict[str, Any] = {
        "status": "healthy" if db_status == "ok" else "unhealthy",
        "timestamp": utc_now().isoformat(),
        "components": {"database": db_status},
    }
    if db_error:
        result["errors"] = {"database": db_error}
    return result


# ========================================
# Import and mount routers
# ========================================

from lexiflow.api.routers import stats_router, study_router

app.include_router(study_router.router, prefix="/study", tags=["Study"])
app.include_router(stats_router.router, prefix="/stats", tags=["Statistics"])
