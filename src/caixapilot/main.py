# File: src/caixapilot/main.py
"""FastAPI application factory for the authoritative cash session service."""

import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI

from caixapilot.core.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup and shutdown events."""
    start_time = datetime.now()
    logger.info("app.startup", message="CaixaPilot starting up", timestamp=start_time.isoformat())

    from caixapilot.api.health import set_app_start_time

    set_app_start_time(start_time)

    yield

    logger.info("app.shutdown", message="CaixaPilot shutting down gracefully")


def _setup_middleware(app: FastAPI) -> None:
    """Configure all middleware in correct order."""
    from caixapilot.middleware.logging import RequestIDMiddleware

    app.add_middleware(RequestIDMiddleware)


def _register_routers(app: FastAPI) -> None:
    """Register all API routers."""
    from caixapilot.api.cash_session import router as cash_session_router
    from caixapilot.api.health import router as health_router

    app.include_router(health_router)
    app.include_router(cash_session_router)


def create_app() -> FastAPI:
    """Application factory for CaixaPilot."""
    app = FastAPI(
        title="CaixaPilot API",
        description="Cash session lifecycle service for point-of-sale terminals",
        version="0.1.0",
        lifespan=lifespan,
    )

    from caixapilot.core.exception_handlers import register_exception_handlers
    from caixapilot.core.sentry import init_sentry

    init_sentry()
    register_exception_handlers(app)
    _setup_middleware(app)
    _register_routers(app)

    logger.info("app.configured", message="FastAPI application created successfully")

    return app


def run() -> None:
    """Development server entrypoint."""
    uvicorn.run(
        "caixapilot.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("ENVIRONMENT", "development") == "development",
    )
