"""
lessonsync - FastAPI Application

Serves the aggregated progress dashboard.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lessonsync import __version__
from lessonsync.api.v1 import router as api_v1_router
from lessonsync.core.config import settings
from lessonsync.core.http_client import close_http_client, create_http_client
from lessonsync.core.logging import setup_logging


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Creates the pooled HTTP client on startup and closes it on shutdown.
    """
    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)
    logger.info("Starting lessonsync (%s)", settings.ENVIRONMENT)
    app.state.http_client = create_http_client()
    yield
    logger.info("Shutting down lessonsync")
    await close_http_client(app.state.http_client)


# Create FastAPI application
app = FastAPI(
    title="lessonsync",
    description="Lesson progress synchronization and dashboard aggregation.",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Health status and environment info.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__,
    }
