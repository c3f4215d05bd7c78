"""
Main FastAPI application.

Exposes the listing export as an HTTP endpoint for build hooks.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from estate_sync.core.config import get_settings
from estate_sync.api.v1 import export

# Configure logging
logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Runs on startup and shutdown.
    """
    settings = get_settings()
    logger.info("Starting listing export service")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"Images dir: {settings.images_dir}")
    if not settings.notion_token:
        logger.warning("NOTION_TOKEN is not set; exports will fail until it is")

    yield

    logger.info("Shutting down")


app = FastAPI(
    title="Estate Sync",
    description="Notion listings export with local image mirroring",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(export.router, prefix="/api/v1")


@app.get("/")
def root():
    """Root endpoint with service info."""
    return {
        "service": "Estate Sync",
        "version": "0.1.0",
        "endpoints": ["/api/v1/export-properties"],
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy" if settings.notion_token else "degraded",
        "service": "running",
        "notion_token_present": settings.notion_token is not None,
    }
