"""
UTM Telemetry Converter - FastAPI Backend

Main application entry point and configuration.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from utmconv.api.logs import router as logs_router, folder_router
from utmconv.services.repository import init_repository, get_repository
from utmconv.services.session import get_allocator


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


# Default log folder (can be overridden via API or environment)
DEFAULT_DATA_FOLDER = Path("./data/logs")
DATA_FOLDER_ENV = "UTM_DATA_FOLDER"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting UTM Telemetry Converter")

    repo = get_repository()
    if repo.data_folder is None:
        data_folder = Path(os.getenv(DATA_FOLDER_ENV, str(DEFAULT_DATA_FOLDER)))
        if data_folder.exists():
            init_repository(data_folder)
            logger.info(f"Initialized repository with folder: {data_folder}")
        else:
            logger.info(f"Default data folder not found: {data_folder}")
            logger.info("Use POST /folder to set data folder")

    yield

    logger.info("Shutting down UTM Telemetry Converter")


app = FastAPI(
    title="UTM Telemetry Converter",
    description="""
    Converts MAVLink telemetry logs into GUTMA flight-logging JSON.

    ## Data Flow
    1. Set the log folder via POST /folder
    2. List available logs via GET /logs
    3. Inspect a track via GET /logs/{id}/track
    4. Write the UTM file via POST /logs/{id}/convert
    """,
    version="0.1.0",
    lifespan=lifespan,
)


app.include_router(logs_router)
app.include_router(folder_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": "UTM Telemetry Converter",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    repo = get_repository()

    return {
        "status": "healthy",
        "data_folder": str(repo.data_folder) if repo.data_folder else None,
        "log_count": repo.log_count,
        "channels_available": get_allocator().available,
    }
