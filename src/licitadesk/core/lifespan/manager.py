"""
Application lifespan manager.

Builds the service registry on startup and tears it down on shutdown.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from licitadesk.core.config import settings
from licitadesk.core.database import AsyncSessionLocal
from licitadesk.core.logging_config import stop_queue_listener
from licitadesk.services.minio_service import MinIOStorageService
from licitadesk.services.registry import ServiceRegistry
from . import tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    await tasks.initialize_logging(settings)
    logger = logging.getLogger("main")

    await tasks.log_cors_configuration(settings)
    await tasks.initialize_database()

    storage = MinIOStorageService()
    await tasks.initialize_storage(storage)

    app.state.session_factory = AsyncSessionLocal
    app.state.services = ServiceRegistry.build(
        AsyncSessionLocal,
        storage=storage,
        mirror=tasks.build_stream_mirror(settings),
    )

    yield

    logger.info(f"Shutting down {settings.api.app_name}...")
    await app.state.services.close()
    await tasks.shutdown_database()

    stop_queue_listener()
