"""
Lifespan startup and shutdown task functions.

Each function handles one step of the startup or shutdown sequence.
"""

import logging
from typing import Optional

from minio.error import S3Error
from urllib3.exceptions import MaxRetryError

from licitadesk.core.config import Settings
from licitadesk.core.logging_config import LogConfig, setup_logging
from licitadesk.services.event_publisher import RedisStreamsPublisher
from licitadesk.services.minio_service import MinIOStorageService

logger = logging.getLogger("main")


async def initialize_logging(settings: Settings) -> None:
    setup_logging(LogConfig(**settings.logging.log_config))
    logger.info(f"Starting {settings.api.app_name} {settings.api.app_version}")


async def log_cors_configuration(settings: Settings) -> None:
    logger.info(f"CORS allowed origins: {settings.cors.origins}")


async def initialize_database() -> None:
    from licitadesk.core.database import init_db

    await init_db()
    logger.info("Database initialized")


async def initialize_storage(storage: MinIOStorageService) -> None:
    """Make sure the bucket exists; the API still starts when MinIO is down."""
    try:
        await storage.ensure_bucket_exists()
        logger.info("MinIO storage initialized")
    except (S3Error, MaxRetryError, OSError) as e:
        logger.warning(f"MinIO initialization failed: {e}")


def build_stream_mirror(settings: Settings) -> Optional[RedisStreamsPublisher]:
    if not settings.realtime.redis_mirror_enabled:
        return None
    logger.info(f"Mirroring realtime events to Redis Streams at {settings.redis.url}")
    return RedisStreamsPublisher()


async def shutdown_database() -> None:
    from licitadesk.core.database import close_db

    await close_db()
    logger.info("Database connections closed")
