"""
Health check endpoint handler.
"""

from fastapi import APIRouter, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from licitadesk.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.
    Checks the database, object storage and realtime bus.
    """
    health_status = {
        "status": "healthy",
        "version": settings.api.app_version,
        "services": {},
    }

    session_factory = getattr(request.app.state, "session_factory", None)
    if session_factory is not None:
        try:
            async with session_factory() as db:
                await db.execute(text("SELECT 1"))
            health_status["services"]["database"] = {"status": "healthy"}
        except SQLAlchemyError as e:
            health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
            health_status["status"] = "degraded"

    services = getattr(request.app.state, "services", None)
    if services is not None:
        minio_healthy = await services.storage.health_check()
        health_status["services"]["minio"] = {
            "status": "healthy" if minio_healthy else "unhealthy",
            "bucket": settings.minio.bucket_name,
        }
        if not minio_healthy:
            health_status["status"] = "degraded"
        health_status["services"]["realtime"] = {
            "status": "healthy",
            "subscribers": services.bus.subscriber_count(),
        }

    return health_status
