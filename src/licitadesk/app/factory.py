"""
Application factory for FastAPI.

This module provides the create_app() function that creates and configures
the FastAPI application instance.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from licitadesk.api.v1 import api_router
from licitadesk.api.v1.endpoints.webhooks import limiter
from licitadesk.app.routes import health_router
from licitadesk.core.config import settings
from licitadesk.core.exceptions import register_exception_handlers
from licitadesk.core.lifespan import lifespan


def create_app(use_lifespan: bool = True) -> FastAPI:
    """
    Application factory function.

    Args:
        use_lifespan: Tests pass False and install their own services on
            ``app.state`` instead of the production database and storage.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.api.app_name,
        version=settings.api.app_version,
        description="Bid-monitoring workflow, chat and notification API",
        lifespan=lifespan if use_lifespan else None,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )

    # Add rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router, prefix=settings.api.api_v1_prefix)

    return app
