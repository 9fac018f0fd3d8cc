"""
Application route handlers outside the versioned API.
"""

from .health import router as health_router

__all__ = ["health_router"]
