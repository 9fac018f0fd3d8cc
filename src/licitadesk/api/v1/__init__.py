"""
API v1 router.

Collects every endpoint module under one router mounted at the API prefix.
"""

from fastapi import APIRouter

from .endpoints import (
    access,
    chat,
    checklists,
    knowledge_base,
    notifications,
    opportunities,
    realtime,
    search_criteria,
    tickets,
    webhooks,
)

api_router = APIRouter()

api_router.include_router(access.router, prefix="/access", tags=["access"])

api_router.include_router(
    opportunities.router, prefix="/opportunities", tags=["opportunities"]
)

api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])

api_router.include_router(chat.router, prefix="/chat", tags=["chat"])

api_router.include_router(
    notifications.router, prefix="/notifications", tags=["notifications"]
)

api_router.include_router(
    knowledge_base.router, prefix="/knowledge-base", tags=["knowledge-base"]
)

api_router.include_router(
    checklists.router, prefix="/checklists", tags=["checklists"]
)

api_router.include_router(
    search_criteria.router, prefix="/search-criteria", tags=["search-criteria"]
)

api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])

api_router.include_router(realtime.router, prefix="/realtime", tags=["realtime"])
