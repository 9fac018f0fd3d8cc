"""
Knowledge Base Endpoints.

Categories and articles are readable by any authorized member; files in
premium categories are handed out only after the subscription check.
"""

import logging
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.knowledge_base import FileUrlRead, KBArticleRead, KBCategoryRead
from licitadesk.core.config import settings
from licitadesk.core.dependencies import get_db, get_services, require_member_area
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/categories", response_model=List[KBCategoryRead])
async def list_categories(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.knowledge_base.list_categories(db)


@router.get("/categories/{category_id}/articles", response_model=List[KBArticleRead])
async def list_articles(
    category_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    articles = await services.knowledge_base.list_articles(db, actor, category_id)
    return [KBArticleRead.from_row(article) for article in articles]


@router.get("/articles/{article_id}/file", response_model=FileUrlRead)
async def get_article_file_url(
    article_id: UUID,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    url = await services.knowledge_base.get_article_file_url(db, actor, article_id)
    return FileUrlRead(url=url, expires_in=settings.minio.kb_article_url_ttl_seconds)
