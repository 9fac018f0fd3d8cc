"""
Knowledge base: categories, articles and gated file downloads.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.config import settings
from licitadesk.core.decorators import handle_database_exceptions, transactional_database_operation
from licitadesk.core.exceptions import AuthorizationError, NotFoundError
from licitadesk.crud import KBArticleCRUD, KBCategoryCRUD
from licitadesk.db.models import KBArticle, KBCategory
from .access_service import Actor
from .minio_service import MinIOStorageService

logger = logging.getLogger(__name__)


class KnowledgeBaseService:
    def __init__(self, storage: MinIOStorageService):
        self.storage = storage

    @handle_database_exceptions("list_kb_categories")
    async def list_categories(self, db: AsyncSession) -> List[KBCategory]:
        return await KBCategoryCRUD.list_ordered(db)

    async def list_articles(self, db: AsyncSession, actor: Actor, category_id: UUID) -> List[KBArticle]:
        if await KBCategoryCRUD.find_by_id(db, category_id) is None:
            raise NotFoundError("Category not found")
        return await KBArticleCRUD.list_for_category(
            db, category_id, published_only=not actor.is_admin
        )

    @staticmethod
    def _check_premium(actor: Actor, category: Optional[KBCategory]) -> None:
        if category is None or not category.is_premium:
            return
        if actor.is_admin or actor.access.has_full_access:
            return
        raise AuthorizationError(
            "This content is available to subscribers",
            upsell="subscribe" if actor.access.had_trial else "trial",
        )

    async def get_article_file_url(self, db: AsyncSession, actor: Actor, article_id: UUID) -> str:
        """Mint a short-lived download URL after the subscription check."""
        article = await KBArticleCRUD.find_by_id(db, article_id)
        if article is None or (not article.is_published and not actor.is_admin):
            raise NotFoundError("Article not found")

        category = await KBCategoryCRUD.find_by_id(db, article.category_id)
        self._check_premium(actor, category)

        if not article.file_url:
            raise NotFoundError("This article has no file attached")

        url = await self.storage.generate_presigned_url(
            article.file_url, settings.minio.kb_article_url_ttl_seconds
        )
        await self._count_view(db, article.id)
        logger.info(f"KB file URL issued for article {article.id} to {actor.id}")
        return url

    @transactional_database_operation("count_kb_article_view")
    async def _count_view(self, db: AsyncSession, article_id: UUID) -> None:
        await KBArticleCRUD.increment_views(db, article_id)
