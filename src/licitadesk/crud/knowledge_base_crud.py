"""
Repositories for knowledge-base categories and articles.
"""
from typing import List
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import KBArticle, KBCategory
from .base_repository import BaseCRUD


class KBCategoryCRUD(BaseCRUD[KBCategory]):
    model = KBCategory

    @classmethod
    async def list_ordered(cls, db: AsyncSession) -> List[KBCategory]:
        return await cls.find_all(db, order_by=[KBCategory.order_index, KBCategory.name])


class KBArticleCRUD(BaseCRUD[KBArticle]):
    model = KBArticle

    @classmethod
    async def list_for_category(
        cls, db: AsyncSession, category_id: UUID, *, published_only: bool = True
    ) -> List[KBArticle]:
        stmt = select(KBArticle).where(KBArticle.category_id == category_id)
        if published_only:
            stmt = stmt.where(KBArticle.is_published.is_(True))
        result = await db.execute(stmt.order_by(KBArticle.title))
        return list(result.scalars().all())

    @classmethod
    async def increment_views(cls, db: AsyncSession, article_id: UUID) -> None:
        await db.execute(
            update(KBArticle)
            .where(KBArticle.id == article_id)
            .values(views=KBArticle.views + 1)
            .execution_options(synchronize_session=False)
        )
