"""
Repository for member search criteria.
"""
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.models import Profile, UserSearchCriteria
from .base_repository import BaseCRUD


class SearchCriteriaCRUD(BaseCRUD[UserSearchCriteria]):
    model = UserSearchCriteria

    @classmethod
    async def find_for_user(cls, db: AsyncSession, user_id: UUID) -> Optional[UserSearchCriteria]:
        return await cls.find_one(db, filters={"user_id": user_id})

    @classmethod
    async def list_with_profiles(
        cls, db: AsyncSession
    ) -> List[Tuple[UserSearchCriteria, Optional[Profile]]]:
        result = await db.execute(
            select(UserSearchCriteria, Profile)
            .outerjoin(Profile, Profile.id == UserSearchCriteria.user_id)
            .order_by(UserSearchCriteria.updated_at.desc())
        )
        return [(criteria, profile) for criteria, profile in result.all()]
