"""
Repository for profiles, roles and organizations.
"""
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.db.enums import AppRole
from licitadesk.db.models import Organization, Profile, UserRole
from .base_repository import BaseCRUD


class ProfileCRUD(BaseCRUD[Profile]):
    model = Profile

    @classmethod
    async def find_by_email(cls, db: AsyncSession, email: str) -> Optional[Profile]:
        result = await db.execute(
            select(Profile).where(func.lower(Profile.email) == email.strip().lower())
        )
        return result.scalars().first()

    @classmethod
    async def is_admin(cls, db: AsyncSession, user_id: UUID) -> bool:
        result = await db.execute(
            select(func.count())
            .select_from(UserRole)
            .where(UserRole.user_id == user_id, UserRole.role == AppRole.ADMIN.value)
        )
        return bool(result.scalar())

    @classmethod
    async def admin_ids(cls, db: AsyncSession) -> List[UUID]:
        result = await db.execute(
            select(UserRole.user_id).where(UserRole.role == AppRole.ADMIN.value)
        )
        return list(dict.fromkeys(result.scalars().all()))

    @classmethod
    async def admin_flags(cls, db: AsyncSession, user_ids: Iterable[UUID]) -> Dict[UUID, bool]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(UserRole.user_id).where(
                UserRole.user_id.in_(ids), UserRole.role == AppRole.ADMIN.value
            )
        )
        admins = set(result.scalars().all())
        return {user_id: user_id in admins for user_id in ids}

    @classmethod
    async def organization_member_ids(cls, db: AsyncSession, organization_id: UUID) -> List[UUID]:
        result = await db.execute(
            select(Profile.id).where(Profile.organization_id == organization_id)
        )
        return list(result.scalars().all())

    @classmethod
    async def find_many(cls, db: AsyncSession, user_ids: Iterable[UUID]) -> Dict[UUID, Profile]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await db.execute(select(Profile).where(Profile.id.in_(ids)))
        return {profile.id: profile for profile in result.scalars().all()}


class UserRoleCRUD(BaseCRUD[UserRole]):
    model = UserRole


class OrganizationCRUD(BaseCRUD[Organization]):
    model = Organization
