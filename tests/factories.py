"""
Test data factories for generating realistic test data.

Usage:
    org = OrganizationFactory.create()
    member = ProfileFactory.create_subscriber(organization_id=org.id)
    opportunity = OpportunityFactory.create(organization_id=org.id, is_published=True)
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Optional
from uuid import UUID, uuid4

from licitadesk.db.enums import AppRole, OpportunityStatus, RoomType, TicketStatus
from licitadesk.db.models import (
    ChatRoom,
    KBArticle,
    KBCategory,
    Opportunity,
    Organization,
    Profile,
    Ticket,
    UserRole,
    utcnow,
)


def _unique_suffix() -> str:
    """Generate a unique suffix for test data."""
    return uuid.uuid4().hex[:8]


class OrganizationFactory:
    @classmethod
    def create(cls, name: Optional[str] = None) -> Organization:
        return Organization(id=uuid4(), name=name or f"Empresa {_unique_suffix()}")


class ProfileFactory:
    """Factory for creating Profile instances."""

    @classmethod
    def create(
        cls,
        email: Optional[str] = None,
        full_name: Optional[str] = None,
        organization_id: Optional[UUID] = None,
        subscription_active: bool = False,
        trial_active: bool = False,
        trial_expires_at: Optional[datetime] = None,
        access_authorized: bool = False,
    ) -> Profile:
        suffix = _unique_suffix()
        if full_name is None:
            full_name = f"Usuário {suffix}"
        if email is None:
            email = f"user_{suffix}@example.com.br"
        return Profile(
            id=uuid4(),
            email=email,
            full_name=full_name,
            organization_id=organization_id,
            subscription_active=subscription_active,
            trial_active=trial_active,
            trial_expires_at=trial_expires_at,
            access_authorized=access_authorized,
        )

    @classmethod
    def create_subscriber(cls, **kwargs) -> Profile:
        kwargs.setdefault("access_authorized", True)
        return cls.create(subscription_active=True, **kwargs)

    @classmethod
    def create_trial(cls, days_left: int = 10, now: Optional[datetime] = None, **kwargs) -> Profile:
        now = now or utcnow()
        kwargs.setdefault("access_authorized", True)
        return cls.create(
            trial_active=True,
            trial_expires_at=now + timedelta(days=days_left),
            **kwargs,
        )


class UserRoleFactory:
    @classmethod
    def create_admin(cls, user_id: UUID) -> UserRole:
        return UserRole(user_id=user_id, role=AppRole.ADMIN.value)


class OpportunityFactory:
    @classmethod
    def create(
        cls,
        organization_id: UUID,
        title: Optional[str] = None,
        status: OpportunityStatus = OpportunityStatus.REVIEW_REQUIRED,
        closing_date: Optional[date] = None,
        is_published: bool = True,
        **fields,
    ) -> Opportunity:
        return Opportunity(
            id=uuid4(),
            title=title or f"Pregão Eletrônico {_unique_suffix()}",
            agency_name="Prefeitura Municipal",
            closing_date=closing_date or (utcnow().date() + timedelta(days=20)),
            organization_id=organization_id,
            status=status.value,
            is_published=is_published,
            **fields,
        )


class TicketFactory:
    @classmethod
    def create(
        cls,
        user_id: UUID,
        status: TicketStatus = TicketStatus.OPEN,
        opportunity_id: Optional[UUID] = None,
        service_category: Optional[str] = None,
        status_changed_at: Optional[datetime] = None,
        title: Optional[str] = None,
    ) -> Ticket:
        return Ticket(
            id=uuid4(),
            user_id=user_id,
            opportunity_id=opportunity_id,
            title=title or f"Chamado {_unique_suffix()}",
            description="Preciso de ajuda com a documentação.",
            status=status.value,
            service_category=service_category,
            status_changed_at=status_changed_at or utcnow(),
        )


class ChatRoomFactory:
    @classmethod
    def create(
        cls,
        room_type: RoomType,
        user_id: Optional[UUID] = None,
        opportunity_id: Optional[UUID] = None,
        is_active: bool = True,
    ) -> ChatRoom:
        return ChatRoom(
            id=uuid4(),
            room_type=room_type.value,
            user_id=user_id,
            opportunity_id=opportunity_id,
            is_active=is_active,
        )


class KnowledgeBaseFactory:
    @classmethod
    def category(cls, is_premium: bool = False, name: Optional[str] = None) -> KBCategory:
        return KBCategory(id=uuid4(), name=name or f"Categoria {_unique_suffix()}", is_premium=is_premium)

    @classmethod
    def article(
        cls,
        category_id: UUID,
        file_url: Optional[str] = "kb/manual.pdf",
        is_published: bool = True,
    ) -> KBArticle:
        return KBArticle(
            id=uuid4(),
            category_id=category_id,
            title=f"Artigo {_unique_suffix()}",
            content="Passo a passo.",
            file_url=file_url,
            is_published=is_published,
        )
