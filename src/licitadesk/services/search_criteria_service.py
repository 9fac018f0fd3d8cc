"""
Member search criteria: the keywords, states and minimum value a member
wants staff to look for when hunting new opportunities.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.decorators import handle_database_exceptions, transactional_database_operation
from licitadesk.core.exceptions import ValidationError
from licitadesk.crud import SearchCriteriaCRUD
from licitadesk.db.models import Profile, UserSearchCriteria, utcnow
from . import access_service
from .access_service import Actor

logger = logging.getLogger(__name__)

MAX_KEYWORDS = 50
MAX_KEYWORD_LENGTH = 100

BRAZILIAN_STATES = frozenset(
    {
        "AC", "AL", "AP", "AM", "BA", "CE", "DF", "ES", "GO", "MA", "MT", "MS", "MG", "PA",
        "PB", "PR", "PE", "PI", "RJ", "RN", "RS", "RO", "RR", "SC", "SP", "SE", "TO",
    }
)


def normalize_keywords(keywords: Optional[Iterable[str]]) -> List[str]:
    """Trim, drop blanks and duplicates, keep first-seen order."""
    cleaned: List[str] = []
    for raw in keywords or []:
        keyword = (raw or "").strip()
        if not keyword or keyword in cleaned:
            continue
        if len(keyword) > MAX_KEYWORD_LENGTH:
            raise ValidationError(f"Keywords are limited to {MAX_KEYWORD_LENGTH} characters", field="keywords")
        cleaned.append(keyword)
    if len(cleaned) > MAX_KEYWORDS:
        raise ValidationError(f"At most {MAX_KEYWORDS} keywords are allowed", field="keywords")
    return cleaned


def normalize_states(states: Optional[Iterable[str]]) -> List[str]:
    cleaned: List[str] = []
    for raw in states or []:
        code = (raw or "").strip().upper()
        if not code or code in cleaned:
            continue
        if code not in BRAZILIAN_STATES:
            raise ValidationError(f"Unknown state code: {raw}", field="states")
        cleaned.append(code)
    return cleaned


def criteria_is_set(criteria: Optional[UserSearchCriteria]) -> bool:
    """A record counts once at least one keyword or state is set."""
    return criteria is not None and bool(criteria.keywords or criteria.states)


@dataclass
class CriteriaListing:
    criteria: UserSearchCriteria
    profile: Optional[Profile]

    def matches(self, term: str) -> bool:
        term = term.lower()
        haystack = [
            self.profile.full_name if self.profile else None,
            self.profile.email if self.profile else None,
            self.profile.company if self.profile else None,
            self.criteria.company_presentation,
            *self.criteria.keywords,
            *self.criteria.states,
        ]
        return any(term in value.lower() for value in haystack if value)


class SearchCriteriaService:
    @transactional_database_operation("upsert_search_criteria")
    async def upsert_criteria(
        self,
        db: AsyncSession,
        actor: Actor,
        *,
        keywords: Optional[Iterable[str]] = None,
        states: Optional[Iterable[str]] = None,
        company_presentation: Optional[str] = None,
        capabilities: Optional[str] = None,
        minimum_value: Optional[Decimal] = None,
    ) -> UserSearchCriteria:
        """Create or replace the caller's criteria."""
        access_service.require_member_area(actor)
        if minimum_value is not None and minimum_value < 0:
            raise ValidationError("Minimum value cannot be negative", field="minimum_value")

        fields = {
            "keywords": normalize_keywords(keywords),
            "states": normalize_states(states),
            "company_presentation": (company_presentation or "").strip() or None,
            "capabilities": (capabilities or "").strip() or None,
            "minimum_value": minimum_value,
        }
        criteria = await SearchCriteriaCRUD.find_for_user(db, actor.id)
        if criteria is None:
            criteria = await SearchCriteriaCRUD.create(db, obj_in={"user_id": actor.id, **fields})
            logger.info(f"Search criteria created for user {actor.id}")
        else:
            for name, value in fields.items():
                setattr(criteria, name, value)
            criteria.updated_at = utcnow()
            db.add(criteria)
            await db.flush()
        return criteria

    @handle_database_exceptions("get_search_criteria")
    async def get_criteria(self, db: AsyncSession, actor: Actor) -> Optional[UserSearchCriteria]:
        access_service.require_member_area(actor)
        return await SearchCriteriaCRUD.find_for_user(db, actor.id)

    async def has_criteria(self, db: AsyncSession, actor: Actor) -> bool:
        return criteria_is_set(await self.get_criteria(db, actor))

    @handle_database_exceptions("list_search_criteria")
    async def list_all_criteria(
        self, db: AsyncSession, actor: Actor, term: Optional[str] = None
    ) -> List[CriteriaListing]:
        access_service.require_admin(actor)
        rows = [
            CriteriaListing(criteria=criteria, profile=profile)
            for criteria, profile in await SearchCriteriaCRUD.list_with_profiles(db)
        ]
        term = (term or "").strip()
        if term:
            rows = [row for row in rows if row.matches(term)]
        return rows
