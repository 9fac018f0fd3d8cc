"""
Opportunity schemas for API validation and serialization.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel
from licitadesk.db.enums import OpportunityStatus
from licitadesk.services.opportunity_rules import MemberAction
from licitadesk.services.status_badges import badge_for


class StatusBadgeRead(HTTPSchemaModel):
    label: str
    color: str
    cue: Dict[str, Any]


class OpportunityFields(HTTPSchemaModel):
    """Editable content and document fields."""

    agency_name: Optional[str] = Field(None, max_length=255)
    opportunity_abstract: Optional[str] = None
    opportunity_url: Optional[str] = Field(None, max_length=1000)
    estimated_value: Optional[Decimal] = None
    winning_value: Optional[Decimal] = None
    audit_report_path: Optional[str] = Field(None, max_length=500)
    petition_path: Optional[str] = Field(None, max_length=500)
    contract_path: Optional[str] = Field(None, max_length=500)


class OpportunityCreate(OpportunityFields):
    title: str = Field(..., min_length=1, max_length=500)
    closing_date: date
    organization_id: UUID
    is_published: bool = False


class OpportunityUpdate(OpportunityFields):
    """Partial update; only the fields sent are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=500)
    closing_date: Optional[date] = None
    is_published: Optional[bool] = None
    status: Optional[OpportunityStatus] = None
    expected_version: Optional[int] = None


class ParecerRequest(HTTPSchemaModel):
    verdict: OpportunityStatus
    expected_version: Optional[int] = None


class OutcomeRequest(HTTPSchemaModel):
    won: bool


class OpportunityRead(HTTPSchemaModel):
    id: UUID
    title: str
    agency_name: Optional[str] = None
    closing_date: date
    organization_id: UUID
    status: OpportunityStatus
    opportunity_abstract: Optional[str] = None
    opportunity_url: Optional[str] = None
    audit_report_path: Optional[str] = None
    petition_path: Optional[str] = None
    contract_path: Optional[str] = None
    estimated_value: Optional[Decimal] = None
    winning_value: Optional[Decimal] = None
    is_published: bool
    report_requested_at: Optional[datetime] = None
    defeat_confirmed: bool
    version: int
    status_changed_at: datetime
    created_at: datetime
    updated_at: datetime
    badge: Optional[StatusBadgeRead] = None

    @classmethod
    def from_row(cls, opportunity) -> "OpportunityRead":
        read = cls.model_validate(opportunity)
        badge = badge_for(opportunity.status).to_dict()
        read.badge = StatusBadgeRead(label=badge["label"], color=badge["color"], cue=badge["cue"])
        return read


class MemberActionsRead(HTTPSchemaModel):
    opportunity_id: UUID
    actions: List[MemberAction]
