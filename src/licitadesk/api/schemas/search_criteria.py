"""
Member search-criteria schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from licitadesk.core.schema_base import HTTPSchemaModel


class SearchCriteriaUpdate(HTTPSchemaModel):
    keywords: List[str] = Field(default_factory=list)
    states: List[str] = Field(default_factory=list)
    company_presentation: Optional[str] = None
    capabilities: Optional[str] = None
    minimum_value: Optional[Decimal] = None


class SearchCriteriaRead(HTTPSchemaModel):
    id: UUID
    user_id: UUID
    keywords: List[str]
    states: List[str]
    company_presentation: Optional[str] = None
    capabilities: Optional[str] = None
    minimum_value: Optional[Decimal] = None
    updated_at: datetime


class MySearchCriteriaRead(HTTPSchemaModel):
    has_criteria: bool
    criteria: Optional[SearchCriteriaRead] = None


class CriteriaOwnerRead(HTTPSchemaModel):
    full_name: Optional[str] = None
    email: str
    company: Optional[str] = None


class CriteriaListingRead(HTTPSchemaModel):
    criteria: SearchCriteriaRead
    profile: Optional[CriteriaOwnerRead] = None
