"""
Access state schemas.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from licitadesk.core.schema_base import HTTPSchemaModel
from licitadesk.db.enums import AccessTier


class AccessStateRead(HTTPSchemaModel):
    is_admin: bool
    is_paid_subscriber: bool
    has_full_access: bool
    is_free_authorized: bool
    trial_expired: bool
    had_trial: bool
    tier: AccessTier


class ProfileRead(HTTPSchemaModel):
    id: UUID
    email: str
    full_name: Optional[str] = None
    company: Optional[str] = None
    organization_id: Optional[UUID] = None
    subscription_active: bool
    trial_active: bool
    trial_expires_at: Optional[datetime] = None
    access_authorized: bool


class MeRead(HTTPSchemaModel):
    profile: ProfileRead
    access: AccessStateRead


class TrialActivationRead(MeRead):
    activated: bool
