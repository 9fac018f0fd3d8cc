"""
Access Endpoints.

What the caller may do right now, and the one-time trial activation.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.access import (
    AccessStateRead,
    MeRead,
    ProfileRead,
    TrialActivationRead,
)
from licitadesk.core.dependencies import get_current_actor, get_db, get_services
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry

router = APIRouter()


def _access_read(actor: Actor) -> AccessStateRead:
    state = actor.access
    return AccessStateRead(
        is_admin=state.is_admin,
        is_paid_subscriber=state.is_paid_subscriber,
        has_full_access=state.has_full_access,
        is_free_authorized=state.is_free_authorized,
        trial_expired=state.trial_expired,
        had_trial=state.had_trial,
        tier=state.tier,
    )


@router.get("/me", response_model=MeRead)
async def get_me(actor: Actor = Depends(get_current_actor)):
    return MeRead(profile=ProfileRead.model_validate(actor.profile), access=_access_read(actor))


@router.post("/trial", response_model=TrialActivationRead)
async def activate_trial(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Start the 30-day trial.

    A profile that already had a trial or holds a subscription gets
    ``activated: false`` and its current state back.
    """
    _, activated = await services.access.activate_trial(db, actor.id)
    refreshed = await services.access.load_actor(db, actor.id)
    return TrialActivationRead(
        profile=ProfileRead.model_validate(refreshed.profile),
        access=_access_read(refreshed),
        activated=activated,
    )
