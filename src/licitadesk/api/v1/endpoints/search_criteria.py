"""
Search Criteria Endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.api.schemas.search_criteria import (
    CriteriaListingRead,
    CriteriaOwnerRead,
    MySearchCriteriaRead,
    SearchCriteriaRead,
    SearchCriteriaUpdate,
)
from licitadesk.core.dependencies import (
    get_db,
    get_services,
    require_admin,
    require_member_area,
)
from licitadesk.services.access_service import Actor
from licitadesk.services.registry import ServiceRegistry
from licitadesk.services.search_criteria_service import criteria_is_set

router = APIRouter()


@router.get("/me", response_model=MySearchCriteriaRead)
async def get_my_criteria(
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    criteria = await services.search_criteria.get_criteria(db, actor)
    return MySearchCriteriaRead(
        has_criteria=criteria_is_set(criteria),
        criteria=SearchCriteriaRead.model_validate(criteria) if criteria else None,
    )


@router.put("/me", response_model=SearchCriteriaRead)
async def save_my_criteria(
    payload: SearchCriteriaUpdate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_member_area),
    services: ServiceRegistry = Depends(get_services),
):
    return await services.search_criteria.upsert_criteria(db, actor, **payload.model_dump())


@router.get("", response_model=List[CriteriaListingRead])
async def list_criteria(
    q: Optional[str] = Query(None, max_length=200),
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_admin),
    services: ServiceRegistry = Depends(get_services),
):
    listings = await services.search_criteria.list_all_criteria(db, actor, q)
    return [
        CriteriaListingRead(
            criteria=SearchCriteriaRead.model_validate(listing.criteria),
            profile=CriteriaOwnerRead.model_validate(listing.profile) if listing.profile else None,
        )
        for listing in listings
    ]
