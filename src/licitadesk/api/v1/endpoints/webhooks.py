"""
Payment Webhook Endpoint.

Called by the payment provider. Authenticated by a shared token header,
rate limited per client and deduplicated by event id, so a redelivery is
acknowledged without being applied again.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, Request
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from licitadesk.core.config import settings
from licitadesk.core.dependencies import get_db, get_services
from licitadesk.services.payment_webhook_service import verify_token
from licitadesk.services.registry import ServiceRegistry

logger = logging.getLogger(__name__)

# Rate limiter for provider callbacks
limiter = Limiter(key_func=get_remote_address)

router = APIRouter()


@router.post("/payments")
@limiter.limit(settings.webhook.rate_limit)
async def payment_webhook(
    request: Request,  # Must be first param for rate limiter
    payload: Dict[str, Any] = Body(...),
    access_token: Optional[str] = Header(None, alias="asaas-access-token"),
    db: AsyncSession = Depends(get_db),
    services: ServiceRegistry = Depends(get_services),
):
    """
    Apply a subscription event.

    Returns ``{"status": "processed" | "duplicate" | "ignored"}``; only a bad
    token, a stale event or an unknown customer is an error.
    """
    verify_token(access_token)
    result = await services.webhooks.process_payment_event(db, payload)
    logger.info(f"Payment webhook {payload.get('event')} ({payload.get('id')}): {result}")
    return {"status": result}
