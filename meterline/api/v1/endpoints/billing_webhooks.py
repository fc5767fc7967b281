"""Billing provider webhook endpoints.

The delivery endpoint is authenticated by the provider's signature header,
not by an API key. The operator endpoints require the ``webhooks:admin`` scope.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from meterline import schemas
from meterline.api.context import ApiContext
from meterline.api.deps import Inject, get_db, require_scope
from meterline.core.logging import logger
from meterline.core.shared_models import ApiKeyScope
from meterline.domains.billing.protocols import BillingWebhookProtocol

router = APIRouter()


@router.post("", response_model=schemas.WebhookReceived)
async def receive_billing_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    webhooks: BillingWebhookProtocol = Inject(BillingWebhookProtocol),
) -> schemas.WebhookReceived:
    """Receive a billing provider event.

    The raw body is needed for signature verification. Returns 400 when the
    signature does not verify and 500 when the handler fails, which makes
    the provider redeliver.
    """
    payload = await request.body()
    log = logger.with_context(request_id=getattr(request.state, "request_id", None))
    log.debug(f"Billing webhook received ({len(payload)} bytes)")

    await webhooks.process_webhook(db, payload, stripe_signature or "")
    return schemas.WebhookReceived()


@router.get(
    "/failed",
    response_model=List[schemas.WebhookEvent],
    response_model_by_alias=True,
)
async def list_failed_webhooks(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, gt=0, le=1000),
    db: AsyncSession = Depends(get_db),
    ctx: ApiContext = Depends(require_scope(ApiKeyScope.WEBHOOKS_ADMIN)),
    webhooks: BillingWebhookProtocol = Inject(BillingWebhookProtocol),
) -> List[schemas.WebhookEvent]:
    """List failed webhook events awaiting operator review."""
    events = await webhooks.list_failed(db, skip=skip, limit=limit)
    return [schemas.WebhookEvent.model_validate(event) for event in events]


@router.post(
    "/{event_id}/replay",
    response_model=schemas.WebhookReplayResult,
    response_model_by_alias=True,
)
async def replay_webhook(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    ctx: ApiContext = Depends(require_scope(ApiKeyScope.WEBHOOKS_ADMIN)),
    webhooks: BillingWebhookProtocol = Inject(BillingWebhookProtocol),
) -> schemas.WebhookReplayResult:
    """Reprocess a failed event once from its stored payload."""
    ctx.logger.info(f"Operator replay of webhook event {event_id}")
    event = await webhooks.replay(db, event_id)
    return schemas.WebhookReplayResult(
        event_id=event.event_id, status=event.status, retry_count=event.retry_count
    )
