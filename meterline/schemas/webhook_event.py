"""Billing provider webhook schemas."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from meterline.core.shared_models import WebhookEventStatus
from meterline.schemas._camel import CamelModel


class WebhookReceived(CamelModel):
    """Acknowledgement returned to the billing provider."""

    received: bool = True


class WebhookEvent(CamelModel):
    """A persisted webhook delivery, as shown to operators."""

    id: UUID
    event_id: str
    event_type: str
    status: WebhookEventStatus
    retry_count: int
    processed_at: Optional[datetime] = None
    error: Optional[str] = None
    created_at: datetime


class WebhookReplayResult(CamelModel):
    """Outcome of an operator replay."""

    event_id: str
    status: WebhookEventStatus
    retry_count: int
