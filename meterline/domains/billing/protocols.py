"""Billing domain protocols.

BillingReporterProtocol: forwards accepted usage to the provider.
BillingWebhookProtocol: verified, idempotent webhook processing.
"""

from typing import Optional, Protocol, Sequence, runtime_checkable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.context import BaseContext
from meterline.core.logging import ContextualLogger
from meterline.domains.billing.types import ReportOutcome
from meterline.models import Subscription, UsageRecord, WebhookEvent
from meterline.schemas import ReconcileSummary


@runtime_checkable
class BillingReporterProtocol(Protocol):
    """Best-effort projection of local usage onto the billing provider."""

    async def report(
        self,
        db: AsyncSession,
        subscription: Subscription,
        record: UsageRecord,
        log: ContextualLogger,
    ) -> ReportOutcome:
        """Forward one record. Never raises for provider failures."""
        ...

    async def reconcile(
        self,
        db: AsyncSession,
        ctx: BaseContext,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> ReconcileSummary:
        """Replay unreported records of the caller's tenant, oldest first."""
        ...


@runtime_checkable
class BillingWebhookProtocol(Protocol):
    """Provider webhook ingestion."""

    async def process_webhook(self, db: AsyncSession, payload: bytes, signature: str) -> None:
        """Verify, persist and apply a webhook delivery.

        Raises WebhookSignatureError (nothing persisted) or WebhookHandlerError
        (failure persisted).
        """
        ...

    async def replay(self, db: AsyncSession, event_id: str) -> WebhookEvent:
        """Reprocess a stored failed event once."""
        ...

    async def list_failed(
        self, db: AsyncSession, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events awaiting operator review."""
        ...
