"""Usage domain protocols."""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.context import BaseContext
from meterline.core.logging import ContextualLogger
from meterline.domains.usage.types import LimitDecision
from meterline.models import Subscription, UsageLimitEvent
from meterline.schemas import UsageCreate, UsageIngestResponse, UsageQueryResponse


@runtime_checkable
class LimitEvaluatorProtocol(Protocol):
    """Decides whether a usage delta is admissible for a subscription."""

    async def evaluate(
        self, db: AsyncSession, subscription: Subscription, requested_quantity: float
    ) -> LimitDecision:
        """Evaluate *requested_quantity* against the current billing period."""
        ...


@runtime_checkable
class ThresholdNotifierProtocol(Protocol):
    """Records threshold crossings, at most one notified event per period."""

    async def notify_crossing(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        log: ContextualLogger,
    ) -> Optional[UsageLimitEvent]:
        """Record and notify the highest threshold crossed by accepted usage."""
        ...

    async def record_exceeded(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        log: ContextualLogger,
    ) -> Optional[UsageLimitEvent]:
        """Record a blocked ingestion as an ``exceeded`` event."""
        ...


@runtime_checkable
class UsageIngestionProtocol(Protocol):
    """Authenticated entry point for usage deltas."""

    async def ingest(
        self, db: AsyncSession, ctx: BaseContext, obj_in: UsageCreate
    ) -> UsageIngestResponse:
        """Evaluate, record and report a usage delta."""
        ...

    async def query(
        self,
        db: AsyncSession,
        ctx: BaseContext,
        *,
        subscription_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> UsageQueryResponse:
        """Aggregate the caller's usage records."""
        ...
