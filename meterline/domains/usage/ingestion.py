"""Usage ingestion gateway.

Orchestrates one usage delta end to end:

1. resolve the subscription and check tenant ownership;
2. evaluate the limit and write the usage record, serialized per
   subscription so concurrent calls cannot both pass a limit check;
3. after commit, best-effort side effects: threshold notification,
   billing provider report, per-product usage webhook.

A failure in step 3 is logged and never fails or rolls back the accepted
record.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.context import BaseContext
from meterline.core.exceptions import BadRequestException, NotFoundException, PermissionException
from meterline.core.logging import ContextualLogger
from meterline.core.protocols.metrics import MeteringMetrics
from meterline.core.protocols.usage_webhooks import UsageWebhookSenderProtocol
from meterline.core.shared_models import LimitAction
from meterline.domains.billing.protocols import BillingReporterProtocol
from meterline.domains.billing.repository import SubscriptionRepositoryProtocol
from meterline.domains.billing.types import ReportOutcome
from meterline.domains.usage.exceptions import UsageLimitExceededError
from meterline.domains.usage.protocols import (
    LimitEvaluatorProtocol,
    ThresholdNotifierProtocol,
    UsageIngestionProtocol,
)
from meterline.domains.usage.repository import UsageRecordRepositoryProtocol
from meterline.domains.usage.types import LimitDecision
from meterline.models import Subscription, UsageRecord
from meterline.schemas import (
    UsageCreate,
    UsageIngestResponse,
    UsageLimits,
    UsageQueryResponse,
)
from meterline.schemas import UsageRecord as UsageRecordSchema


def limits_for(decision: LimitDecision) -> UsageLimits:
    """Wire representation of a limit decision."""
    return UsageLimits(
        allowed=decision.allowed,
        limit=decision.limit,
        current_usage=decision.current_usage,
        new_total=decision.new_total,
        percentage=round(decision.percentage, 2),
        action=decision.action,
        reason=decision.reason,
    )


class UsageIngestionService(UsageIngestionProtocol):
    """Usage ingestion gateway and usage query service."""

    def __init__(
        self,
        subscription_repo: SubscriptionRepositoryProtocol,
        usage_repo: UsageRecordRepositoryProtocol,
        evaluator: LimitEvaluatorProtocol,
        notifier: ThresholdNotifierProtocol,
        reporter: BillingReporterProtocol,
        webhook_sender: UsageWebhookSenderProtocol,
        metrics: MeteringMetrics,
        strict_locking: bool = True,
        query_max_records: int = 100,
    ) -> None:
        """Initialize with all required dependencies."""
        self._subscription_repo = subscription_repo
        self._usage_repo = usage_repo
        self._evaluator = evaluator
        self._notifier = notifier
        self._reporter = reporter
        self._webhook_sender = webhook_sender
        self._metrics = metrics
        self._strict_locking = strict_locking
        self._query_max_records = query_max_records

        # Entries vanish once no coroutine holds or awaits the lock.
        self._locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get_lock(self, subscription_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(subscription_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subscription_id] = lock
        return lock

    @asynccontextmanager
    async def _serialized(self, db: AsyncSession, subscription_id: UUID) -> AsyncIterator[None]:
        """Hold the in-process lock and the database advisory lock for a subscription.

        The advisory lock is transaction scoped, so it is released by the
        commit at the end of the evaluate-and-write step.
        """
        if not self._strict_locking:
            yield
            return
        async with self._get_lock(subscription_id):
            await self._usage_repo.lock_subscription(db, subscription_id=subscription_id)
            yield

    async def _get_owned_subscription(
        self, db: AsyncSession, ctx: BaseContext, subscription_id: UUID
    ) -> Subscription:
        subscription = await self._subscription_repo.get(db, subscription_id=subscription_id)
        if subscription is None:
            raise NotFoundException("Subscription not found")
        if not ctx.owns(subscription.organization_id):
            ctx.logger.warning(f"Cross-tenant access to subscription {subscription_id} rejected")
            raise PermissionException("Subscription belongs to another organization")
        return subscription

    async def ingest(
        self, db: AsyncSession, ctx: BaseContext, obj_in: UsageCreate
    ) -> UsageIngestResponse:
        """Evaluate, record and report a usage delta.

        Raises UsageLimitExceededError when the tier blocks the delta; the
        blocked attempt is still recorded as an ``exceeded`` event.
        """
        subscription = await self._get_owned_subscription(db, ctx, obj_in.subscription_id)
        log = ctx.logger.with_context(
            subscription_id=str(subscription.id), user_id=str(obj_in.user_id)
        )

        async with self._serialized(db, subscription.id):
            decision = await self._evaluator.evaluate(db, subscription, obj_in.quantity)
            self._metrics.inc_ingestion(decision.action.value)

            if not decision.allowed:
                await self._notifier.record_exceeded(
                    db, subscription, obj_in.user_id, decision, log
                )
                await db.commit()
                log.warning(
                    f"Usage blocked: {decision.new_total:g} would exceed limit {decision.limit:g}"
                )
                raise UsageLimitExceededError(decision, obj_in.quantity)

            record = await self._usage_repo.create(
                db,
                obj_in={
                    "subscription_id": subscription.id,
                    "user_id": obj_in.user_id,
                    "quantity": obj_in.quantity,
                    "usage_metadata": obj_in.metadata,
                },
            )
            await db.commit()

        if decision.action == LimitAction.WARN:
            log.warning(
                f"Usage accepted with warning at {decision.percentage:.1f}%: {decision.reason or ''}"
            )
        else:
            log.info(f"Usage accepted: {obj_in.quantity:g} units (record {record.id})")

        await self._notify(db, subscription, obj_in.user_id, decision, log)
        stripe_reported = await self._report(db, subscription, record, log)
        await self._send_product_webhook(subscription, record, log)

        return UsageIngestResponse(
            usage_record=UsageRecordSchema.from_model(record),
            limits=None if decision.unlimited else limits_for(decision),
            stripe_reported=stripe_reported,
        )

    async def _notify(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        log: ContextualLogger,
    ) -> None:
        try:
            await self._notifier.notify_crossing(db, subscription, user_id, decision, log)
            await db.commit()
        except Exception as e:
            log.warning(f"Threshold notification failed: {e}", exc_info=True)
            await db.rollback()

    async def _report(
        self,
        db: AsyncSession,
        subscription: Subscription,
        record: UsageRecord,
        log: ContextualLogger,
    ) -> bool:
        try:
            outcome = await self._reporter.report(db, subscription, record, log)
            await db.commit()
        except Exception as e:
            log.warning(f"Usage report bookkeeping failed: {e}", exc_info=True)
            await db.rollback()
            return False
        return outcome == ReportOutcome.REPORTED

    async def _send_product_webhook(
        self, subscription: Subscription, record: UsageRecord, log: ContextualLogger
    ) -> None:
        config = subscription.product.metering_config if subscription.product else None
        url = config.usage_reporting_url if config else None
        if not url:
            return
        delivered = await self._webhook_sender.send(
            url,
            {
                "subscriptionId": str(record.subscription_id),
                "userId": str(record.user_id),
                "quantity": record.quantity,
                "timestamp": record.timestamp.isoformat(),
                "metadata": record.usage_metadata or {},
            },
        )
        if not delivered:
            log.warning(f"Usage webhook delivery to {url} failed for record {record.id}")

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
        """Aggregate the caller's usage records.

        ``totalUsage`` and ``recordCount`` cover every matching record; the
        record list holds the newest ones only.
        """
        if subscription_id is None and user_id is None:
            raise BadRequestException("subscriptionId or userId required")
        if start_date and end_date and start_date > end_date:
            raise BadRequestException("startDate must not be after endDate")
        if subscription_id is not None:
            await self._get_owned_subscription(db, ctx, subscription_id)

        total, count, records = await self._usage_repo.query(
            db,
            organization_id=ctx.organization_id,
            subscription_id=subscription_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=self._query_max_records,
        )
        return UsageQueryResponse(
            total_usage=total,
            record_count=count,
            records=[UsageRecordSchema.from_model(r) for r in records],
        )
