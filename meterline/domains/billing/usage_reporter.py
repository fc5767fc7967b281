"""Billing reporter: forwards accepted usage to the metered-billing provider.

Local usage records are the source of truth. Reporting is a best-effort
projection: failures are logged, counted and left for ``reconcile`` to
replay. Every provider call carries an idempotency key derived from the
usage record id, so a replay after an ambiguous failure never double-bills.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.context import BaseContext
from meterline.core.datetime_utils import utc_now
from meterline.core.exceptions import NotFoundException, PermissionException
from meterline.core.logging import ContextualLogger
from meterline.core.protocols.metrics import MeteringMetrics
from meterline.core.protocols.payment import PaymentGatewayProtocol
from meterline.domains.billing.exceptions import UpstreamReportingError, wrap_gateway_errors
from meterline.domains.billing.protocols import BillingReporterProtocol
from meterline.domains.billing.repository import (
    SubscriptionItemRepositoryProtocol,
    SubscriptionRepositoryProtocol,
)
from meterline.domains.billing.types import ReportOutcome, usage_quantity
from meterline.domains.usage.repository import UsageRecordRepositoryProtocol
from meterline.models import Subscription, SubscriptionItem, UsageRecord
from meterline.schemas import ReconcileSummary


def idempotency_key_for(record: UsageRecord) -> str:
    """Provider idempotency key for a usage record."""
    return f"usage-{record.id}"


class BillingReporter(BillingReporterProtocol):
    """Reports usage records as metered usage on the subscription's metered item."""

    def __init__(
        self,
        payment_gateway: PaymentGatewayProtocol,
        subscription_repo: SubscriptionRepositoryProtocol,
        item_repo: SubscriptionItemRepositoryProtocol,
        usage_repo: UsageRecordRepositoryProtocol,
        metrics: MeteringMetrics,
    ) -> None:
        """Initialize with all required dependencies."""
        self._payment_gateway = payment_gateway
        self._subscription_repo = subscription_repo
        self._item_repo = item_repo
        self._usage_repo = usage_repo
        self._metrics = metrics

    async def _metered_item(
        self, db: AsyncSession, subscription: Subscription, log: ContextualLogger
    ) -> Optional[SubscriptionItem]:
        """The item to report against, or None when reporting does not apply."""
        if not self._payment_gateway.enabled:
            return None
        if not subscription.stripe_subscription_id:
            log.debug("No provider subscription; skipping usage report")
            return None
        if not subscription.tier or not subscription.tier.metering_enabled:
            log.debug("Metering not enabled for tier; skipping usage report")
            return None
        item = await self._item_repo.get_metered_item(db, subscription_id=subscription.id)
        if item is None:
            log.info("No metered subscription item; skipping usage report")
        return item

    @wrap_gateway_errors
    async def _push(self, item: SubscriptionItem, record: UsageRecord) -> None:
        await self._payment_gateway.create_usage_record(
            item.stripe_subscription_item_id,
            quantity=usage_quantity(record.quantity),
            timestamp=record.timestamp,
            idempotency_key=idempotency_key_for(record),
        )

    async def report(
        self,
        db: AsyncSession,
        subscription: Subscription,
        record: UsageRecord,
        log: ContextualLogger,
    ) -> ReportOutcome:
        """Forward one record and stamp reporting state on success.

        The caller owns the transaction and commits the bookkeeping writes.
        """
        item = await self._metered_item(db, subscription, log)
        if item is None:
            self._metrics.inc_reported(ReportOutcome.SKIPPED.value)
            return ReportOutcome.SKIPPED

        try:
            await self._push(item, record)
        except UpstreamReportingError as e:
            log.warning(f"Usage report for record {record.id} failed: {e.message}")
            self._metrics.inc_reported(ReportOutcome.FAILED.value)
            return ReportOutcome.FAILED

        now = utc_now()
        await self._item_repo.mark_reported(db, item=item, quantity=record.quantity, at=now)
        await self._usage_repo.mark_reported(db, record=record, at=now)
        self._metrics.inc_reported(ReportOutcome.REPORTED.value)
        log.info(f"Reported {usage_quantity(record.quantity)} units for record {record.id}")
        return ReportOutcome.REPORTED

    async def reconcile(
        self,
        db: AsyncSession,
        ctx: BaseContext,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> ReconcileSummary:
        """Replay unreported records of the caller's tenant, oldest first.

        Each record is committed on its own so a failure part-way through
        keeps the progress already made.
        """
        if subscription_id is not None:
            subscription = await self._subscription_repo.get(db, subscription_id=subscription_id)
            if subscription is None:
                raise NotFoundException("Subscription not found")
            if not ctx.owns(subscription.organization_id):
                raise PermissionException("Subscription belongs to another organization")

        records = await self._usage_repo.list_unreported(
            db, organization_id=ctx.organization_id, subscription_id=subscription_id, limit=limit
        )
        summary = ReconcileSummary()
        subscriptions: dict[UUID, Optional[Subscription]] = {}

        for record in records:
            if record.subscription_id not in subscriptions:
                subscriptions[record.subscription_id] = await self._subscription_repo.get(
                    db, subscription_id=record.subscription_id
                )
            subscription = subscriptions[record.subscription_id]
            summary.attempted += 1
            if subscription is None:
                summary.skipped += 1
                continue

            log = ctx.logger.with_context(subscription_id=str(subscription.id))
            outcome = await self.report(db, subscription, record, log)
            if outcome == ReportOutcome.REPORTED:
                summary.reported += 1
                await db.commit()
            elif outcome == ReportOutcome.SKIPPED:
                summary.skipped += 1
            else:
                summary.failed += 1

        ctx.logger.info(
            f"Reconciled usage: attempted={summary.attempted} reported={summary.reported} "
            f"skipped={summary.skipped} failed={summary.failed}"
        )
        return summary
