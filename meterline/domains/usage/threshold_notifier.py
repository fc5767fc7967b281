"""Threshold notifier.

Turns a limit decision into at most one ``UsageLimitEvent`` per call and at
most one *notified* event per (subscription, threshold, billing period).
The event row and its outbox entry are written in the caller's
transaction; a concurrent duplicate is rejected by the partial unique
index and treated as already notified.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import ensure_aware, utc_now
from meterline.core.logging import ContextualLogger
from meterline.core.protocols.metrics import MeteringMetrics
from meterline.core.shared_models import UsageLimitEventType
from meterline.domains.notifications.protocols import NotificationOutboxProtocol
from meterline.domains.notifications.templates import render_usage_notification
from meterline.domains.usage.protocols import ThresholdNotifierProtocol
from meterline.domains.usage.repository import UsageLimitEventRepositoryProtocol
from meterline.domains.usage.types import (
    EXCEEDED_THRESHOLD,
    LimitDecision,
    ThresholdCrossing,
    find_threshold_crossing,
)
from meterline.models import Subscription, UsageLimitEvent
from meterline.models.tier import DEFAULT_WARNING_THRESHOLDS


class ThresholdNotifier(ThresholdNotifierProtocol):
    """Records threshold crossings and enqueues their notifications."""

    def __init__(
        self,
        event_repo: UsageLimitEventRepositoryProtocol,
        outbox: NotificationOutboxProtocol,
        metrics: MeteringMetrics,
    ) -> None:
        """Initialize with repository and outbox dependencies."""
        self._event_repo = event_repo
        self._outbox = outbox
        self._metrics = metrics

    async def notify_crossing(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        log: ContextualLogger,
    ) -> Optional[UsageLimitEvent]:
        """Record and notify the highest threshold crossed by accepted usage.

        Returns None when nothing was crossed or the threshold was already
        notified this period.
        """
        if decision.unlimited:
            return None
        thresholds = subscription.tier.warning_thresholds
        if thresholds is None:
            thresholds = DEFAULT_WARNING_THRESHOLDS
        crossing = find_threshold_crossing(decision.percentage, thresholds)
        if crossing is None:
            return None
        return await self._record(
            db, subscription, user_id, decision, crossing, log, keep_duplicate=False
        )

    async def record_exceeded(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        log: ContextualLogger,
    ) -> Optional[UsageLimitEvent]:
        """Record a blocked ingestion as an ``exceeded`` event.

        Every block is recorded; only the first per period is notified.
        """
        crossing = ThresholdCrossing(EXCEEDED_THRESHOLD, UsageLimitEventType.EXCEEDED)
        return await self._record(
            db, subscription, user_id, decision, crossing, log, keep_duplicate=True
        )

    async def _record(
        self,
        db: AsyncSession,
        subscription: Subscription,
        user_id: UUID,
        decision: LimitDecision,
        crossing: ThresholdCrossing,
        log: ContextualLogger,
        *,
        keep_duplicate: bool,
    ) -> Optional[UsageLimitEvent]:
        period_start = ensure_aware(subscription.current_period_start) or utc_now()
        event_type = crossing.event_type

        already_notified = await self._event_repo.notified_exists(
            db,
            subscription_id=subscription.id,
            threshold=crossing.threshold,
            period_start=period_start,
        )
        if already_notified and not keep_duplicate:
            log.debug(f"Threshold {crossing.threshold:.2f} already notified this period")
            return None

        has_recipient = not already_notified and await self._outbox.has_recipient(db, user_id)
        notify = has_recipient
        obj_in = {
            "subscription_id": subscription.id,
            "user_id": user_id,
            "event_type": event_type.value,
            "threshold": crossing.threshold,
            "current_usage": decision.new_total,
            "usage_limit": decision.limit,
            "percentage": decision.percentage,
            "notification_sent": notify,
            "period_start": period_start,
        }
        event = await self._event_repo.create(db, obj_in=obj_in)
        if event is None:
            # Lost the race to a concurrent writer for the same threshold.
            if not keep_duplicate:
                return None
            notify = False
            event = await self._event_repo.create(
                db, obj_in={**obj_in, "notification_sent": False}
            )

        self._metrics.inc_threshold_event(event_type.value)
        log.warning(
            f"Usage {event_type.value} at {decision.percentage:.1f}% "
            f"({decision.new_total:g}/{decision.limit:g})"
        )

        if notify:
            await self._outbox.enqueue(
                db,
                user_id,
                render_usage_notification(
                    event_type, decision.new_total, decision.limit, decision.percentage
                ),
                log,
            )
        elif not already_notified and not has_recipient:
            log.warning(f"No notification recipient for user {user_id}; event left unnotified")
        return event
