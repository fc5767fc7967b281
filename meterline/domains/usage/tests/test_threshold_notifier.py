"""Tests for ThresholdNotifier: one event per crossing, one notification per period."""

from datetime import timedelta
from uuid import uuid4

import pytest

from meterline.adapters.metrics import FakeMeteringMetrics
from meterline.core.logging import logger
from meterline.core.shared_models import UsageLimitEventType
from meterline.domains.notifications.fakes.outbox import FakeNotificationOutbox
from meterline.domains.usage.fakes.repository import FakeUsageLimitEventRepository
from meterline.domains.usage.tests.conftest import DEFAULT_USER_ID, _make_subscription, _make_tier
from meterline.domains.usage.threshold_notifier import ThresholdNotifier
from meterline.domains.usage.types import evaluate_limit
from meterline.models import UsageLimitEvent

LOG = logger.with_context(test="threshold_notifier")


def _decision(current: float, requested: float, limit: float = 100, action: str = "warn"):
    return evaluate_limit(
        usage_limit=limit,
        limit_action=action,
        overage_allowed=False,
        current_usage=current,
        requested_quantity=requested,
    )


def _make_notifier():
    events = FakeUsageLimitEventRepository()
    outbox = FakeNotificationOutbox()
    metrics = FakeMeteringMetrics()
    notifier = ThresholdNotifier(event_repo=events, outbox=outbox, metrics=metrics)
    return notifier, events, outbox, metrics


class TestNotifyCrossing:
    @pytest.mark.asyncio
    async def test_first_crossing_records_and_notifies(self, db):
        notifier, events, outbox, metrics = _make_notifier()
        sub = _make_subscription()

        event = await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(75, 7), LOG)

        assert event is not None
        assert event.event_type == UsageLimitEventType.WARNING.value
        assert event.threshold == pytest.approx(0.8)
        assert event.notification_sent is True
        assert event.current_usage == 82
        assert outbox.types() == ["usage_warning"]
        assert metrics.threshold_events["warning"] == 1

    @pytest.mark.asyncio
    async def test_same_threshold_not_notified_twice_in_period(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()

        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(75, 7), LOG)
        second = await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(82, 3), LOG)

        assert second is None
        assert len(events.events) == 1
        assert len(outbox.sent) == 1

    @pytest.mark.asyncio
    async def test_jump_past_several_thresholds_records_only_highest(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()

        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(70, 27), LOG)

        assert len(events.events) == 1
        assert events.events[0].event_type == UsageLimitEventType.CRITICAL.value
        assert events.events[0].threshold == pytest.approx(0.95)
        assert outbox.types() == ["usage_critical"]

    @pytest.mark.asyncio
    async def test_new_period_notifies_again(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()
        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(75, 7), LOG)

        sub.current_period_start = sub.current_period_start + timedelta(days=30)
        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(75, 7), LOG)

        assert len(events.events) == 2
        assert len(outbox.sent) == 2

    @pytest.mark.asyncio
    async def test_below_thresholds_records_nothing(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()

        event = await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(10, 5), LOG)

        assert event is None
        assert events.events == []
        assert outbox.sent == []

    @pytest.mark.asyncio
    async def test_unlimited_tier_records_nothing(self, db):
        notifier, events, _, _ = _make_notifier()
        sub = _make_subscription(tier=_make_tier(usage_limit=None))
        decision = evaluate_limit(
            usage_limit=None,
            limit_action="block",
            overage_allowed=False,
            current_usage=0,
            requested_quantity=500,
        )

        assert await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, decision, LOG) is None
        assert events.events == []

    @pytest.mark.asyncio
    async def test_tier_without_thresholds_uses_defaults(self, db):
        notifier, events, _, _ = _make_notifier()
        sub = _make_subscription(tier=_make_tier(warning_thresholds=None))

        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(85, 6), LOG)

        assert events.events[0].threshold == pytest.approx(0.9)

    @pytest.mark.asyncio
    async def test_recipient_without_email_leaves_event_unnotified(self, db):
        notifier, events, outbox, _ = _make_notifier()
        outbox.no_email.add(DEFAULT_USER_ID)
        sub = _make_subscription()

        event = await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(75, 7), LOG)

        assert event.notification_sent is False
        assert outbox.sent == []

    @pytest.mark.asyncio
    async def test_over_limit_accepted_usage_is_exceeded(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()

        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(95, 20), LOG)

        assert events.events[0].event_type == UsageLimitEventType.EXCEEDED.value
        assert events.events[0].threshold == pytest.approx(1.0)
        assert outbox.types() == ["usage_exceeded"]

    @pytest.mark.asyncio
    async def test_threshold_at_limit_does_not_swallow_exceeded(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription(tier=_make_tier(warning_thresholds=[80, 100]))

        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(90, 10), LOG)
        await notifier.notify_crossing(db, sub, DEFAULT_USER_ID, _decision(100, 5), LOG)

        assert [e.threshold for e in events.events] == [pytest.approx(0.8), pytest.approx(1.0)]
        assert outbox.types() == ["usage_critical", "usage_exceeded"]


class TestRecordExceeded:
    @pytest.mark.asyncio
    async def test_every_block_recorded_only_first_notified(self, db):
        notifier, events, outbox, metrics = _make_notifier()
        sub = _make_subscription()
        decision = _decision(90, 15, action="block")

        first = await notifier.record_exceeded(db, sub, DEFAULT_USER_ID, decision, LOG)
        second = await notifier.record_exceeded(db, sub, DEFAULT_USER_ID, decision, LOG)

        assert first.notification_sent is True
        assert second.notification_sent is False
        assert len(events.events) == 2
        assert outbox.types() == ["usage_exceeded"]
        assert metrics.threshold_events["exceeded"] == 2

    @pytest.mark.asyncio
    async def test_lost_race_is_recorded_unnotified(self, db):
        notifier, events, outbox, _ = _make_notifier()
        sub = _make_subscription()
        decision = _decision(90, 15, action="block")

        # A concurrent writer notified between the existence check and the insert.
        async def _not_yet(*args, **kwargs):
            return False

        events.notified_exists = _not_yet
        events.seed(
            UsageLimitEvent(
                id=uuid4(),
                subscription_id=sub.id,
                user_id=DEFAULT_USER_ID,
                event_type="exceeded",
                threshold=1.0,
                current_usage=105,
                usage_limit=100,
                percentage=105,
                notification_sent=True,
                period_start=sub.current_period_start,
            )
        )

        event = await notifier.record_exceeded(db, sub, DEFAULT_USER_ID, decision, LOG)

        assert event is not None
        assert event.notification_sent is False
        assert outbox.sent == []
