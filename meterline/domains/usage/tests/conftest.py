"""Usage domain test fixtures and helpers.

Builds ORM models, contexts and fully-faked services so each test only
states what differs from the defaults.
"""

from datetime import timedelta
from typing import Any, Optional
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from meterline.adapters.metrics import FakeMeteringMetrics
from meterline.adapters.payment.fake import FakePaymentGateway
from meterline.adapters.usage_webhooks.fake import FakeUsageWebhookSender
from meterline.core.context import BaseContext
from meterline.core.datetime_utils import utc_now
from meterline.core.logging import logger
from meterline.core.shared_models import LimitAction, SubscriptionStatus
from meterline.domains.billing.fakes.repository import (
    FakeSubscriptionItemRepository,
    FakeSubscriptionRepository,
)
from meterline.domains.billing.usage_reporter import BillingReporter
from meterline.domains.notifications.fakes.outbox import FakeNotificationOutbox
from meterline.domains.usage.fakes.repository import (
    FakeUsageLimitEventRepository,
    FakeUsageRecordRepository,
)
from meterline.domains.usage.ingestion import UsageIngestionService
from meterline.domains.usage.limit_checker import UsageLimitEvaluator
from meterline.domains.usage.threshold_notifier import ThresholdNotifier
from meterline.models import MeteringConfig, Product, Subscription, Tier

DEFAULT_ORG_ID = UUID("00000000-0000-0000-0000-000000000001")
OTHER_ORG_ID = UUID("00000000-0000-0000-0000-000000000002")
DEFAULT_USER_ID = UUID("00000000-0000-0000-0000-0000000000aa")

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_ctx(org_id: UUID = DEFAULT_ORG_ID) -> BaseContext:
    """Build a tenant context for tests."""
    return BaseContext(
        organization_id=org_id,
        logger=logger.with_context(request_id="test-req-001"),
    )


def _make_tier(**overrides: Any) -> Tier:
    """Return a Tier ORM model: limit 100, block, default thresholds."""
    defaults = dict(
        id=uuid4(),
        product_id=uuid4(),
        name="Pro",
        usage_limit=100.0,
        limit_action=LimitAction.BLOCK.value,
        overage_allowed=False,
        warning_thresholds=[80, 90, 95],
        metering_enabled=False,
    )
    defaults.update(overrides)
    return Tier(**defaults)


def _make_subscription(
    org_id: UUID = DEFAULT_ORG_ID,
    tier: Optional[Tier] = None,
    usage_reporting_url: Optional[str] = None,
    **overrides: Any,
) -> Subscription:
    """Return a Subscription ORM model with its tier and product attached."""
    now = utc_now()
    tier = tier or _make_tier()
    product = Product(id=tier.product_id, organization_id=org_id, name="Widgets API")
    if usage_reporting_url:
        product.metering_config = MeteringConfig(
            id=uuid4(),
            product_id=product.id,
            metering_type="api_calls",
            metering_unit="call",
            aggregation_type="sum",
            usage_reporting_url=usage_reporting_url,
        )
    defaults = dict(
        id=uuid4(),
        organization_id=org_id,
        product_id=product.id,
        tier_id=tier.id,
        user_id=DEFAULT_USER_ID,
        stripe_subscription_id=None,
        status=SubscriptionStatus.ACTIVE.value,
        current_period_start=now - timedelta(days=1),
        current_period_end=now + timedelta(days=29),
        cancel_at_period_end=False,
        last_provider_event_at=None,
    )
    defaults.update(overrides)
    subscription = Subscription(**defaults)
    subscription.tier = tier
    subscription.product = product
    return subscription


class UsageHarness:
    """A UsageIngestionService wired to fakes, with the fakes exposed."""

    def __init__(
        self,
        *,
        payment_gateway: Optional[FakePaymentGateway] = None,
        webhook_sender: Optional[FakeUsageWebhookSender] = None,
        strict_locking: bool = True,
        query_max_records: int = 100,
    ) -> None:
        self.subscriptions = FakeSubscriptionRepository()
        self.items = FakeSubscriptionItemRepository()
        self.usage = FakeUsageRecordRepository()
        self.events = FakeUsageLimitEventRepository()
        self.outbox = FakeNotificationOutbox()
        self.metrics = FakeMeteringMetrics()
        self.gateway = payment_gateway or FakePaymentGateway(enabled=False)
        self.webhook_sender = webhook_sender or FakeUsageWebhookSender()

        self.evaluator = UsageLimitEvaluator(usage_repo=self.usage)
        self.notifier = ThresholdNotifier(
            event_repo=self.events, outbox=self.outbox, metrics=self.metrics
        )
        self.reporter = BillingReporter(
            payment_gateway=self.gateway,
            subscription_repo=self.subscriptions,
            item_repo=self.items,
            usage_repo=self.usage,
            metrics=self.metrics,
        )
        self.service = UsageIngestionService(
            subscription_repo=self.subscriptions,
            usage_repo=self.usage,
            evaluator=self.evaluator,
            notifier=self.notifier,
            reporter=self.reporter,
            webhook_sender=self.webhook_sender,
            metrics=self.metrics,
            strict_locking=strict_locking,
            query_max_records=query_max_records,
        )

    def add(self, subscription: Subscription, current_usage: float = 0.0) -> Subscription:
        """Seed a subscription and, optionally, its usage so far this period."""
        self.subscriptions.seed(subscription)
        self.usage.owners[subscription.id] = subscription.organization_id
        if current_usage:
            self.usage.seed(
                subscription.id,
                current_usage,
                user_id=subscription.user_id,
                timestamp=subscription.current_period_start + timedelta(minutes=1),
            )
        return subscription


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """AsyncMock session; services only commit and roll back through it."""
    return AsyncMock()


@pytest.fixture
def harness():
    """UsageHarness with billing disabled."""
    return UsageHarness()
