"""Billing domain test fixtures and helpers.

Provides ORM model builders, processor/reporter wiring with fakes, and
provider event payloads shaped like real webhook deliveries.
"""

import json
import time
from datetime import timedelta
from typing import Any, Optional
from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest

from meterline.adapters.metrics import FakeMeteringMetrics
from meterline.adapters.payment.fake import FakePaymentGateway
from meterline.core.context import BaseContext
from meterline.core.datetime_utils import utc_now
from meterline.core.logging import logger
from meterline.core.shared_models import SubscriptionItemType, SubscriptionStatus
from meterline.domains.billing.fakes.repository import (
    FakeSubscriptionItemRepository,
    FakeSubscriptionRepository,
    FakeWebhookEventRepository,
)
from meterline.domains.billing.usage_reporter import BillingReporter
from meterline.domains.billing.webhook_processor import BillingWebhookProcessor
from meterline.domains.notifications.fakes.outbox import FakeNotificationOutbox
from meterline.domains.usage.fakes.repository import FakeUsageRecordRepository
from meterline.models import Product, Subscription, SubscriptionItem, Tier

DEFAULT_ORG_ID = UUID("00000000-0000-0000-0000-000000000001")
OTHER_ORG_ID = UUID("00000000-0000-0000-0000-000000000002")
DEFAULT_USER_ID = UUID("00000000-0000-0000-0000-0000000000aa")
VALID = FakePaymentGateway.VALID_SIGNATURE

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_ctx(org_id: UUID = DEFAULT_ORG_ID) -> BaseContext:
    """Build a tenant context for tests."""
    return BaseContext(organization_id=org_id, logger=logger.with_context(request_id="test"))


def _make_subscription(org_id: UUID = DEFAULT_ORG_ID, **overrides: Any) -> Subscription:
    """Return a metered Subscription ORM model linked to provider id ``sub_test``."""
    now = utc_now()
    product = Product(id=uuid4(), organization_id=org_id, name="Widgets API")
    tier = Tier(
        id=uuid4(),
        product_id=product.id,
        name="Pro",
        usage_limit=1000.0,
        limit_action="warn",
        overage_allowed=False,
        warning_thresholds=[80, 90, 95],
        metering_enabled=True,
    )
    defaults = dict(
        id=uuid4(),
        organization_id=org_id,
        product_id=product.id,
        tier_id=tier.id,
        user_id=DEFAULT_USER_ID,
        stripe_subscription_id="sub_test",
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


def _make_metered_item(subscription: Subscription, **overrides: Any) -> SubscriptionItem:
    defaults = dict(
        id=uuid4(),
        subscription_id=subscription.id,
        stripe_subscription_item_id="si_metered",
        item_type=SubscriptionItemType.METERED_USAGE.value,
        last_reported_usage=None,
        last_reported_at=None,
    )
    defaults.update(overrides)
    return SubscriptionItem(**defaults)


def _event_payload(
    event_type: str,
    data_object: dict[str, Any],
    event_id: str = "evt_test",
    created: Optional[int] = None,
) -> bytes:
    """Serialize a provider event the way it arrives on the wire."""
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created if created is not None else int(time.time()),
            "data": {"object": data_object},
        }
    ).encode()


def _subscription_object(**overrides: Any) -> dict[str, Any]:
    """Provider subscription object with defaults."""
    now_ts = int(time.time())
    defaults = dict(
        id="sub_test",
        object="subscription",
        status="active",
        current_period_start=now_ts,
        current_period_end=now_ts + 30 * 86400,
        cancel_at_period_end=False,
    )
    defaults.update(overrides)
    return defaults


def _invoice_object(**overrides: Any) -> dict[str, Any]:
    """Provider invoice object with defaults."""
    defaults = dict(
        id="in_test",
        object="invoice",
        subscription="sub_test",
        amount_due=2000,
        amount_paid=2000,
        currency="usd",
    )
    defaults.update(overrides)
    return defaults


def _checkout_object(
    subscription: Optional[Subscription] = None, **overrides: Any
) -> dict[str, Any]:
    """Completed checkout session carrying the subscriber metadata set at checkout."""
    metadata = {}
    if subscription is not None:
        metadata = {"userId": str(subscription.user_id), "tierId": str(subscription.tier_id)}
    defaults = dict(
        id="cs_test",
        object="checkout.session",
        mode="subscription",
        subscription="sub_checkout",
        metadata=metadata,
    )
    defaults.update(overrides)
    return defaults


class WebhookHarness:
    """A BillingWebhookProcessor wired to fakes, with the fakes exposed."""

    def __init__(self, max_retries: int = 3) -> None:
        self.gateway = FakePaymentGateway()
        self.events = FakeWebhookEventRepository()
        self.subscriptions = FakeSubscriptionRepository()
        self.outbox = FakeNotificationOutbox()
        self.metrics = FakeMeteringMetrics()
        self.processor = BillingWebhookProcessor(
            payment_gateway=self.gateway,
            event_repo=self.events,
            subscription_repo=self.subscriptions,
            outbox=self.outbox,
            metrics=self.metrics,
            max_retries=max_retries,
        )


class ReporterHarness:
    """A BillingReporter wired to fakes, with the fakes exposed."""

    def __init__(self, payment_gateway: Optional[FakePaymentGateway] = None) -> None:
        self.gateway = payment_gateway or FakePaymentGateway()
        self.subscriptions = FakeSubscriptionRepository()
        self.items = FakeSubscriptionItemRepository()
        self.usage = FakeUsageRecordRepository()
        self.metrics = FakeMeteringMetrics()
        self.reporter = BillingReporter(
            payment_gateway=self.gateway,
            subscription_repo=self.subscriptions,
            item_repo=self.items,
            usage_repo=self.usage,
            metrics=self.metrics,
        )

    def add(self, subscription: Subscription, metered: bool = True) -> Subscription:
        self.subscriptions.seed(subscription)
        self.usage.owners[subscription.id] = subscription.organization_id
        if metered:
            self.items.seed(_make_metered_item(subscription))
        return subscription


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """AsyncMock session."""
    return AsyncMock()


@pytest.fixture
def webhooks():
    return WebhookHarness()


@pytest.fixture
def reporting():
    return ReporterHarness()
