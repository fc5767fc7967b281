"""Root conftest for pytest configuration and shared fixtures.

Loaded before the colocated tests under meterline/, so its environment
defaults apply before any meterline module reads the settings.
"""

import os

import pytest

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables: must be set before any meterline module import
# Uses setdefault so real env vars (CI, e2e) are never overridden.
# ---------------------------------------------------------------------------
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "test_user")
os.environ.setdefault("POSTGRES_PASSWORD", "test_password")
os.environ.setdefault("POSTGRES_DB", "test_db")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("STRIPE_ENABLED", "false")


# ---------------------------------------------------------------------------
# Shared fake fixtures: individual protocol fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_payment_gateway():
    """Fake PaymentGateway that records usage records and accepts the canned signature."""
    from meterline.adapters.payment.fake import FakePaymentGateway

    return FakePaymentGateway()


@pytest.fixture
def fake_metrics():
    """Fake MeteringMetrics with in-memory tallies."""
    from meterline.adapters.metrics import FakeMeteringMetrics

    return FakeMeteringMetrics()


@pytest.fixture
def fake_metrics_renderer():
    """Fake MetricsRenderer that returns a canned payload."""
    from meterline.adapters.metrics import FakeMetricsRenderer

    return FakeMetricsRenderer()


@pytest.fixture
def fake_usage_webhook_sender():
    """Fake UsageWebhookSender that records deliveries."""
    from meterline.adapters.usage_webhooks.fake import FakeUsageWebhookSender

    return FakeUsageWebhookSender()


@pytest.fixture
def fake_outbox():
    """Fake NotificationOutbox that records rendered emails."""
    from meterline.domains.notifications.fakes.outbox import FakeNotificationOutbox

    return FakeNotificationOutbox()


@pytest.fixture
def fake_api_key_verifier():
    """Fake ApiKeyVerifier with no registered keys."""
    from meterline.domains.api_keys.fakes.verifier import FakeApiKeyVerifier

    return FakeApiKeyVerifier()


# ---------------------------------------------------------------------------
# Shared fake repositories
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_subscription_repo():
    """In-memory subscription repository."""
    from meterline.domains.billing.fakes.repository import FakeSubscriptionRepository

    return FakeSubscriptionRepository()


@pytest.fixture
def fake_subscription_item_repo():
    """In-memory subscription item repository."""
    from meterline.domains.billing.fakes.repository import FakeSubscriptionItemRepository

    return FakeSubscriptionItemRepository()


@pytest.fixture
def fake_webhook_event_repo():
    """In-memory webhook event repository."""
    from meterline.domains.billing.fakes.repository import FakeWebhookEventRepository

    return FakeWebhookEventRepository()


@pytest.fixture
def fake_usage_repo():
    """In-memory usage ledger."""
    from meterline.domains.usage.fakes.repository import FakeUsageRecordRepository

    return FakeUsageRecordRepository()


@pytest.fixture
def fake_usage_event_repo():
    """In-memory usage limit event repository."""
    from meterline.domains.usage.fakes.repository import FakeUsageLimitEventRepository

    return FakeUsageLimitEventRepository()


# ---------------------------------------------------------------------------
# Test container: domain services wired to fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def test_container(
    fake_payment_gateway,
    fake_usage_webhook_sender,
    fake_metrics,
    fake_metrics_renderer,
    fake_api_key_verifier,
    fake_outbox,
    fake_subscription_repo,
    fake_subscription_item_repo,
    fake_webhook_event_repo,
    fake_usage_repo,
    fake_usage_event_repo,
):
    """A Container whose adapters and repositories are all fakes.

    The domain services are the real ones, so tests that go through the
    container exercise real behaviour against in-memory state.

    For partial overrides, use container.replace():
        container = test_container.replace(payment_gateway=FakePaymentGateway(enabled=False))
    """
    from meterline.core.container import Container
    from meterline.domains.billing.usage_reporter import BillingReporter
    from meterline.domains.billing.webhook_processor import BillingWebhookProcessor
    from meterline.domains.usage.ingestion import UsageIngestionService
    from meterline.domains.usage.limit_checker import UsageLimitEvaluator
    from meterline.domains.usage.threshold_notifier import ThresholdNotifier

    evaluator = UsageLimitEvaluator(usage_repo=fake_usage_repo)
    notifier = ThresholdNotifier(
        event_repo=fake_usage_event_repo, outbox=fake_outbox, metrics=fake_metrics
    )
    reporter = BillingReporter(
        payment_gateway=fake_payment_gateway,
        subscription_repo=fake_subscription_repo,
        item_repo=fake_subscription_item_repo,
        usage_repo=fake_usage_repo,
        metrics=fake_metrics,
    )
    return Container(
        payment_gateway=fake_payment_gateway,
        usage_webhook_sender=fake_usage_webhook_sender,
        metrics=fake_metrics,
        metrics_renderer=fake_metrics_renderer,
        api_key_verifier=fake_api_key_verifier,
        notification_outbox=fake_outbox,
        limit_evaluator=evaluator,
        threshold_notifier=notifier,
        usage_ingestion=UsageIngestionService(
            subscription_repo=fake_subscription_repo,
            usage_repo=fake_usage_repo,
            evaluator=evaluator,
            notifier=notifier,
            reporter=reporter,
            webhook_sender=fake_usage_webhook_sender,
            metrics=fake_metrics,
        ),
        billing_reporter=reporter,
        billing_webhook=BillingWebhookProcessor(
            payment_gateway=fake_payment_gateway,
            event_repo=fake_webhook_event_repo,
            subscription_repo=fake_subscription_repo,
            outbox=fake_outbox,
            metrics=fake_metrics,
            max_retries=3,
        ),
    )
