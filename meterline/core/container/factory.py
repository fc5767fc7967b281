"""Container factory.

Single source of truth for dependency wiring: reads the settings and picks
the adapter implementation for each protocol. All construction happens at
startup so misconfiguration fails fast.
"""

from prometheus_client import CollectorRegistry

from meterline.adapters.metrics import PrometheusMeteringMetrics, PrometheusMetricsRenderer
from meterline.adapters.usage_webhooks.http import HttpUsageWebhookSender
from meterline.core.config import Settings
from meterline.core.container.container import Container
from meterline.core.logging import logger
from meterline.core.protocols.payment import PaymentGatewayProtocol
from meterline.domains.api_keys.repository import ApiKeyRepository
from meterline.domains.api_keys.verifier import ApiKeyVerifier
from meterline.domains.billing.repository import (
    SubscriptionItemRepository,
    SubscriptionRepository,
    WebhookEventRepository,
)
from meterline.domains.billing.usage_reporter import BillingReporter
from meterline.domains.billing.webhook_processor import BillingWebhookProcessor
from meterline.domains.notifications.outbox import NotificationOutbox
from meterline.domains.notifications.repository import (
    EmailNotificationRepository,
    UserRepository,
)
from meterline.domains.usage.ingestion import UsageIngestionService
from meterline.domains.usage.limit_checker import UsageLimitEvaluator
from meterline.domains.usage.repository import UsageLimitEventRepository, UsageRecordRepository
from meterline.domains.usage.threshold_notifier import ThresholdNotifier


def create_container(settings: Settings) -> Container:
    """Build container with environment-appropriate implementations.

    Args:
        settings: Application settings (from core/config)

    Returns:
        Fully constructed Container ready for use
    """
    # -----------------------------------------------------------------
    # Infrastructure adapters
    # -----------------------------------------------------------------
    registry = CollectorRegistry()
    metrics = PrometheusMeteringMetrics(registry=registry)
    metrics_renderer = PrometheusMetricsRenderer(registry=registry)
    payment_gateway = _create_payment_gateway(settings)
    usage_webhook_sender = HttpUsageWebhookSender(
        timeout_seconds=settings.USAGE_REPORTING_TIMEOUT_SECONDS,
        max_attempts=settings.USAGE_REPORTING_MAX_ATTEMPTS,
    )

    # -----------------------------------------------------------------
    # Repositories (thin wrappers around crud singletons)
    # -----------------------------------------------------------------
    subscription_repo = SubscriptionRepository()
    usage_repo = UsageRecordRepository()

    # -----------------------------------------------------------------
    # Domain services
    # -----------------------------------------------------------------
    outbox = NotificationOutbox(
        user_repo=UserRepository(),
        notification_repo=EmailNotificationRepository(),
    )
    limit_evaluator = UsageLimitEvaluator(
        usage_repo=usage_repo,
        warning_percentage=settings.USAGE_WARNING_PERCENTAGE,
    )
    threshold_notifier = ThresholdNotifier(
        event_repo=UsageLimitEventRepository(),
        outbox=outbox,
        metrics=metrics,
    )
    billing_reporter = BillingReporter(
        payment_gateway=payment_gateway,
        subscription_repo=subscription_repo,
        item_repo=SubscriptionItemRepository(),
        usage_repo=usage_repo,
        metrics=metrics,
    )
    usage_ingestion = UsageIngestionService(
        subscription_repo=subscription_repo,
        usage_repo=usage_repo,
        evaluator=limit_evaluator,
        notifier=threshold_notifier,
        reporter=billing_reporter,
        webhook_sender=usage_webhook_sender,
        metrics=metrics,
        strict_locking=settings.USAGE_STRICT_LIMIT_LOCKING,
        query_max_records=settings.USAGE_QUERY_MAX_RECORDS,
    )
    billing_webhook = BillingWebhookProcessor(
        payment_gateway=payment_gateway,
        event_repo=WebhookEventRepository(),
        subscription_repo=subscription_repo,
        outbox=outbox,
        metrics=metrics,
        max_retries=settings.WEBHOOK_MAX_RETRIES,
    )

    return Container(
        payment_gateway=payment_gateway,
        usage_webhook_sender=usage_webhook_sender,
        metrics=metrics,
        metrics_renderer=metrics_renderer,
        api_key_verifier=ApiKeyVerifier(api_key_repo=ApiKeyRepository()),
        notification_outbox=outbox,
        limit_evaluator=limit_evaluator,
        threshold_notifier=threshold_notifier,
        usage_ingestion=usage_ingestion,
        billing_reporter=billing_reporter,
        billing_webhook=billing_webhook,
    )


def _create_payment_gateway(settings: Settings) -> PaymentGatewayProtocol:
    """Create payment gateway: Stripe if enabled, otherwise a null implementation."""
    if settings.STRIPE_ENABLED:
        from meterline.adapters.payment.stripe import StripePaymentGateway

        return StripePaymentGateway(
            api_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            timeout_seconds=settings.STRIPE_API_TIMEOUT_SECONDS,
        )

    from meterline.adapters.payment.null import NullPaymentGateway

    logger.info("Stripe disabled; usage reporting and billing webhooks are inactive")
    return NullPaymentGateway()
