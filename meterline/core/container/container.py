"""Dependency Injection Container.

The container is a simple immutable dataclass that holds protocol implementations.
It has no construction logic; that belongs in the factory.
"""

from dataclasses import dataclass, replace
from typing import Any

from meterline.core.protocols import (
    MeteringMetrics,
    MetricsRenderer,
    PaymentGatewayProtocol,
    UsageWebhookSenderProtocol,
)
from meterline.domains.api_keys.protocols import ApiKeyVerifierProtocol
from meterline.domains.billing.protocols import BillingReporterProtocol, BillingWebhookProtocol
from meterline.domains.notifications.protocols import NotificationOutboxProtocol
from meterline.domains.usage.protocols import (
    LimitEvaluatorProtocol,
    ThresholdNotifierProtocol,
    UsageIngestionProtocol,
)


@dataclass(frozen=True)
class Container:
    """Immutable container holding all protocol implementations.

    FastAPI endpoints use Inject() to pull individual protocols:

        from meterline.api.deps import Inject
        async def my_endpoint(usage: UsageIngestionProtocol = Inject(UsageIngestionProtocol)):
            ...
    """

    # Infrastructure adapters
    payment_gateway: PaymentGatewayProtocol
    usage_webhook_sender: UsageWebhookSenderProtocol
    metrics: MeteringMetrics
    metrics_renderer: MetricsRenderer

    # Authentication
    api_key_verifier: ApiKeyVerifierProtocol

    # Notifications
    notification_outbox: NotificationOutboxProtocol

    # Usage domain
    limit_evaluator: LimitEvaluatorProtocol
    threshold_notifier: ThresholdNotifierProtocol
    usage_ingestion: UsageIngestionProtocol

    # Billing domain
    billing_reporter: BillingReporterProtocol
    billing_webhook: BillingWebhookProtocol

    def replace(self, **changes: Any) -> "Container":
        """Create a new container with some dependencies replaced.

            modified = container.replace(payment_gateway=FakePaymentGateway())
        """
        return replace(self, **changes)
