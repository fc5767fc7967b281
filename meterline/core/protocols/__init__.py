"""Infrastructure protocols consumed by domain services."""

from meterline.core.protocols.metrics import MeteringMetrics, MetricsRenderer
from meterline.core.protocols.payment import PaymentGatewayProtocol
from meterline.core.protocols.usage_webhooks import UsageWebhookSenderProtocol

__all__ = [
    "MeteringMetrics",
    "MetricsRenderer",
    "PaymentGatewayProtocol",
    "UsageWebhookSenderProtocol",
]
