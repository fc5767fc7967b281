"""Null payment gateway for when Stripe is disabled.

Satisfies PaymentGatewayProtocol so the container can always be fully
constructed. The Billing Reporter checks ``enabled`` and skips reporting.

verify_webhook_signature raises ValueError, matching the Stripe adapter's
contract for invalid signatures.
"""

from datetime import datetime
from typing import Any, Optional

from meterline.core.exceptions import ExternalServiceError
from meterline.core.protocols.payment import PaymentGatewayProtocol


class NullPaymentGateway(PaymentGatewayProtocol):
    """No-op payment gateway used when Stripe is disabled."""

    @property
    def enabled(self) -> bool:
        """No provider is configured."""
        return False

    async def create_usage_record(
        self,
        subscription_item_id: str,
        *,
        quantity: int,
        timestamp: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Reject: there is no provider to report to."""
        raise ExternalServiceError("PaymentGateway", "Billing is not enabled for this instance")

    def verify_webhook_signature(self, payload: bytes, signature: str) -> Any:
        """Reject every webhook: no shared secret is configured."""
        raise ValueError("Billing webhooks are not enabled for this instance")

    def construct_event(self, payload: dict) -> Any:
        """Reject: stored events cannot be replayed without a provider."""
        raise ValueError("Billing webhooks are not enabled for this instance")
