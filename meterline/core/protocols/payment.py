"""Payment gateway protocol.

Cross-cutting infrastructure protocol for the metered-billing provider.

Direct consumers: BillingReporter, BillingWebhookProcessor.
"""

from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Protocol for billing provider operations used by usage metering."""

    @property
    def enabled(self) -> bool:
        """Whether a real provider is configured."""
        ...

    # -------------------------------------------------------------------------
    # Metered usage
    # -------------------------------------------------------------------------

    async def create_usage_record(
        self,
        subscription_item_id: str,
        *,
        quantity: int,
        timestamp: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Increment metered usage on a subscription item.

        Raises ExternalServiceError on provider or network failure.
        """
        ...

    # -------------------------------------------------------------------------
    # Webhook operations
    # -------------------------------------------------------------------------

    def verify_webhook_signature(self, payload: bytes, signature: str) -> Any:
        """Verify and construct a webhook event. Raises ValueError if invalid."""
        ...

    def construct_event(self, payload: dict) -> Any:
        """Rebuild an already-verified event from its stored payload."""
        ...
