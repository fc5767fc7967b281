"""Stripe payment gateway.

Implements PaymentGatewayProtocol on top of the official ``stripe`` SDK.
The SDK is synchronous, so provider calls run in a worker thread with the
configured request timeout.
"""

import asyncio
from datetime import datetime
from typing import Any, Optional

import stripe

from meterline.core.exceptions import ExternalServiceError
from meterline.core.protocols.payment import PaymentGatewayProtocol


class StripePaymentGateway(PaymentGatewayProtocol):
    """Stripe-backed payment gateway."""

    def __init__(self, api_key: str, webhook_secret: str, timeout_seconds: float = 10) -> None:
        """Initialize a dedicated Stripe client configuration."""
        self._api_key = api_key
        self._webhook_secret = webhook_secret
        self._timeout = timeout_seconds
        stripe.default_http_client = stripe.RequestsClient(timeout=timeout_seconds)

    @property
    def enabled(self) -> bool:
        """Stripe is always a real provider."""
        return True

    async def create_usage_record(
        self,
        subscription_item_id: str,
        *,
        quantity: int,
        timestamp: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Any:
        """Increment metered usage on a Stripe subscription item."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    stripe.SubscriptionItem.create_usage_record,
                    subscription_item_id,
                    quantity=quantity,
                    timestamp=int(timestamp.timestamp()),
                    action="increment",
                    api_key=self._api_key,
                    idempotency_key=idempotency_key,
                ),
                timeout=self._timeout,
            )
        except stripe.StripeError as e:
            raise ExternalServiceError("Stripe", e.user_message or str(e)) from e
        except asyncio.TimeoutError as e:
            raise ExternalServiceError("Stripe", "Usage record request timed out") from e

    def verify_webhook_signature(self, payload: bytes, signature: str) -> Any:
        """Verify the ``Stripe-Signature`` header and build the event.

        Raises ValueError for a bad signature or an unparseable payload.
        """
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise ValueError(f"Invalid webhook signature: {e}") from e

    def construct_event(self, payload: dict) -> Any:
        """Rebuild a stored event without re-verifying it."""
        return stripe.Event.construct_from(payload, self._api_key)
