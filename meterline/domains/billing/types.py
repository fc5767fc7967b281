"""Billing domain types and pure business logic.

Webhook event types, report outcomes and the subscription status
transition rules applied by webhook handlers. No IO.
"""

from enum import Enum
from typing import Optional

from meterline.core.shared_models import SubscriptionStatus


class BillingEventType(str, Enum):
    """Provider webhook event types with side effects."""

    CHECKOUT_COMPLETED = "checkout.session.completed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    PAYMENT_FAILED = "invoice.payment_failed"

    @classmethod
    def parse(cls, value: str) -> Optional["BillingEventType"]:
        """Return the member for *value*, or None for unsupported types."""
        try:
            return cls(value)
        except ValueError:
            return None


class ReportOutcome(str, Enum):
    """Result of forwarding one usage record to the billing provider."""

    REPORTED = "reported"
    SKIPPED = "skipped"
    FAILED = "failed"


# Provider statuses we mirror; anything else leaves the local status alone.
_PROVIDER_STATUSES: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "trialing": SubscriptionStatus.TRIALING,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


def map_provider_status(status: Optional[str]) -> Optional[SubscriptionStatus]:
    """Map a provider subscription status onto a local status."""
    if status is None:
        return None
    return _PROVIDER_STATUSES.get(status)


def payment_transition(
    current: SubscriptionStatus, event_type: BillingEventType
) -> Optional[SubscriptionStatus]:
    """Status a payment event moves a subscription to, or None for no change."""
    if event_type == BillingEventType.PAYMENT_FAILED and current in (
        SubscriptionStatus.ACTIVE,
        SubscriptionStatus.TRIALING,
    ):
        return SubscriptionStatus.PAST_DUE
    if (
        event_type == BillingEventType.PAYMENT_SUCCEEDED
        and current == SubscriptionStatus.PAST_DUE
    ):
        return SubscriptionStatus.ACTIVE
    return None


def usage_quantity(quantity: float) -> int:
    """Round a usage delta to whole units, halves rounding up."""
    return int(quantity + 0.5) if quantity >= 0 else 0
