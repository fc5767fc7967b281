"""Email templates for usage and billing notifications.

Pure functions; no IO.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from meterline.core.shared_models import UsageLimitEventType


@dataclass(frozen=True)
class RenderedEmail:
    """Subject, body and metadata of an outbox entry."""

    type: str
    subject: str
    body: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _units(value: float) -> str:
    if float(value).is_integer():
        return f"{value:,.0f}"
    return f"{value:,.2f}"


def usage_subject(event_type: UsageLimitEventType, percentage: float) -> str:
    """Subject line for a usage threshold notification."""
    if event_type == UsageLimitEventType.EXCEEDED:
        return "Usage Limit Exceeded"
    if event_type == UsageLimitEventType.CRITICAL:
        return f"Critical: {percentage:.0f}% of Usage Limit Reached"
    if event_type == UsageLimitEventType.WARNING:
        return f"Notice: {percentage:.0f}% of Usage Limit Reached"
    return "Usage Notification"


def usage_body(
    event_type: UsageLimitEventType, current_usage: float, limit: float, percentage: float
) -> str:
    """Plain-text body for a usage threshold notification."""
    remaining = limit - current_usage

    if event_type == UsageLimitEventType.EXCEEDED:
        lines = [
            "Your usage has exceeded the allocated limit.",
            "",
            f"Current Usage: {_units(current_usage)} units",
            f"Limit: {_units(limit)} units",
            f"Over by: {_units(abs(remaining))} units",
            "",
            ("Overage charges may apply. " if remaining < 0 else "")
            + "Please consider upgrading your plan to avoid service interruptions.",
        ]
        return "\n".join(lines)

    lines = [
        f"You have used {percentage:.1f}% of your allocated usage.",
        "",
        f"Current Usage: {_units(current_usage)} units",
        f"Limit: {_units(limit)} units",
        f"Remaining: {_units(remaining)} units",
    ]
    if percentage >= 90:
        lines += ["", "You're approaching your limit. Consider upgrading to avoid interruptions."]
    return "\n".join(lines)


def render_usage_notification(
    event_type: UsageLimitEventType, current_usage: float, limit: float, percentage: float
) -> RenderedEmail:
    """Render a ``usage_<eventType>`` notification."""
    return RenderedEmail(
        type=f"usage_{event_type.value}",
        subject=usage_subject(event_type, percentage),
        body=usage_body(event_type, current_usage, limit, percentage),
        metadata={
            "currentUsage": current_usage,
            "limit": limit,
            "percentage": f"{percentage:.1f}",
        },
    )


def _amount(amount_cents: Optional[int]) -> str:
    return f"${(amount_cents or 0) / 100:.2f}"


def render_billing_notification(
    notification_type: str,
    *,
    product_name: str,
    tier_name: Optional[str] = None,
    amount_cents: Optional[int] = None,
    **metadata: Any,
) -> RenderedEmail:
    """Render a subscription or payment lifecycle notification.

    Types: ``subscription_created``, ``subscription_updated``,
    ``subscription_cancelling`` (cancel at period end),
    ``subscription_cancelled``, ``payment_succeeded``, ``payment_failed``.
    """
    if notification_type == "subscription_created":
        subject = "Your Subscription is Active"
        plan = f"{product_name} ({tier_name})" if tier_name else product_name
        body = f"Your subscription to {plan} is now active."
    elif notification_type == "subscription_updated":
        subject = "Your Subscription Has Been Updated"
        body = f"Your subscription to {product_name} has been updated."
    elif notification_type == "subscription_cancelling":
        notification_type = "subscription_cancelled"
        subject = "Your Subscription Will Be Cancelled"
        body = (
            f"Your subscription to {product_name} will be cancelled at the end of the "
            "current billing period."
        )
    elif notification_type == "subscription_cancelled":
        subject = "Your Subscription Has Been Cancelled"
        body = f"Your subscription to {product_name} has been cancelled."
    elif notification_type == "payment_succeeded":
        subject = "Payment Received"
        body = f"We've received your payment of {_amount(amount_cents)} for {product_name}."
    elif notification_type == "payment_failed":
        subject = "Payment Failed"
        body = (
            f"Your payment of {_amount(amount_cents)} for {product_name} failed. "
            "Please update your payment method to keep your subscription active."
        )
    else:
        raise ValueError(f"Unknown billing notification type: {notification_type}")

    if amount_cents is not None:
        metadata["amount"] = amount_cents
    return RenderedEmail(type=notification_type, subject=subject, body=body, metadata=metadata)
