"""Models for the application."""

from ._base import Base
from .api_key import APIKey
from .email_notification import EmailNotification
from .organization import Organization
from .product import MeteringConfig, Product
from .subscription import Subscription, SubscriptionItem
from .tier import Tier
from .usage_limit_event import UsageLimitEvent
from .usage_record import UsageRecord
from .user import User
from .webhook_event import WebhookEvent

__all__ = [
    "APIKey",
    "Base",
    "EmailNotification",
    "MeteringConfig",
    "Organization",
    "Product",
    "Subscription",
    "SubscriptionItem",
    "Tier",
    "UsageLimitEvent",
    "UsageRecord",
    "User",
    "WebhookEvent",
]
