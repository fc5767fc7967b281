"""Shared models for the backend."""

from enum import Enum


class AuthMethod(str, Enum):
    """Authentication methods used in API requests.

    Defines the valid authentication methods for API context.
    """

    API_KEY = "api_key"  # Programmatic access via tenant API keys
    SYSTEM = "system"  # Internal system operations (migrations, scripts)
    STRIPE_WEBHOOK = "stripe_webhook"  # Billing provider webhook handlers


class ApiKeyScope(str, Enum):
    """Scopes an API key can be granted."""

    USAGE_WRITE = "usage:write"
    USAGE_READ = "usage:read"
    WEBHOOKS_ADMIN = "webhooks:admin"
    ALL = "*"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status, mirrored from the billing provider."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"


class LimitAction(str, Enum):
    """What a tier does when usage goes over its limit."""

    ALLOW = "allow"
    WARN = "warn"
    BLOCK = "block"
    OVERAGE = "overage"


class UsageLimitEventType(str, Enum):
    """Kinds of usage limit events recorded per subscription."""

    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"
    RESET = "reset"


class WebhookEventStatus(str, Enum):
    """Processing state of a persisted provider webhook event."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"


class SubscriptionItemType(str, Enum):
    """Line items of a provider subscription."""

    BASE = "base"
    METERED_USAGE = "metered_usage"


class NotificationStatus(str, Enum):
    """Outbox delivery state of an email notification."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
