"""Schemas for the application."""

from .api_key import VerifiedApiKey
from .health import HealthResponse
from .usage import (
    LimitExceededDetail,
    ReconcileRequest,
    ReconcileSummary,
    UsageCreate,
    UsageIngestResponse,
    UsageLimits,
    UsageQueryResponse,
    UsageRecord,
)
from .webhook_event import WebhookEvent, WebhookReceived, WebhookReplayResult

__all__ = [
    "HealthResponse",
    "LimitExceededDetail",
    "ReconcileRequest",
    "ReconcileSummary",
    "UsageCreate",
    "UsageIngestResponse",
    "UsageLimits",
    "UsageQueryResponse",
    "UsageRecord",
    "VerifiedApiKey",
    "WebhookEvent",
    "WebhookReceived",
    "WebhookReplayResult",
]
