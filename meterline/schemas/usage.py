"""Usage ingestion and query schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from meterline.core.shared_models import LimitAction
from meterline.schemas._camel import CamelModel


class UsageCreate(CamelModel):
    """Body of ``POST /usage``."""

    subscription_id: UUID = Field(..., description="Subscription the usage belongs to")
    user_id: UUID = Field(..., description="End user that consumed the usage")
    quantity: float = Field(..., ge=0, description="Usage delta, never negative")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Opaque key-value data")


class UsageRecord(CamelModel):
    """A stored usage record as returned to integrators."""

    id: UUID
    subscription_id: UUID
    user_id: UUID
    quantity: float
    timestamp: datetime
    metadata: dict[str, Any] = Field(default_factory=dict)
    reported_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, record: Any) -> "UsageRecord":
        """Build from an ORM row (whose metadata lives in ``usage_metadata``)."""
        return cls(
            id=record.id,
            subscription_id=record.subscription_id,
            user_id=record.user_id,
            quantity=record.quantity,
            timestamp=record.timestamp,
            metadata=record.usage_metadata or {},
            reported_at=record.reported_at,
        )


class UsageLimits(CamelModel):
    """Outcome of a limit evaluation."""

    allowed: bool
    limit: Optional[float] = None
    current_usage: float
    new_total: float
    percentage: float
    action: LimitAction
    reason: Optional[str] = None


class UsageIngestResponse(CamelModel):
    """Body of a successful ``POST /usage``."""

    usage_record: UsageRecord
    limits: Optional[UsageLimits] = None
    stripe_reported: bool = False


class LimitExceededDetail(CamelModel):
    """Machine-readable payload of a 429 response."""

    limit: Optional[float] = None
    current_usage: float
    requested_quantity: float
    percentage: float


class UsageQueryResponse(CamelModel):
    """Body of ``GET /usage``."""

    total_usage: float
    record_count: int
    records: list[UsageRecord]


class ReconcileRequest(CamelModel):
    """Body of ``POST /usage/reconcile``."""

    subscription_id: Optional[UUID] = None
    limit: int = Field(default=100, gt=0, le=1000)


class ReconcileSummary(CamelModel):
    """Outcome of replaying unreported usage to the billing provider."""

    attempted: int = 0
    reported: int = 0
    skipped: int = 0
    failed: int = 0
