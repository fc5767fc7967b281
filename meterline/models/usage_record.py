"""Usage record model: the append-only usage ledger."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, ForeignKey, Index, func, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from meterline.models._base import Base


class UsageRecord(Base):
    """One accepted usage delta.

    Rows are immutable once written; only ``reported_at`` moves from null
    to a timestamp when the delta reaches the billing provider.
    """

    __tablename__ = "usage_record"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("subscription.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    usage_metadata: Mapped[dict] = mapped_column("metadata", JSONB, nullable=False, default=dict)
    reported_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_usage_record_subscription_timestamp", "subscription_id", "timestamp"),
        Index("idx_usage_record_user_id", "user_id"),
        Index(
            "idx_usage_record_unreported",
            "timestamp",
            postgresql_where=text("reported_at IS NULL"),
        ),
    )
