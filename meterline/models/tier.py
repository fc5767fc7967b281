"""Tier model."""

import uuid
from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from meterline.core.shared_models import LimitAction
from meterline.models._base import Base

DEFAULT_WARNING_THRESHOLDS = [80, 90, 95]


class Tier(Base):
    """Pricing tier of a product. Read-only reference data for metering."""

    __tablename__ = "tier"

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("product.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)
    usage_limit: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    limit_action: Mapped[str] = mapped_column(
        String(16), nullable=False, default=LimitAction.WARN.value
    )
    overage_allowed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    warning_thresholds: Mapped[Optional[list]] = mapped_column(
        JSONB, nullable=True, default=lambda: list(DEFAULT_WARNING_THRESHOLDS)
    )
    metering_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
