"""Subscription and subscription item models."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from meterline.core.shared_models import SubscriptionItemType, SubscriptionStatus
from meterline.models._base import Base, OrganizationBase
from meterline.models.product import Product
from meterline.models.tier import Tier


class Subscription(OrganizationBase):
    """A subscriber's subscription to a tier of a tenant's product.

    Never deleted; status transitions are driven by provider webhooks.
    """

    __tablename__ = "subscription"

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("product.id"), nullable=False
    )
    tier_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("tier.id"), nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("app_user.id"), nullable=False
    )
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(
        String, nullable=True, unique=True
    )
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SubscriptionStatus.ACTIVE.value
    )
    current_period_start: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    current_period_end: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_provider_event_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    tier: Mapped[Tier] = relationship("Tier", lazy="joined")
    product: Mapped[Product] = relationship("Product", lazy="joined")
    items: Mapped[list["SubscriptionItem"]] = relationship(
        "SubscriptionItem", lazy="selectin", back_populates="subscription"
    )


class SubscriptionItem(Base):
    """A provider line item of a subscription; tracks metered reporting state."""

    __tablename__ = "subscription_item"

    subscription_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("subscription.id", ondelete="CASCADE"), nullable=False
    )
    stripe_subscription_item_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    item_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SubscriptionItemType.BASE.value
    )
    last_reported_usage: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    last_reported_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    subscription: Mapped[Subscription] = relationship("Subscription", back_populates="items")

    __table_args__ = (Index("idx_subscription_item_subscription_id", "subscription_id"),)
