"""CRUD operations for Subscription and SubscriptionItem."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.shared_models import SubscriptionItemType
from meterline.crud._base import CRUDBase
from meterline.models.subscription import Subscription, SubscriptionItem


class CRUDSubscription(CRUDBase[Subscription]):
    """CRUD operations for Subscription."""

    async def get_by_stripe_subscription_id(
        self, db: AsyncSession, *, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """Get a subscription by its billing provider id."""
        result = await db.execute(
            select(self.model).where(self.model.stripe_subscription_id == stripe_subscription_id)
        )
        return result.scalar_one_or_none()

    async def get_by_user_and_tier(
        self, db: AsyncSession, *, user_id: UUID, tier_id: UUID
    ) -> Optional[Subscription]:
        """Get the subscription a user holds on a tier."""
        result = await db.execute(
            select(self.model)
            .where(self.model.user_id == user_id, self.model.tier_id == tier_id)
            .order_by(self.model.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def apply_provider_state(
        self,
        db: AsyncSession,
        *,
        id: UUID,
        event_created: datetime,
        values: dict[str, Any],
    ) -> bool:
        """Compare-and-set update guarded by the provider event timestamp.

        The row is written only when *event_created* is not older than the
        newest event already applied. Returns whether a row was updated.
        """
        stmt = (
            update(self.model)
            .where(
                self.model.id == id,
                or_(
                    self.model.last_provider_event_at.is_(None),
                    self.model.last_provider_event_at <= event_created,
                ),
            )
            .values(**values, last_provider_event_at=event_created)
            .execution_options(synchronize_session="fetch")
        )
        result = await db.execute(stmt)
        return result.rowcount > 0


class CRUDSubscriptionItem(CRUDBase[SubscriptionItem]):
    """CRUD operations for SubscriptionItem."""

    async def get_metered_item(
        self, db: AsyncSession, *, subscription_id: UUID
    ) -> Optional[SubscriptionItem]:
        """Get the metered line item of a subscription, if any."""
        result = await db.execute(
            select(self.model)
            .where(
                self.model.subscription_id == subscription_id,
                self.model.item_type == SubscriptionItemType.METERED_USAGE.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


subscription = CRUDSubscription(Subscription)
subscription_item = CRUDSubscriptionItem(SubscriptionItem)
