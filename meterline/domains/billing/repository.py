"""Billing repositories and protocols."""

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline import crud
from meterline.models import Subscription, SubscriptionItem, WebhookEvent


class SubscriptionRepositoryProtocol(Protocol):
    """Read and provider-driven write access to subscriptions."""

    async def get(self, db: AsyncSession, *, subscription_id: UUID) -> Optional[Subscription]:
        """Get a subscription with its tier and product loaded."""
        ...

    async def get_by_stripe_subscription_id(
        self, db: AsyncSession, *, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """Get a subscription by its billing provider id."""
        ...

    async def get_by_user_and_tier(
        self, db: AsyncSession, *, user_id: UUID, tier_id: UUID
    ) -> Optional[Subscription]:
        """Get the subscription a user holds on a tier."""
        ...

    async def apply_provider_state(
        self,
        db: AsyncSession,
        *,
        subscription: Subscription,
        event_created: datetime,
        values: dict[str, Any],
    ) -> bool:
        """Write provider state unless a newer event was already applied."""
        ...


class SubscriptionItemRepositoryProtocol(Protocol):
    """Access to subscription line items."""

    async def get_metered_item(
        self, db: AsyncSession, *, subscription_id: UUID
    ) -> Optional[SubscriptionItem]:
        """Get the metered line item of a subscription."""
        ...

    async def mark_reported(
        self, db: AsyncSession, *, item: SubscriptionItem, quantity: float, at: datetime
    ) -> None:
        """Record the last reported usage on the item."""
        ...


class WebhookEventRepositoryProtocol(Protocol):
    """Durable webhook event log keyed by provider event id."""

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, payload: dict
    ) -> bool:
        """Insert a pending event; False when the id was already stored."""
        ...

    async def get_by_event_id(
        self, db: AsyncSession, *, event_id: str, for_update: bool = False
    ) -> Optional[WebhookEvent]:
        """Get an event by provider id, optionally locking the row."""
        ...

    async def update(
        self, db: AsyncSession, *, event: WebhookEvent, values: dict[str, Any]
    ) -> WebhookEvent:
        """Update bookkeeping fields of an event."""
        ...

    async def list_failed(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events for operator review."""
        ...


class SubscriptionRepository(SubscriptionRepositoryProtocol):
    """Delegates to the crud.subscription singleton."""

    async def get(self, db: AsyncSession, *, subscription_id: UUID) -> Optional[Subscription]:
        """Get a subscription with its tier and product loaded."""
        return await crud.subscription.get(db, subscription_id)

    async def get_by_stripe_subscription_id(
        self, db: AsyncSession, *, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """Get a subscription by its billing provider id."""
        return await crud.subscription.get_by_stripe_subscription_id(
            db, stripe_subscription_id=stripe_subscription_id
        )

    async def get_by_user_and_tier(
        self, db: AsyncSession, *, user_id: UUID, tier_id: UUID
    ) -> Optional[Subscription]:
        """Get the subscription a user holds on a tier."""
        return await crud.subscription.get_by_user_and_tier(db, user_id=user_id, tier_id=tier_id)

    async def apply_provider_state(
        self,
        db: AsyncSession,
        *,
        subscription: Subscription,
        event_created: datetime,
        values: dict[str, Any],
    ) -> bool:
        """Compare-and-set on ``last_provider_event_at``."""
        return await crud.subscription.apply_provider_state(
            db, id=subscription.id, event_created=event_created, values=values
        )


class SubscriptionItemRepository(SubscriptionItemRepositoryProtocol):
    """Delegates to the crud.subscription_item singleton."""

    async def get_metered_item(
        self, db: AsyncSession, *, subscription_id: UUID
    ) -> Optional[SubscriptionItem]:
        """Get the metered line item of a subscription."""
        return await crud.subscription_item.get_metered_item(db, subscription_id=subscription_id)

    async def mark_reported(
        self, db: AsyncSession, *, item: SubscriptionItem, quantity: float, at: datetime
    ) -> None:
        """Record the last reported usage on the item."""
        await crud.subscription_item.update(
            db, db_obj=item, obj_in={"last_reported_usage": quantity, "last_reported_at": at}
        )


class WebhookEventRepository(WebhookEventRepositoryProtocol):
    """Delegates to the crud.webhook_event singleton."""

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, payload: dict
    ) -> bool:
        """Insert a pending event; False when the id was already stored."""
        return await crud.webhook_event.insert_if_absent(
            db, event_id=event_id, event_type=event_type, payload=payload
        )

    async def get_by_event_id(
        self, db: AsyncSession, *, event_id: str, for_update: bool = False
    ) -> Optional[WebhookEvent]:
        """Get an event by provider id, optionally locking the row."""
        return await crud.webhook_event.get_by_event_id(
            db, event_id=event_id, for_update=for_update
        )

    async def update(
        self, db: AsyncSession, *, event: WebhookEvent, values: dict[str, Any]
    ) -> WebhookEvent:
        """Update bookkeeping fields of an event."""
        return await crud.webhook_event.update(db, db_obj=event, obj_in=values)

    async def list_failed(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events for operator review."""
        return await crud.webhook_event.list_failed(db, skip=skip, limit=limit)
