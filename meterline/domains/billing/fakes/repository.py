"""Fake billing repositories for testing."""

from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import utc_now
from meterline.core.shared_models import WebhookEventStatus
from meterline.models import Subscription, SubscriptionItem, WebhookEvent


class FakeSubscriptionRepository:
    """In-memory fake for SubscriptionRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: dict[UUID, Subscription] = {}
        self._calls: list[tuple] = []

    def seed(self, subscription: Subscription) -> None:
        """Populate store with test data."""
        self._store[subscription.id] = subscription

    async def get(self, db: AsyncSession, *, subscription_id: UUID) -> Optional[Subscription]:
        """Get a subscription by ID."""
        self._calls.append(("get", subscription_id))
        return self._store.get(subscription_id)

    async def get_by_stripe_subscription_id(
        self, db: AsyncSession, *, stripe_subscription_id: str
    ) -> Optional[Subscription]:
        """Get a subscription by its billing provider id."""
        self._calls.append(("get_by_stripe_subscription_id", stripe_subscription_id))
        for sub in self._store.values():
            if sub.stripe_subscription_id == stripe_subscription_id:
                return sub
        return None

    async def get_by_user_and_tier(
        self, db: AsyncSession, *, user_id: UUID, tier_id: UUID
    ) -> Optional[Subscription]:
        """Get the subscription a user holds on a tier."""
        self._calls.append(("get_by_user_and_tier", user_id, tier_id))
        for sub in self._store.values():
            if sub.user_id == user_id and sub.tier_id == tier_id:
                return sub
        return None

    async def apply_provider_state(
        self,
        db: AsyncSession,
        *,
        subscription: Subscription,
        event_created: datetime,
        values: dict[str, Any],
    ) -> bool:
        """Compare-and-set on ``last_provider_event_at``."""
        self._calls.append(("apply_provider_state", subscription.id, event_created, values))
        last = subscription.last_provider_event_at
        if last is not None and last > event_created:
            return False
        for key, value in values.items():
            setattr(subscription, key, value)
        subscription.last_provider_event_at = event_created
        return True


class FakeSubscriptionItemRepository:
    """In-memory fake for SubscriptionItemRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: list[SubscriptionItem] = []
        self._calls: list[tuple] = []

    def seed(self, item: SubscriptionItem) -> None:
        """Populate store with test data."""
        self._store.append(item)

    async def get_metered_item(
        self, db: AsyncSession, *, subscription_id: UUID
    ) -> Optional[SubscriptionItem]:
        """Get the metered line item of a subscription."""
        self._calls.append(("get_metered_item", subscription_id))
        for item in self._store:
            if item.subscription_id == subscription_id and item.item_type == "metered_usage":
                return item
        return None

    async def mark_reported(
        self, db: AsyncSession, *, item: SubscriptionItem, quantity: float, at: datetime
    ) -> None:
        """Record the last reported usage on the item."""
        self._calls.append(("mark_reported", item.id, quantity, at))
        item.last_reported_usage = quantity
        item.last_reported_at = at


class FakeWebhookEventRepository:
    """In-memory fake for WebhookEventRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: dict[str, WebhookEvent] = {}
        self._calls: list[tuple] = []

    def seed(self, event: WebhookEvent) -> None:
        """Populate store with test data."""
        self._store[event.event_id] = event

    def get(self, event_id: str) -> Optional[WebhookEvent]:
        """Synchronous lookup for assertions."""
        return self._store.get(event_id)

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, payload: dict
    ) -> bool:
        """Insert a pending event; False when the id was already stored."""
        self._calls.append(("insert_if_absent", event_id, event_type))
        if event_id in self._store:
            return False
        self._store[event_id] = WebhookEvent(
            id=uuid4(),
            event_id=event_id,
            event_type=event_type,
            payload=payload,
            status=WebhookEventStatus.PENDING.value,
            retry_count=0,
            created_at=utc_now(),
        )
        return True

    async def get_by_event_id(
        self, db: AsyncSession, *, event_id: str, for_update: bool = False
    ) -> Optional[WebhookEvent]:
        """Get an event by provider id."""
        self._calls.append(("get_by_event_id", event_id, for_update))
        return self._store.get(event_id)

    async def update(
        self, db: AsyncSession, *, event: WebhookEvent, values: dict[str, Any]
    ) -> WebhookEvent:
        """Update bookkeeping fields of an event."""
        self._calls.append(("update", event.event_id, values))
        for key, value in values.items():
            setattr(event, key, value)
        return event

    async def list_failed(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events for operator review."""
        self._calls.append(("list_failed", skip, limit))
        failed = [e for e in self._store.values() if e.status == WebhookEventStatus.FAILED.value]
        return failed[skip : skip + limit]
