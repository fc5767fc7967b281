"""Fake usage repositories for testing."""

from datetime import datetime
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import utc_now
from meterline.models import UsageLimitEvent, UsageRecord


class FakeUsageRecordRepository:
    """In-memory fake for UsageRecordRepositoryProtocol.

    ``owners`` maps subscription ids to organization ids so tenant-scoped
    queries can be answered without a subscription table.
    """

    def __init__(self) -> None:
        """Initialize with empty ledger and call log."""
        self._store: list[UsageRecord] = []
        self.owners: dict[UUID, UUID] = {}
        self._calls: list[tuple] = []

    def seed(
        self,
        subscription_id: UUID,
        quantity: float,
        *,
        user_id: Optional[UUID] = None,
        timestamp: Optional[datetime] = None,
        reported_at: Optional[datetime] = None,
    ) -> UsageRecord:
        """Populate store with test data."""
        record = UsageRecord(
            id=uuid4(),
            subscription_id=subscription_id,
            user_id=user_id or uuid4(),
            quantity=quantity,
            timestamp=timestamp or utc_now(),
            usage_metadata={},
            reported_at=reported_at,
        )
        self._store.append(record)
        return record

    @property
    def records(self) -> list[UsageRecord]:
        return list(self._store)

    async def sum_since(
        self, db: AsyncSession, *, subscription_id: UUID, since: datetime
    ) -> float:
        """Total quantity recorded for a subscription since *since*."""
        self._calls.append(("sum_since", subscription_id, since))
        return float(
            sum(
                r.quantity
                for r in self._store
                if r.subscription_id == subscription_id and r.timestamp >= since
            )
        )

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> UsageRecord:
        """Append a usage record."""
        self._calls.append(("create", obj_in))
        data = {"timestamp": utc_now(), "reported_at": None, **obj_in}
        record = UsageRecord(id=uuid4(), **data)
        self._store.append(record)
        return record

    def _owned(self, record: UsageRecord, organization_id: UUID) -> bool:
        return self.owners.get(record.subscription_id) == organization_id

    async def query(
        self,
        db: AsyncSession,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID] = None,
        user_id: Optional[UUID] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 100,
    ) -> tuple[float, int, Sequence[UsageRecord]]:
        """Return ``(total, count, newest records)`` for a tenant."""
        self._calls.append(("query", organization_id, subscription_id, user_id))
        matching = [
            r
            for r in self._store
            if self._owned(r, organization_id)
            and (subscription_id is None or r.subscription_id == subscription_id)
            and (user_id is None or r.user_id == user_id)
            and (start_date is None or r.timestamp >= start_date)
            and (end_date is None or r.timestamp <= end_date)
        ]
        newest = sorted(matching, key=lambda r: r.timestamp, reverse=True)[:limit]
        return float(sum(r.quantity for r in matching)), len(matching), newest

    async def list_unreported(
        self,
        db: AsyncSession,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> Sequence[UsageRecord]:
        """Oldest-first records with ``reported_at`` unset."""
        self._calls.append(("list_unreported", organization_id, subscription_id, limit))
        pending = [
            r
            for r in self._store
            if r.reported_at is None
            and self._owned(r, organization_id)
            and (subscription_id is None or r.subscription_id == subscription_id)
        ]
        return sorted(pending, key=lambda r: r.timestamp)[:limit]

    async def mark_reported(self, db: AsyncSession, *, record: UsageRecord, at: datetime) -> None:
        """Stamp ``reported_at`` on a record."""
        self._calls.append(("mark_reported", record.id, at))
        if record.reported_at is None:
            record.reported_at = at

    async def lock_subscription(self, db: AsyncSession, *, subscription_id: UUID) -> None:
        """Record the lock request; the fake store needs no locking."""
        self._calls.append(("lock_subscription", subscription_id))


class FakeUsageLimitEventRepository:
    """In-memory fake for UsageLimitEventRepositoryProtocol.

    Enforces the one-notified-event-per-threshold-and-period rule the
    database index enforces.
    """

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: list[UsageLimitEvent] = []
        self._calls: list[tuple] = []

    @property
    def events(self) -> list[UsageLimitEvent]:
        return list(self._store)

    def seed(self, event: UsageLimitEvent) -> None:
        """Populate store with test data."""
        self._store.append(event)

    def _notified(self, subscription_id: UUID, threshold: float, period_start: datetime) -> bool:
        return any(
            e.subscription_id == subscription_id
            and e.threshold == threshold
            and e.period_start == period_start
            and e.notification_sent
            for e in self._store
        )

    async def notified_exists(
        self,
        db: AsyncSession,
        *,
        subscription_id: UUID,
        threshold: float,
        period_start: datetime,
    ) -> bool:
        """Whether a notified event exists for this threshold and period."""
        self._calls.append(("notified_exists", subscription_id, threshold, period_start))
        return self._notified(subscription_id, threshold, period_start)

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> Optional[UsageLimitEvent]:
        """Store the event unless it would violate the notified-event uniqueness."""
        self._calls.append(("create", obj_in))
        if obj_in.get("notification_sent") and self._notified(
            obj_in["subscription_id"], obj_in["threshold"], obj_in["period_start"]
        ):
            return None
        event = UsageLimitEvent(id=uuid4(), **{"timestamp": utc_now(), **obj_in})
        self._store.append(event)
        return event
