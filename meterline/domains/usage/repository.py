"""Usage repositories and protocols."""

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from meterline import crud
from meterline.models import UsageLimitEvent, UsageRecord


class UsageRecordRepositoryProtocol(Protocol):
    """Access to the append-only usage ledger."""

    async def sum_since(
        self, db: AsyncSession, *, subscription_id: UUID, since: datetime
    ) -> float:
        """Total quantity recorded for a subscription since *since*."""
        ...

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> UsageRecord:
        """Append a usage record to the current transaction."""
        ...

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
        ...

    async def list_unreported(
        self,
        db: AsyncSession,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> Sequence[UsageRecord]:
        """Oldest-first records with ``reported_at`` unset."""
        ...

    async def mark_reported(self, db: AsyncSession, *, record: UsageRecord, at: datetime) -> None:
        """Stamp ``reported_at`` on a record."""
        ...

    async def lock_subscription(self, db: AsyncSession, *, subscription_id: UUID) -> None:
        """Serialize ledger writers for one subscription until commit."""
        ...


class UsageLimitEventRepositoryProtocol(Protocol):
    """Access to usage limit events."""

    async def notified_exists(
        self,
        db: AsyncSession,
        *,
        subscription_id: UUID,
        threshold: float,
        period_start: datetime,
    ) -> bool:
        """Whether a notified event exists for this threshold and period."""
        ...

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> Optional[UsageLimitEvent]:
        """Add an event to the current transaction.

        Returns None when a notified event for the same threshold and period
        was committed concurrently.
        """
        ...


class UsageRecordRepository(UsageRecordRepositoryProtocol):
    """Delegates to the crud.usage_record singleton."""

    async def sum_since(
        self, db: AsyncSession, *, subscription_id: UUID, since: datetime
    ) -> float:
        """Total quantity recorded for a subscription since *since*."""
        return await crud.usage_record.sum_since(db, subscription_id=subscription_id, since=since)

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> UsageRecord:
        """Append a usage record to the current transaction."""
        return await crud.usage_record.create(db, obj_in=obj_in)

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
        return await crud.usage_record.query(
            db,
            organization_id=organization_id,
            subscription_id=subscription_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )

    async def list_unreported(
        self,
        db: AsyncSession,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> Sequence[UsageRecord]:
        """Oldest-first records with ``reported_at`` unset."""
        return await crud.usage_record.list_unreported(
            db, organization_id=organization_id, subscription_id=subscription_id, limit=limit
        )

    async def mark_reported(self, db: AsyncSession, *, record: UsageRecord, at: datetime) -> None:
        """Stamp ``reported_at`` on a record."""
        await crud.usage_record.mark_reported(db, record=record, at=at)

    async def lock_subscription(self, db: AsyncSession, *, subscription_id: UUID) -> None:
        """Take a transaction-scoped advisory lock for the subscription."""
        await crud.usage_record.lock_subscription(db, subscription_id=subscription_id)


class UsageLimitEventRepository(UsageLimitEventRepositoryProtocol):
    """Delegates to the crud.usage_limit_event singleton."""

    async def notified_exists(
        self,
        db: AsyncSession,
        *,
        subscription_id: UUID,
        threshold: float,
        period_start: datetime,
    ) -> bool:
        """Whether a notified event exists for this threshold and period."""
        return await crud.usage_limit_event.notified_exists(
            db, subscription_id=subscription_id, threshold=threshold, period_start=period_start
        )

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> Optional[UsageLimitEvent]:
        """Insert inside a savepoint so a unique-index conflict leaves the transaction usable."""
        try:
            async with db.begin_nested():
                return await crud.usage_limit_event.create(db, obj_in=obj_in)
        except IntegrityError:
            return None
