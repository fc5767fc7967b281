"""CRUD operations for the usage ledger."""

from datetime import datetime
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.crud._base import CRUDBase
from meterline.models.subscription import Subscription
from meterline.models.usage_record import UsageRecord


class CRUDUsageRecord(CRUDBase[UsageRecord]):
    """CRUD operations for UsageRecord.

    Records are append-only; the only update is stamping ``reported_at``.
    """

    async def sum_since(
        self, db: AsyncSession, *, subscription_id: UUID, since: datetime
    ) -> float:
        """Sum of quantities for a subscription with ``timestamp >= since``."""
        result = await db.execute(
            select(func.coalesce(func.sum(self.model.quantity), 0.0)).where(
                self.model.subscription_id == subscription_id,
                self.model.timestamp >= since,
            )
        )
        return float(result.scalar_one())

    def _query_filters(
        self,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID],
        user_id: Optional[UUID],
        start_date: Optional[datetime],
        end_date: Optional[datetime],
    ) -> list:
        filters = [
            self.model.subscription_id == Subscription.id,
            Subscription.organization_id == organization_id,
        ]
        if subscription_id is not None:
            filters.append(self.model.subscription_id == subscription_id)
        if user_id is not None:
            filters.append(self.model.user_id == user_id)
        if start_date is not None:
            filters.append(self.model.timestamp >= start_date)
        if end_date is not None:
            filters.append(self.model.timestamp <= end_date)
        return filters

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
        """Aggregate and page usage owned by an organization.

        Returns ``(total, count, newest records)``; the aggregate covers every
        matching record while the list is capped at *limit*.
        """
        filters = self._query_filters(
            organization_id=organization_id,
            subscription_id=subscription_id,
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
        )
        totals = await db.execute(
            select(
                func.coalesce(func.sum(self.model.quantity), 0.0),
                func.count(self.model.id),
            ).where(*filters)
        )
        total, count = totals.one()
        rows = await db.execute(
            select(self.model).where(*filters).order_by(self.model.timestamp.desc()).limit(limit)
        )
        return float(total), int(count), rows.scalars().all()

    async def list_unreported(
        self,
        db: AsyncSession,
        *,
        organization_id: UUID,
        subscription_id: Optional[UUID] = None,
        limit: int = 100,
    ) -> Sequence[UsageRecord]:
        """Oldest-first records not yet forwarded to the billing provider."""
        stmt = select(self.model).where(
            self.model.subscription_id == Subscription.id,
            Subscription.organization_id == organization_id,
            self.model.reported_at.is_(None),
        )
        if subscription_id is not None:
            stmt = stmt.where(self.model.subscription_id == subscription_id)
        result = await db.execute(stmt.order_by(self.model.timestamp.asc()).limit(limit))
        return result.scalars().all()

    async def mark_reported(self, db: AsyncSession, *, record: UsageRecord, at: datetime) -> None:
        """Stamp ``reported_at``; a no-op if it is already set."""
        if record.reported_at is None:
            record.reported_at = at
            db.add(record)
            await db.flush()

    async def lock_subscription(self, db: AsyncSession, *, subscription_id: UUID) -> None:
        """Take a transaction-scoped advisory lock on a subscription's ledger."""
        await db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
            {"key": f"usage:{subscription_id}"},
        )


usage_record = CRUDUsageRecord(UsageRecord)
