"""CRUD operations for UsageLimitEvent."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.crud._base import CRUDBase
from meterline.models.usage_limit_event import UsageLimitEvent


class CRUDUsageLimitEvent(CRUDBase[UsageLimitEvent]):
    """CRUD operations for UsageLimitEvent."""

    async def notified_exists(
        self,
        db: AsyncSession,
        *,
        subscription_id: UUID,
        threshold: float,
        period_start: datetime,
    ) -> bool:
        """Whether a notified event already exists for this threshold and period."""
        result = await db.execute(
            select(
                exists().where(
                    self.model.subscription_id == subscription_id,
                    self.model.threshold == threshold,
                    self.model.period_start == period_start,
                    self.model.notification_sent.is_(True),
                )
            )
        )
        return bool(result.scalar())


usage_limit_event = CRUDUsageLimitEvent(UsageLimitEvent)
