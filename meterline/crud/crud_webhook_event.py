"""CRUD operations for WebhookEvent."""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.shared_models import WebhookEventStatus
from meterline.crud._base import CRUDBase
from meterline.models.webhook_event import WebhookEvent


class CRUDWebhookEvent(CRUDBase[WebhookEvent]):
    """CRUD operations for WebhookEvent."""

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, payload: dict
    ) -> bool:
        """Insert a pending event unless its ``event_id`` is already stored.

        Returns True when a new row was inserted.
        """
        stmt = (
            insert(self.model)
            .values(
                event_id=event_id,
                event_type=event_type,
                payload=payload,
                status=WebhookEventStatus.PENDING.value,
                retry_count=0,
            )
            .on_conflict_do_nothing(index_elements=[self.model.event_id])
            .returning(self.model.id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_by_event_id(
        self, db: AsyncSession, *, event_id: str, for_update: bool = False
    ) -> Optional[WebhookEvent]:
        """Get an event by provider id, optionally locking the row."""
        stmt = select(self.model).where(self.model.event_id == event_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_failed(
        self, db: AsyncSession, *, skip: int = 0, limit: int = 100
    ) -> Sequence[WebhookEvent]:
        """Failed events, newest first, for operator review."""
        result = await db.execute(
            select(self.model)
            .where(self.model.status == WebhookEventStatus.FAILED.value)
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return result.scalars().all()


webhook_event = CRUDWebhookEvent(WebhookEvent)
