"""Notifications domain protocols."""

from typing import Optional, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.logging import ContextualLogger
from meterline.domains.notifications.templates import RenderedEmail
from meterline.models import EmailNotification


@runtime_checkable
class NotificationOutboxProtocol(Protocol):
    """Enqueue emails for the external delivery worker."""

    async def has_recipient(self, db: AsyncSession, user_id: UUID) -> bool:
        """Whether the user exists and has an email address."""
        ...

    async def enqueue(
        self,
        db: AsyncSession,
        user_id: UUID,
        email: RenderedEmail,
        log: ContextualLogger,
    ) -> Optional[EmailNotification]:
        """Add a pending outbox entry; returns None if the user has no email."""
        ...
