"""Email outbox writer.

Entries are added to the caller's transaction and delivered by a separate
worker, so enqueueing never performs network IO.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.logging import ContextualLogger
from meterline.core.shared_models import NotificationStatus
from meterline.domains.notifications.protocols import NotificationOutboxProtocol
from meterline.domains.notifications.repository import (
    EmailNotificationRepositoryProtocol,
    UserRepositoryProtocol,
)
from meterline.domains.notifications.templates import RenderedEmail
from meterline.models import EmailNotification


class NotificationOutbox(NotificationOutboxProtocol):
    """Writes pending ``email_notification`` rows."""

    def __init__(
        self,
        user_repo: UserRepositoryProtocol,
        notification_repo: EmailNotificationRepositoryProtocol,
    ) -> None:
        """Initialize with repository dependencies."""
        self._user_repo = user_repo
        self._notification_repo = notification_repo

    async def has_recipient(self, db: AsyncSession, user_id: UUID) -> bool:
        """Whether the user exists and has an email address."""
        user = await self._user_repo.get(db, user_id=user_id)
        return bool(user and user.email)

    async def enqueue(
        self,
        db: AsyncSession,
        user_id: UUID,
        email: RenderedEmail,
        log: ContextualLogger,
    ) -> Optional[EmailNotification]:
        """Add a pending outbox entry; returns None if the user has no email."""
        user = await self._user_repo.get(db, user_id=user_id)
        if not user or not user.email:
            log.warning(f"Skipping {email.type} notification: no email for user {user_id}")
            return None

        notification = await self._notification_repo.create(
            db,
            obj_in={
                "user_id": user_id,
                "type": email.type,
                "subject": email.subject,
                "body": email.body,
                "recipient": user.email,
                "status": NotificationStatus.PENDING.value,
                "notification_metadata": email.metadata,
            },
        )
        log.info(f"Queued {email.type} notification for user {user_id}")
        return notification
