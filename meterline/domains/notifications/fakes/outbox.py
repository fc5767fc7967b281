"""Fake notification outbox for testing."""

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.logging import ContextualLogger
from meterline.domains.notifications.templates import RenderedEmail
from meterline.models import EmailNotification


class FakeNotificationOutbox:
    """In-memory NotificationOutboxProtocol.

    Users listed in ``no_email`` are treated as recipients without an address.
    """

    def __init__(self) -> None:
        """Initialize with an empty outbox."""
        self.sent: list[tuple[UUID, RenderedEmail]] = []
        self.no_email: set[UUID] = set()
        self._calls: list[tuple] = []

    async def has_recipient(self, db: AsyncSession, user_id: UUID) -> bool:
        """Whether the user has an email address."""
        self._calls.append(("has_recipient", user_id))
        return user_id not in self.no_email

    async def enqueue(
        self,
        db: AsyncSession,
        user_id: UUID,
        email: RenderedEmail,
        log: ContextualLogger,
    ) -> Optional[EmailNotification]:
        """Record the email unless the user has no address."""
        self._calls.append(("enqueue", user_id, email.type))
        if user_id in self.no_email:
            return None
        self.sent.append((user_id, email))
        return EmailNotification(
            id=uuid4(),
            user_id=user_id,
            type=email.type,
            subject=email.subject,
            body=email.body,
            recipient=f"{user_id}@example.com",
        )

    def types(self) -> list[str]:
        """Notification types sent, in order."""
        return [email.type for _, email in self.sent]
