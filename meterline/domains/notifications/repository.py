"""Notification repositories and protocols."""

from typing import Any, Optional, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from meterline import crud
from meterline.models import EmailNotification, User


class UserRepositoryProtocol(Protocol):
    """Read access to notification recipients."""

    async def get(self, db: AsyncSession, *, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        ...


class EmailNotificationRepositoryProtocol(Protocol):
    """Write access to the email outbox."""

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> EmailNotification:
        """Add an outbox entry to the current transaction."""
        ...


class UserRepository(UserRepositoryProtocol):
    """Delegates to the crud.user singleton."""

    async def get(self, db: AsyncSession, *, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        return await crud.user.get(db, user_id)


class EmailNotificationRepository(EmailNotificationRepositoryProtocol):
    """Delegates to the crud.email_notification singleton."""

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> EmailNotification:
        """Add an outbox entry to the current transaction."""
        return await crud.email_notification.create(db, obj_in=obj_in)
