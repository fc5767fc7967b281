"""Fake notification repositories for testing."""

from typing import Any, Optional
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.models import EmailNotification, User


class FakeUserRepository:
    """In-memory fake for UserRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: dict[UUID, User] = {}
        self._calls: list[tuple] = []

    def seed(self, user: User) -> None:
        """Populate store with test data."""
        self._store[user.id] = user

    async def get(self, db: AsyncSession, *, user_id: UUID) -> Optional[User]:
        """Get a user by ID."""
        self._calls.append(("get", db, user_id))
        return self._store.get(user_id)


class FakeEmailNotificationRepository:
    """In-memory fake for EmailNotificationRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty outbox and call log."""
        self.created: list[EmailNotification] = []
        self._calls: list[tuple] = []

    async def create(self, db: AsyncSession, *, obj_in: dict[str, Any]) -> EmailNotification:
        """Record the outbox entry."""
        self._calls.append(("create", db, obj_in))
        notification = EmailNotification(id=uuid4(), **obj_in)
        self.created.append(notification)
        return notification
