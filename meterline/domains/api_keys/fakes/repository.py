"""Fake API key repository for testing."""

from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.models import APIKey


class FakeApiKeyRepository:
    """In-memory fake for ApiKeyRepositoryProtocol."""

    def __init__(self) -> None:
        """Initialize with empty store and call log."""
        self._store: dict[str, APIKey] = {}
        self._calls: list[tuple] = []

    def seed(self, api_key: APIKey) -> None:
        """Populate store with test data."""
        self._store[api_key.key_hash] = api_key

    async def get_by_hash(self, db: AsyncSession, *, key_hash: str) -> Optional[APIKey]:
        """Get an API key by hash."""
        self._calls.append(("get_by_hash", key_hash))
        return self._store.get(key_hash)

    async def touch(self, db: AsyncSession, *, api_key: APIKey, at: datetime) -> None:
        """Stamp ``last_used_at``."""
        self._calls.append(("touch", api_key.id, at))
        api_key.last_used_at = at
