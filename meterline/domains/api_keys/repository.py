"""API key repositories and protocols."""

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from meterline import crud
from meterline.models import APIKey


class ApiKeyRepositoryProtocol(Protocol):
    """Lookup of API keys by hash."""

    async def get_by_hash(self, db: AsyncSession, *, key_hash: str) -> Optional[APIKey]:
        """Get an API key by the SHA-256 hex digest of the raw key."""
        ...

    async def touch(self, db: AsyncSession, *, api_key: APIKey, at: datetime) -> None:
        """Stamp ``last_used_at``."""
        ...


class ApiKeyRepository(ApiKeyRepositoryProtocol):
    """Delegates to the crud.api_key singleton."""

    async def get_by_hash(self, db: AsyncSession, *, key_hash: str) -> Optional[APIKey]:
        """Get an API key by the SHA-256 hex digest of the raw key."""
        return await crud.api_key.get_by_hash(db, key_hash=key_hash)

    async def touch(self, db: AsyncSession, *, api_key: APIKey, at: datetime) -> None:
        """Stamp ``last_used_at``."""
        await crud.api_key.update(db, db_obj=api_key, obj_in={"last_used_at": at})
