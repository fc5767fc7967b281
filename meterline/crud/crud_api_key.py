"""CRUD operations for the APIKey model."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.crud._base import CRUDBase
from meterline.models.api_key import APIKey


class CRUDAPIKey(CRUDBase[APIKey]):
    """CRUD operations for the APIKey model."""

    async def get_by_hash(self, db: AsyncSession, *, key_hash: str) -> Optional[APIKey]:
        """Get an API key by the SHA-256 hex digest of the raw key."""
        result = await db.execute(select(self.model).where(self.model.key_hash == key_hash))
        return result.scalar_one_or_none()


api_key = CRUDAPIKey(APIKey)
