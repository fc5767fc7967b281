"""API key domain protocols."""

from typing import Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.schemas import VerifiedApiKey


@runtime_checkable
class ApiKeyVerifierProtocol(Protocol):
    """Resolves a raw API key to a tenant identity."""

    async def verify(self, db: AsyncSession, raw_key: str) -> VerifiedApiKey:
        """Verify *raw_key*; raises AuthenticationException if unusable."""
        ...
