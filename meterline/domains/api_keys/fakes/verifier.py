"""Fake API key verifier for testing."""

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.exceptions import AuthenticationException
from meterline.schemas import VerifiedApiKey


class FakeApiKeyVerifier:
    """Maps raw keys to pre-registered identities."""

    def __init__(self) -> None:
        """Initialize with no known keys."""
        self._keys: dict[str, VerifiedApiKey] = {}

    def register(self, raw_key: str, identity: VerifiedApiKey) -> None:
        """Make *raw_key* verify as *identity*."""
        self._keys[raw_key] = identity

    async def verify(self, db: AsyncSession, raw_key: str) -> VerifiedApiKey:
        """Return the registered identity or raise."""
        if raw_key not in self._keys:
            raise AuthenticationException("Invalid API key")
        return self._keys[raw_key]
