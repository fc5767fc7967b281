"""SHA-256 API key verifier."""

import hashlib

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import ensure_aware, utc_now
from meterline.core.exceptions import AuthenticationException
from meterline.domains.api_keys.protocols import ApiKeyVerifierProtocol
from meterline.domains.api_keys.repository import ApiKeyRepositoryProtocol
from meterline.schemas import VerifiedApiKey


def hash_api_key(raw_key: str) -> str:
    """Hex SHA-256 digest stored in place of the raw key."""
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


class ApiKeyVerifier(ApiKeyVerifierProtocol):
    """Looks keys up by hash and checks they are active and unexpired."""

    def __init__(self, api_key_repo: ApiKeyRepositoryProtocol) -> None:
        """Initialize with the API key repository."""
        self._api_key_repo = api_key_repo

    async def verify(self, db: AsyncSession, raw_key: str) -> VerifiedApiKey:
        """Verify *raw_key* and stamp its last use."""
        if not raw_key:
            raise AuthenticationException("API key required")

        api_key = await self._api_key_repo.get_by_hash(db, key_hash=hash_api_key(raw_key))
        if api_key is None or not api_key.is_active:
            raise AuthenticationException("Invalid API key")

        now = utc_now()
        expires_at = ensure_aware(api_key.expires_at)
        if expires_at is not None and expires_at < now:
            raise AuthenticationException("API key has expired")

        await self._api_key_repo.touch(db, api_key=api_key, at=now)
        await db.commit()
        return VerifiedApiKey(
            id=api_key.id,
            organization_id=api_key.organization_id,
            scopes=frozenset(api_key.scopes or ()),
        )
