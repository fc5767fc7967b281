"""API test fixtures.

Provides an async HTTP client wired to the FastAPI app with the DI container
overridden to use fakes. Available to all colocated API tests under api/.

Pattern:
    1. Override get_container -> returns test_container (services on fakes)
    2. Override get_db        -> yields an AsyncMock session
    3. Register raw API keys on the fake verifier, one per scope set
    4. Test hits the endpoint, asserts on HTTP response + fake state
"""

from unittest.mock import AsyncMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from meterline.api.deps import get_container, get_db
from meterline.core.shared_models import ApiKeyScope
from meterline.schemas import VerifiedApiKey

TEST_ORG_ID = UUID("00000000-0000-0000-0000-000000000001")

WRITE_KEY = "mk_test_write"
READ_KEY = "mk_test_read"
ADMIN_KEY = "mk_test_admin"

_KEY_SCOPES = {
    WRITE_KEY: {ApiKeyScope.USAGE_WRITE.value},
    READ_KEY: {ApiKeyScope.USAGE_READ.value},
    ADMIN_KEY: {ApiKeyScope.ALL.value},
}


def auth(key: str = WRITE_KEY) -> dict[str, str]:
    """Headers authenticating as *key*."""
    return {"X-API-Key": key}


@pytest.fixture
def db():
    """AsyncMock session yielded by the overridden get_db."""
    return AsyncMock()


@pytest_asyncio.fixture
async def client(test_container, fake_api_key_verifier, db):
    """Async HTTP client with faked DI container and database session."""
    from meterline.main import app

    for raw_key, scopes in _KEY_SCOPES.items():
        fake_api_key_verifier.register(
            raw_key,
            VerifiedApiKey(id=uuid4(), organization_id=TEST_ORG_ID, scopes=frozenset(scopes)),
        )

    async def _get_db():
        yield db

    app.dependency_overrides[get_container] = lambda: test_container
    app.dependency_overrides[get_db] = _get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
