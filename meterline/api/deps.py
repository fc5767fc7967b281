"""Dependencies that are used in the API endpoints."""

import uuid
from typing import Optional, get_type_hints

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from meterline.api.context import ApiContext
from meterline.core import container as container_mod
from meterline.core.container import Container
from meterline.core.exceptions import PermissionException
from meterline.core.logging import ContextualLogger, logger
from meterline.core.shared_models import ApiKeyScope, AuthMethod
from meterline.db.session import get_db

__all__ = ["Inject", "get_container", "get_context", "get_db", "get_logger", "require_scope"]


# ---------------------------------------------------------------------------
# DI Container
# ---------------------------------------------------------------------------


def get_container() -> Container:
    """Get the DI container. Initialized at startup."""
    c = container_mod.container
    if c is None:
        raise RuntimeError("Container not initialized. Call initialize_container() first.")
    return c


# ---------------------------------------------------------------------------
# Protocol Injection
# ---------------------------------------------------------------------------

# Cache of protocol_type → Container field name, built once at first call.
_INJECT_CACHE: dict[type, str] = {}


def _resolve_field_name(protocol_type: type) -> str:
    """Find which Container field matches the given protocol type.

    Uses get_type_hints() to introspect the Container dataclass.
    Result is cached so the lookup happens at most once per protocol type.
    """
    if not _INJECT_CACHE:
        for name, hint in get_type_hints(Container).items():
            _INJECT_CACHE[hint] = name

    field_name = _INJECT_CACHE.get(protocol_type)
    if field_name is None:
        available = list(_INJECT_CACHE.values())
        raise TypeError(
            f"No binding for {protocol_type.__name__} in Container. Available fields: {available}"
        )
    return field_name


def Inject(protocol_type: type):  # noqa: N802 (uppercase to match FastAPI convention)
    """Resolve a protocol implementation from the DI container.

    Works like ``Depends()`` but looks up the implementation by protocol type
    instead of requiring the caller to know about the Container internals.

    Usage in FastAPI endpoints::

        from meterline.api.deps import Inject
        from meterline.domains.usage.protocols import UsageIngestionProtocol


        @router.post("")
        async def create(usage: UsageIngestionProtocol = Inject(UsageIngestionProtocol)):
            ...
    """
    field_name = _resolve_field_name(protocol_type)

    def _resolve(c: Container = Depends(get_container)):
        return getattr(c, field_name)

    return Depends(_resolve)


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------


async def get_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    c: Container = Depends(get_container),
) -> ApiContext:
    """Create the API context for an API-key authenticated request.

    Args:
    ----
        request (Request): The FastAPI request object.
        db (AsyncSession): Database session.
        x_api_key (Optional[str]): API key provided in the request header.
        c (Container): The DI container holding the key verifier.

    Returns:
    -------
        ApiContext: Tenant identity, granted scopes and a contextual logger.

    Raises:
    ------
        AuthenticationException: If the key is missing, unknown, inactive or expired.
    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    verified = await c.api_key_verifier.verify(db, x_api_key or "")

    base_logger = logger.with_context(
        request_id=request_id,
        organization_id=str(verified.organization_id),
        api_key_id=str(verified.id),
        auth_method=AuthMethod.API_KEY.value,
        context_base="api",
    )

    ctx = ApiContext(
        organization_id=verified.organization_id,
        request_id=request_id,
        auth_method=AuthMethod.API_KEY,
        api_key_id=verified.id,
        scopes=verified.scopes,
        logger=base_logger,
    )

    request.state.api_context = ctx
    return ctx


def require_scope(scope: ApiKeyScope):
    """Dependency factory: the caller's API key must grant *scope*.

    Usage::

        @router.get("")
        async def read(ctx: ApiContext = Depends(require_scope(ApiKeyScope.USAGE_READ))):
            ...
    """

    async def _check(ctx: ApiContext = Depends(get_context)) -> ApiContext:
        if not ctx.has_scope(scope):
            ctx.logger.warning(f"API key lacks required scope {scope.value}")
            raise PermissionException(f"API key lacks required scope: {scope.value}")
        return ctx

    return _check


async def get_logger(
    context: ApiContext = Depends(get_context),
) -> ContextualLogger:
    """Get a logger with the current authentication context."""
    return context.logger
