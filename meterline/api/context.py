"""HTTP API request context.

Extends BaseContext with request-specific fields: request tracking and the
identity of the API key that authenticated the call.
Only the API layer creates these via deps.get_context().
"""

from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from meterline.core.context import BaseContext
from meterline.core.shared_models import ApiKeyScope, AuthMethod


@dataclass
class ApiContext(BaseContext):
    """Full HTTP request context.

    Inherits the organization and logger from BaseContext. Adds request
    metadata and the verified API key.

    Created by deps.get_context() and injected into endpoints via Depends().
    """

    # Request metadata
    request_id: str = ""

    # Authentication context
    auth_method: AuthMethod = AuthMethod.API_KEY
    api_key_id: Optional[UUID] = None
    scopes: frozenset[str] = field(default_factory=frozenset)

    @property
    def is_api_key_auth(self) -> bool:
        """Whether this is API key authentication."""
        return self.auth_method == AuthMethod.API_KEY

    def has_scope(self, scope: ApiKeyScope) -> bool:
        """Whether the caller was granted *scope* (``*`` grants everything)."""
        return ApiKeyScope.ALL.value in self.scopes or scope.value in self.scopes

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"ApiContext(request_id={self.request_id[:8]}..., "
            f"method={self.auth_method.value}, org={self.organization_id})"
        )
