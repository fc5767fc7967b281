"""API key schemas."""

from dataclasses import dataclass
from uuid import UUID

from meterline.core.shared_models import ApiKeyScope


@dataclass(frozen=True)
class VerifiedApiKey:
    """Identity resolved from a raw API key."""

    id: UUID
    organization_id: UUID
    scopes: frozenset[str]

    def allows(self, scope: ApiKeyScope) -> bool:
        """Whether the key grants *scope* (``*`` grants everything)."""
        return ApiKeyScope.ALL.value in self.scopes or scope.value in self.scopes
