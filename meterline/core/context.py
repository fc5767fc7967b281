"""Base context for all operations.

Services type-hint against BaseContext. The API layer builds the richer
ApiContext (see ``meterline.api.context``).
"""

from dataclasses import dataclass, field
from typing import Dict
from uuid import UUID

from meterline.core.logging import ContextualLogger


@dataclass
class BaseContext:
    """Base context for all operations.

    Carries the tenant (organization) identity for access checks and a
    contextual logger with identity dimensions.
    """

    organization_id: UUID

    logger: ContextualLogger = field(default=None, kw_only=True, repr=False)

    def __post_init__(self):
        """Auto-derive logger from organization identity if not provided."""
        if self.logger is None:
            from meterline.core.logging import logger as base_logger

            dims: Dict[str, str] = {"organization_id": str(self.organization_id)}
            self.logger = base_logger.with_context(**dims)

    def owns(self, organization_id: UUID) -> bool:
        """Whether a resource owned by *organization_id* belongs to this tenant."""
        return str(organization_id) == str(self.organization_id)
