"""Usage domain exceptions."""

from typing import Optional

from meterline.core.exceptions import MeterlineException
from meterline.domains.usage.types import LimitDecision


class UsageLimitExceededError(MeterlineException):
    """Raised when a tier configured to block rejects a usage delta."""

    def __init__(
        self,
        decision: LimitDecision,
        requested_quantity: float,
        message: Optional[str] = None,
    ) -> None:
        """Initialize with the rejecting decision and the requested quantity."""
        self.decision = decision
        self.requested_quantity = requested_quantity
        super().__init__(message or decision.reason or "Usage limit exceeded")
