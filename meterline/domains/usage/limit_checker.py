"""Usage limit evaluator.

Reads the current billing-period total from the usage ledger and applies
the graded limit policy from ``types.evaluate_limit``. Stateless; one
instance lives in the container.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from meterline.core.datetime_utils import ensure_aware, utc_now
from meterline.domains.usage.protocols import LimitEvaluatorProtocol
from meterline.domains.usage.repository import UsageRecordRepositoryProtocol
from meterline.domains.usage.types import DEFAULT_WARNING_PERCENTAGE, LimitDecision, evaluate_limit
from meterline.models import Subscription


class UsageLimitEvaluator(LimitEvaluatorProtocol):
    """Evaluates usage deltas against a subscription's tier limit."""

    def __init__(
        self,
        usage_repo: UsageRecordRepositoryProtocol,
        warning_percentage: float = DEFAULT_WARNING_PERCENTAGE,
    ) -> None:
        """Initialize with the usage ledger."""
        self._usage_repo = usage_repo
        self._warning_percentage = warning_percentage

    async def evaluate(
        self, db: AsyncSession, subscription: Subscription, requested_quantity: float
    ) -> LimitDecision:
        """Evaluate *requested_quantity* against the current billing period.

        Unlimited tiers never touch the ledger. A subscription without a
        period start counts usage from now.
        """
        tier = subscription.tier
        if tier.usage_limit is None:
            return evaluate_limit(
                usage_limit=None,
                limit_action=tier.limit_action,
                overage_allowed=tier.overage_allowed,
                current_usage=0.0,
                requested_quantity=requested_quantity,
            )

        period_start = ensure_aware(subscription.current_period_start) or utc_now()
        current_usage = await self._usage_repo.sum_since(
            db, subscription_id=subscription.id, since=period_start
        )
        return evaluate_limit(
            usage_limit=tier.usage_limit,
            limit_action=tier.limit_action,
            overage_allowed=bool(tier.overage_allowed),
            current_usage=current_usage,
            requested_quantity=requested_quantity,
            warning_percentage=self._warning_percentage,
        )
