"""Usage domain types and pure business logic.

Limit evaluation and threshold selection. No IO; everything here is
deterministic so the graded limit policy can be tested exhaustively.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from meterline.core.shared_models import LimitAction, UsageLimitEventType

DEFAULT_WARNING_PERCENTAGE = 80.0
CRITICAL_PERCENTAGE = 95.0
EXCEEDED_THRESHOLD = 1.0
# Reported for any usage against a zero limit; must stay JSON-serializable.
ZERO_LIMIT_PERCENTAGE = 10000.0

REASON_LIMIT_EXCEEDED = "Usage limit exceeded"
REASON_OVERAGE = "Overage charges will apply"


@dataclass(frozen=True)
class LimitDecision:
    """Outcome of evaluating a requested quantity against a tier limit."""

    allowed: bool
    action: LimitAction
    current_usage: float
    new_total: float
    limit: Optional[float] = None
    percentage: float = 0.0
    reason: Optional[str] = None

    @property
    def unlimited(self) -> bool:
        return self.limit is None


@dataclass(frozen=True)
class ThresholdCrossing:
    """The single threshold a usage percentage has crossed."""

    threshold: float  # fraction, 0-1
    event_type: UsageLimitEventType


def percentage_of(total: float, limit: float) -> float:
    """Usage as a percentage of *limit* (0 when the limit is 0 and unused)."""
    if limit <= 0:
        return 0.0 if total <= 0 else ZERO_LIMIT_PERCENTAGE
    return total / limit * 100


def evaluate_limit(
    *,
    usage_limit: Optional[float],
    limit_action: Optional[str],
    overage_allowed: bool,
    current_usage: float,
    requested_quantity: float,
    warning_percentage: float = DEFAULT_WARNING_PERCENTAGE,
) -> LimitDecision:
    """Apply the graded limit policy.

    Limits are advisory unless the tier is explicitly configured to block:
    over-limit usage is rejected only for ``block`` and is otherwise
    accepted with a ``warn`` action. Landing exactly on the limit is allowed.
    """
    if usage_limit is None:
        return LimitDecision(
            allowed=True,
            action=LimitAction.ALLOW,
            current_usage=0.0,
            new_total=requested_quantity,
        )

    new_total = current_usage + requested_quantity
    percentage = percentage_of(new_total, usage_limit)
    action = LimitAction(limit_action or LimitAction.WARN.value)

    if new_total > usage_limit:
        if action == LimitAction.BLOCK:
            return LimitDecision(
                allowed=False,
                action=LimitAction.BLOCK,
                current_usage=current_usage,
                new_total=new_total,
                limit=usage_limit,
                percentage=percentage,
                reason=REASON_LIMIT_EXCEEDED,
            )
        reason = (
            REASON_OVERAGE
            if action == LimitAction.OVERAGE and overage_allowed
            else REASON_LIMIT_EXCEEDED
        )
        return LimitDecision(
            allowed=True,
            action=LimitAction.WARN,
            current_usage=current_usage,
            new_total=new_total,
            limit=usage_limit,
            percentage=percentage,
            reason=reason,
        )

    return LimitDecision(
        allowed=True,
        action=LimitAction.WARN if percentage >= warning_percentage else LimitAction.ALLOW,
        current_usage=current_usage,
        new_total=new_total,
        limit=usage_limit,
        percentage=percentage,
    )


def find_threshold_crossing(
    percentage: float, thresholds: Optional[Iterable[float]]
) -> Optional[ThresholdCrossing]:
    """Pick the highest threshold at or below *percentage*.

    Thresholds are percentages (e.g. 80, 90, 95). Anything above 100% maps
    to the implicit ``exceeded`` threshold so a jump straight past the
    limit still produces exactly one event. Configured thresholds of 100
    or more are ignored; that key belongs to ``exceeded``.
    """
    if percentage > 100:
        return ThresholdCrossing(EXCEEDED_THRESHOLD, UsageLimitEventType.EXCEEDED)

    for threshold in sorted(thresholds or (), reverse=True):
        if threshold >= 100:
            continue
        if percentage >= threshold:
            event_type = (
                UsageLimitEventType.CRITICAL
                if percentage >= CRITICAL_PERCENTAGE
                else UsageLimitEventType.WARNING
            )
            return ThresholdCrossing(round(threshold / 100, 4), event_type)
    return None
