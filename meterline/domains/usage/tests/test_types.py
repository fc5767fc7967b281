"""Unit tests for usage domain pure logic: limit policy and threshold selection."""

from dataclasses import dataclass
from typing import Optional

import pytest

from meterline.core.shared_models import LimitAction, UsageLimitEventType
from meterline.domains.usage.types import (
    REASON_LIMIT_EXCEEDED,
    REASON_OVERAGE,
    ZERO_LIMIT_PERCENTAGE,
    evaluate_limit,
    find_threshold_crossing,
    percentage_of,
)

# ===========================================================================
# evaluate_limit
# ===========================================================================


@dataclass
class LimitCase:
    label: str
    usage_limit: Optional[float]
    limit_action: Optional[str]
    current_usage: float
    requested: float
    expected_allowed: bool
    expected_action: LimitAction
    overage_allowed: bool = False
    expected_reason: Optional[str] = None


LIMIT_CASES = [
    LimitCase(
        label="unlimited",
        usage_limit=None,
        limit_action="block",
        current_usage=10_000,
        requested=50,
        expected_allowed=True,
        expected_action=LimitAction.ALLOW,
    ),
    LimitCase(
        label="block_over_limit",
        usage_limit=100,
        limit_action="block",
        current_usage=90,
        requested=15,
        expected_allowed=False,
        expected_action=LimitAction.BLOCK,
        expected_reason=REASON_LIMIT_EXCEEDED,
    ),
    LimitCase(
        label="block_exactly_at_limit_is_allowed",
        usage_limit=100,
        limit_action="block",
        current_usage=90,
        requested=10,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
    ),
    LimitCase(
        label="overage_accepted_with_warning",
        usage_limit=100,
        limit_action="overage",
        overage_allowed=True,
        current_usage=95,
        requested=20,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
        expected_reason=REASON_OVERAGE,
    ),
    LimitCase(
        label="overage_not_allowed_still_fails_open",
        usage_limit=100,
        limit_action="overage",
        overage_allowed=False,
        current_usage=95,
        requested=20,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
        expected_reason=REASON_LIMIT_EXCEEDED,
    ),
    LimitCase(
        label="default_action_is_warn",
        usage_limit=100,
        limit_action=None,
        current_usage=100,
        requested=1,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
        expected_reason=REASON_LIMIT_EXCEEDED,
    ),
    LimitCase(
        label="allow_action_over_limit_warns",
        usage_limit=100,
        limit_action="allow",
        current_usage=99,
        requested=5,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
        expected_reason=REASON_LIMIT_EXCEEDED,
    ),
    LimitCase(
        label="under_warning_percentage",
        usage_limit=100,
        limit_action="block",
        current_usage=10,
        requested=5,
        expected_allowed=True,
        expected_action=LimitAction.ALLOW,
    ),
    LimitCase(
        label="at_warning_percentage",
        usage_limit=100,
        limit_action="block",
        current_usage=70,
        requested=10,
        expected_allowed=True,
        expected_action=LimitAction.WARN,
    ),
]


@pytest.mark.parametrize("case", LIMIT_CASES, ids=lambda c: c.label)
def test_evaluate_limit(case: LimitCase):
    decision = evaluate_limit(
        usage_limit=case.usage_limit,
        limit_action=case.limit_action,
        overage_allowed=case.overage_allowed,
        current_usage=case.current_usage,
        requested_quantity=case.requested,
    )
    assert decision.allowed is case.expected_allowed
    assert decision.action == case.expected_action
    assert decision.reason == case.expected_reason


def test_block_decision_carries_totals():
    decision = evaluate_limit(
        usage_limit=100,
        limit_action="block",
        overage_allowed=False,
        current_usage=90,
        requested_quantity=15,
    )
    assert decision.current_usage == 90
    assert decision.new_total == 105
    assert decision.limit == 100
    assert decision.percentage == pytest.approx(105.0)


def test_unlimited_decision_has_no_limit():
    decision = evaluate_limit(
        usage_limit=None,
        limit_action="block",
        overage_allowed=False,
        current_usage=0,
        requested_quantity=3,
    )
    assert decision.unlimited
    assert decision.new_total == 3


def test_custom_warning_percentage():
    decision = evaluate_limit(
        usage_limit=100,
        limit_action="block",
        overage_allowed=False,
        current_usage=50,
        requested_quantity=10,
        warning_percentage=50,
    )
    assert decision.action == LimitAction.WARN


# ===========================================================================
# percentage_of
# ===========================================================================


def test_percentage_of_zero_limit():
    assert percentage_of(0, 0) == 0.0
    assert percentage_of(1, 0) == ZERO_LIMIT_PERCENTAGE


# ===========================================================================
# find_threshold_crossing
# ===========================================================================


@dataclass
class CrossingCase:
    label: str
    percentage: float
    expected_threshold: Optional[float]
    expected_type: Optional[UsageLimitEventType] = None
    thresholds: tuple = (80, 90, 95)


CROSSING_CASES = [
    CrossingCase("below_all", 79.9, None),
    CrossingCase("first_threshold", 82, 0.8, UsageLimitEventType.WARNING),
    CrossingCase("second_threshold", 91, 0.9, UsageLimitEventType.WARNING),
    CrossingCase("jump_to_critical", 97, 0.95, UsageLimitEventType.CRITICAL),
    CrossingCase("exactly_at_limit", 100, 0.95, UsageLimitEventType.CRITICAL),
    CrossingCase("over_limit_is_exceeded", 100.5, 1.0, UsageLimitEventType.EXCEEDED),
    CrossingCase("custom_thresholds", 60, 0.5, UsageLimitEventType.WARNING, (50, 75)),
    CrossingCase("no_thresholds", 99, None, thresholds=()),
    CrossingCase(
        "limit_threshold_left_to_exceeded", 100, 0.8, UsageLimitEventType.CRITICAL, (80, 100)
    ),
    CrossingCase("only_limit_threshold", 100, None, thresholds=(100,)),
]


@pytest.mark.parametrize("case", CROSSING_CASES, ids=lambda c: c.label)
def test_find_threshold_crossing(case: CrossingCase):
    crossing = find_threshold_crossing(case.percentage, case.thresholds)
    if case.expected_threshold is None:
        assert crossing is None
        return
    assert crossing.threshold == pytest.approx(case.expected_threshold)
    assert crossing.event_type == case.expected_type
