"""Tests for billing domain pure logic."""

import pytest

from meterline.core.shared_models import SubscriptionStatus
from meterline.domains.billing.types import (
    BillingEventType,
    map_provider_status,
    payment_transition,
    usage_quantity,
)


@pytest.mark.parametrize(
    "provider,expected",
    [
        ("active", SubscriptionStatus.ACTIVE),
        ("trialing", SubscriptionStatus.TRIALING),
        ("past_due", SubscriptionStatus.PAST_DUE),
        ("unpaid", SubscriptionStatus.PAST_DUE),
        ("canceled", SubscriptionStatus.CANCELED),
        ("incomplete", None),
        (None, None),
    ],
)
def test_map_provider_status(provider, expected):
    assert map_provider_status(provider) == expected


@pytest.mark.parametrize(
    "current,event,expected",
    [
        (SubscriptionStatus.ACTIVE, BillingEventType.PAYMENT_FAILED, SubscriptionStatus.PAST_DUE),
        (SubscriptionStatus.TRIALING, BillingEventType.PAYMENT_FAILED, SubscriptionStatus.PAST_DUE),
        (SubscriptionStatus.PAST_DUE, BillingEventType.PAYMENT_FAILED, None),
        (SubscriptionStatus.CANCELED, BillingEventType.PAYMENT_FAILED, None),
        (SubscriptionStatus.PAST_DUE, BillingEventType.PAYMENT_SUCCEEDED, SubscriptionStatus.ACTIVE),
        (SubscriptionStatus.ACTIVE, BillingEventType.PAYMENT_SUCCEEDED, None),
        (SubscriptionStatus.CANCELED, BillingEventType.PAYMENT_SUCCEEDED, None),
    ],
)
def test_payment_transition(current, event, expected):
    assert payment_transition(current, event) == expected


@pytest.mark.parametrize(
    "quantity,expected",
    [(0, 0), (1, 1), (2.4, 2), (2.5, 3), (0.5, 1), (10.49, 10), (-3, 0)],
)
def test_usage_quantity_rounds_half_up(quantity, expected):
    assert usage_quantity(quantity) == expected


def test_parse_event_type():
    assert BillingEventType.parse("invoice.payment_failed") is BillingEventType.PAYMENT_FAILED
    assert BillingEventType.parse("customer.created") is None
