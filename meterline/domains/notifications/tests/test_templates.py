"""Tests for notification templates."""

import pytest

from meterline.core.shared_models import UsageLimitEventType
from meterline.domains.notifications.templates import (
    render_billing_notification,
    render_usage_notification,
)


class TestUsageNotifications:
    def test_warning(self):
        email = render_usage_notification(UsageLimitEventType.WARNING, 820, 1000, 82.0)

        assert email.type == "usage_warning"
        assert email.subject == "Notice: 82% of Usage Limit Reached"
        assert "Remaining: 180 units" in email.body
        assert "approaching your limit" not in email.body
        assert email.metadata == {"currentUsage": 820, "limit": 1000, "percentage": "82.0"}

    def test_critical_suggests_upgrade(self):
        email = render_usage_notification(UsageLimitEventType.CRITICAL, 950, 1000, 95.0)

        assert email.type == "usage_critical"
        assert email.subject.startswith("Critical: 95%")
        assert "approaching your limit" in email.body

    def test_exceeded_with_overage(self):
        email = render_usage_notification(UsageLimitEventType.EXCEEDED, 1250.5, 1000, 125.05)

        assert email.subject == "Usage Limit Exceeded"
        assert "Over by: 250.50 units" in email.body
        assert "Overage charges may apply." in email.body

    def test_exceeded_at_limit_has_no_overage_notice(self):
        email = render_usage_notification(UsageLimitEventType.EXCEEDED, 1000, 1000, 100.0)

        assert "Overage charges" not in email.body


class TestBillingNotifications:
    def test_created_names_plan(self):
        email = render_billing_notification(
            "subscription_created", product_name="Widgets API", tier_name="Pro"
        )

        assert email.subject == "Your Subscription is Active"
        assert "Widgets API (Pro)" in email.body

    def test_cancelling_is_sent_as_cancelled(self):
        email = render_billing_notification("subscription_cancelling", product_name="Widgets API")

        assert email.type == "subscription_cancelled"
        assert "end of the current billing period" in email.body

    @pytest.mark.parametrize(
        "notification_type,subject",
        [
            ("payment_succeeded", "Payment Received"),
            ("payment_failed", "Payment Failed"),
        ],
    )
    def test_payment_amount_is_formatted(self, notification_type, subject):
        email = render_billing_notification(
            notification_type, product_name="Widgets API", amount_cents=1999, invoiceId="in_1"
        )

        assert email.subject == subject
        assert "$19.99" in email.body
        assert email.metadata == {"invoiceId": "in_1", "amount": 1999}

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError):
            render_billing_notification("trial_ending", product_name="Widgets API")
