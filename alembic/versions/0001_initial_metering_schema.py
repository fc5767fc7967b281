"""Initial metering schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column(
            "modified_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    ]


def _organization_fk():
    return sa.Column(
        "organization_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("organization.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade():
    """Create tenant, catalog, subscription, usage ledger and webhook tables."""
    op.create_table(
        "organization",
        *_base_columns(),
        sa.Column("name", sa.String(), nullable=False),
    )
    op.create_table(
        "app_user",
        *_base_columns(),
        sa.Column("email", sa.String(), nullable=True, unique=True),
        sa.Column("name", sa.String(), nullable=True),
    )

    # Catalog (read-only reference data for metering)
    op.create_table(
        "product",
        *_base_columns(),
        _organization_fk(),
        sa.Column("name", sa.String(), nullable=False),
    )
    op.create_index("ix_product_organization_id", "product", ["organization_id"])
    op.create_table(
        "metering_config",
        *_base_columns(),
        sa.Column(
            "product_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("product.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("metering_type", sa.String(), nullable=False),
        sa.Column("metering_unit", sa.String(), nullable=False),
        sa.Column("aggregation_type", sa.String(), nullable=False),
        sa.Column("usage_reporting_url", sa.String(), nullable=True),
    )
    op.create_table(
        "tier",
        *_base_columns(),
        sa.Column(
            "product_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("product.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("usage_limit", sa.Float(), nullable=True),
        sa.Column("limit_action", sa.String(16), nullable=False),
        sa.Column("overage_allowed", sa.Boolean(), nullable=False),
        sa.Column("warning_thresholds", postgresql.JSONB(), nullable=True),
        sa.Column("metering_enabled", sa.Boolean(), nullable=False),
    )

    # Subscriptions
    op.create_table(
        "subscription",
        *_base_columns(),
        _organization_fk(),
        sa.Column(
            "product_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("product.id"), nullable=False
        ),
        sa.Column(
            "tier_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("tier.id"), nullable=False
        ),
        sa.Column(
            "user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("app_user.id"), nullable=False
        ),
        sa.Column("stripe_subscription_id", sa.String(), nullable=True, unique=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("last_provider_event_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_subscription_organization_id", "subscription", ["organization_id"])
    op.create_table(
        "subscription_item",
        *_base_columns(),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("stripe_subscription_item_id", sa.String(), nullable=False, unique=True),
        sa.Column("item_type", sa.String(32), nullable=False),
        sa.Column("last_reported_usage", sa.Float(), nullable=True),
        sa.Column("last_reported_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "idx_subscription_item_subscription_id", "subscription_item", ["subscription_id"]
    )

    # Usage ledger
    op.create_table(
        "usage_record",
        *_base_columns(),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription.id"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
        sa.Column("reported_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "idx_usage_record_subscription_timestamp",
        "usage_record",
        ["subscription_id", "timestamp"],
    )
    op.create_index("idx_usage_record_user_id", "usage_record", ["user_id"])
    op.create_index(
        "idx_usage_record_unreported",
        "usage_record",
        ["timestamp"],
        postgresql_where=sa.text("reported_at IS NULL"),
    )

    op.create_table(
        "usage_limit_event",
        *_base_columns(),
        sa.Column(
            "subscription_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subscription.id"),
            nullable=False,
        ),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(16), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False),
        sa.Column("current_usage", sa.Float(), nullable=False),
        sa.Column("usage_limit", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("notification_sent", sa.Boolean(), nullable=False),
        sa.Column("period_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    # At most one notified event per (subscription, threshold, period)
    op.create_index(
        "uq_usage_limit_event_notified_per_period",
        "usage_limit_event",
        ["subscription_id", "threshold", "period_start"],
        unique=True,
        postgresql_where=sa.text("notification_sent"),
    )

    # Provider webhooks
    op.create_table(
        "webhook_event",
        *_base_columns(),
        sa.Column("event_id", sa.String(), nullable=False, unique=True),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
    )
    op.create_index("ix_webhook_event_status", "webhook_event", ["status"])

    # Notification outbox
    op.create_table(
        "email_notification",
        *_base_columns(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("subject", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
    )
    op.create_index("ix_email_notification_user_id", "email_notification", ["user_id"])

    # API keys
    op.create_table(
        "api_key",
        *_base_columns(),
        _organization_fk(),
        sa.Column("key_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("scopes", postgresql.ARRAY(sa.String()), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_key_organization_id", "api_key", ["organization_id"])


def downgrade():
    """Drop all metering tables."""
    for table in (
        "api_key",
        "email_notification",
        "webhook_event",
        "usage_limit_event",
        "usage_record",
        "subscription_item",
        "subscription",
        "tier",
        "metering_config",
        "product",
        "app_user",
        "organization",
    ):
        op.drop_table(table)
