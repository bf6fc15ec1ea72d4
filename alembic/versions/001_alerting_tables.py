"""Create alerting, notification channel, routing and on-call tables.

Revision ID: 001_alerting
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision = "001_alerting"
down_revision = None
branch_labels = None
depends_on = None


def _id_column() -> sa.Column:
    return sa.Column("id", sa.VARCHAR(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _updated_at() -> sa.Column:
    return sa.Column(
        "updated_at",
        sa.TIMESTAMP(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def upgrade() -> None:
    # Alert rules (evaluated by the store-side evaluate_alert_rule function)
    op.create_table(
        "alert_rules",
        _id_column(),
        sa.Column("name", sa.VARCHAR(255), nullable=False),
        sa.Column("team_id", sa.VARCHAR(64), nullable=False),
        sa.Column("metric_name", sa.VARCHAR(255), nullable=False),
        sa.Column("severity", sa.VARCHAR(20), nullable=False),
        sa.Column("enabled", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "alerts",
        _id_column(),
        sa.Column("team_id", sa.VARCHAR(64), nullable=False),
        sa.Column("alert_rule_id", sa.VARCHAR(36), sa.ForeignKey("alert_rules.id"), nullable=True),
        sa.Column("severity", sa.VARCHAR(20), nullable=False),
        sa.Column("title", sa.VARCHAR(255), nullable=False),
        sa.Column("description", sa.TEXT, nullable=True),
        sa.Column("metric_name", sa.VARCHAR(255), nullable=False),
        sa.Column("metric_value", sa.FLOAT, nullable=True),
        sa.Column("context", JSONB, nullable=False, server_default="{}"),
        sa.Column("tags", JSONB, nullable=False, server_default="{}"),
        sa.Column("status", sa.VARCHAR(20), nullable=False, server_default="active"),
        sa.Column("acknowledged_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("acknowledged_by", sa.VARCHAR(64), nullable=True),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.VARCHAR(64), nullable=True),
        sa.Column("suppressed_until", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint(
            "severity IN ('critical', 'high', 'medium', 'low', 'info')",
            name="ck_alerts_severity",
        ),
        sa.CheckConstraint(
            "status IN ('active', 'acknowledged', 'resolved', 'suppressed', 'expired')",
            name="ck_alerts_status",
        ),
    )
    op.create_index("idx_alerts_team_created", "alerts", ["team_id", sa.text("created_at DESC")])
    op.create_index("idx_alerts_status", "alerts", ["status"])

    op.create_table(
        "alert_history",
        _id_column(),
        sa.Column("alert_id", sa.VARCHAR(36), sa.ForeignKey("alerts.id"), nullable=False),
        sa.Column("event_type", sa.VARCHAR(50), nullable=False),
        sa.Column("event_description", sa.TEXT, nullable=True),
        sa.Column("previous_status", sa.VARCHAR(20), nullable=True),
        sa.Column("new_status", sa.VARCHAR(20), nullable=True),
        sa.Column("performed_by", sa.VARCHAR(64), nullable=True),
        sa.Column("metadata", JSONB, nullable=False, server_default="{}"),
        _created_at(),
    )
    op.create_index("idx_alert_history_alert", "alert_history", ["alert_id", "created_at"])

    op.create_table(
        "notification_channels",
        _id_column(),
        sa.Column("team_id", sa.VARCHAR(64), nullable=True),
        sa.Column("name", sa.VARCHAR(255), nullable=False),
        sa.Column("description", sa.TEXT, nullable=True),
        sa.Column("channel_type", sa.VARCHAR(20), nullable=False),
        sa.Column("enabled", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        sa.Column("configuration", JSONB, nullable=False, server_default="{}"),
        sa.Column(
            "max_notifications_per_hour", sa.INTEGER, nullable=False, server_default="50"
        ),
        sa.Column(
            "max_notifications_per_day", sa.INTEGER, nullable=False, server_default="200"
        ),
        sa.Column("created_by", sa.VARCHAR(64), nullable=True),
        _created_at(),
        _updated_at(),
        sa.UniqueConstraint("team_id", "name", name="uq_notification_channels_team_name"),
        sa.CheckConstraint(
            "channel_type IN ('email', 'webhook', 'slack', 'sms', 'push', 'in_app')",
            name="ck_notification_channels_type",
        ),
    )
    op.create_index(
        "idx_notification_channels_team",
        "notification_channels",
        ["team_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "alert_notifications",
        _id_column(),
        sa.Column("alert_id", sa.VARCHAR(36), sa.ForeignKey("alerts.id"), nullable=False),
        sa.Column(
            "channel_id",
            sa.VARCHAR(36),
            sa.ForeignKey("notification_channels.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recipient", sa.VARCHAR(255), nullable=True),
        sa.Column("status", sa.VARCHAR(20), nullable=False, server_default="pending"),
        sa.Column("error_message", sa.TEXT, nullable=True),
        sa.Column("sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index(
        "idx_alert_notifications_channel",
        "alert_notifications",
        ["channel_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "alert_severity_routing",
        _id_column(),
        sa.Column("team_id", sa.VARCHAR(64), nullable=False),
        sa.Column("severity", sa.VARCHAR(20), nullable=False),
        sa.Column("assigned_users", JSONB, nullable=False, server_default="[]"),
        sa.Column("assigned_channels", JSONB, nullable=False, server_default="[]"),
        sa.Column("initial_delay_minutes", sa.INTEGER, nullable=False, server_default="0"),
        sa.Column(
            "escalation_interval_minutes", sa.INTEGER, nullable=False, server_default="15"
        ),
        sa.Column("max_escalation_level", sa.INTEGER, nullable=False, server_default="3"),
        sa.Column("business_hours_only", sa.BOOLEAN, nullable=False, server_default=sa.false()),
        sa.Column("weekend_escalation", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        sa.Column("auto_acknowledge_minutes", sa.INTEGER, nullable=True),
        sa.Column("auto_resolve_minutes", sa.INTEGER, nullable=True),
        sa.Column("conditions", JSONB, nullable=False, server_default="{}"),
        sa.Column("enabled", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        sa.Column("priority", sa.INTEGER, nullable=False, server_default="100"),
        _created_at(),
        _updated_at(),
    )
    op.create_index(
        "idx_alert_severity_routing_lookup",
        "alert_severity_routing",
        ["team_id", "severity", "priority"],
    )

    op.create_table(
        "alert_assignments",
        _id_column(),
        sa.Column("alert_id", sa.VARCHAR(36), sa.ForeignKey("alerts.id"), nullable=False),
        sa.Column("assigned_to", sa.VARCHAR(64), nullable=False),
        sa.Column("assignment_reason", sa.VARCHAR(30), nullable=False),
        sa.Column("assignment_level", sa.INTEGER, nullable=False, server_default="1"),
        _created_at(),
    )
    op.create_index("idx_alert_assignments_alert", "alert_assignments", ["alert_id"])
    op.create_index(
        "idx_alert_assignments_user",
        "alert_assignments",
        ["assigned_to", sa.text("created_at DESC")],
    )

    op.create_table(
        "team_members",
        _id_column(),
        sa.Column("team_id", sa.VARCHAR(64), nullable=False),
        sa.Column("user_id", sa.VARCHAR(64), nullable=False),
        sa.Column("role", sa.VARCHAR(20), nullable=False),
        sa.Column("full_name", sa.VARCHAR(255), nullable=True),
        sa.Column("email", sa.VARCHAR(255), nullable=True),
        _created_at(),
        sa.UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        sa.CheckConstraint(
            "role IN ('owner', 'admin', 'member', 'viewer')",
            name="ck_team_members_role",
        ),
    )

    op.create_table(
        "on_call_schedules",
        _id_column(),
        sa.Column("team_id", sa.VARCHAR(64), nullable=False),
        sa.Column("name", sa.VARCHAR(255), nullable=False),
        sa.Column("applicable_severities", JSONB, nullable=False, server_default="[]"),
        sa.Column("enabled", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        _created_at(),
    )

    op.create_table(
        "on_call_schedule_entries",
        _id_column(),
        sa.Column(
            "schedule_id",
            sa.VARCHAR(36),
            sa.ForeignKey("on_call_schedules.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.VARCHAR(64), nullable=False),
        sa.Column("backup_user_id", sa.VARCHAR(64), nullable=True),
        sa.Column("is_primary", sa.BOOLEAN, nullable=False, server_default=sa.true()),
        sa.Column("start_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.CheckConstraint("end_time > start_time", name="ck_on_call_entries_window"),
    )
    op.create_index(
        "idx_on_call_entries_window",
        "on_call_schedule_entries",
        ["schedule_id", "start_time", "end_time"],
    )


def downgrade() -> None:
    op.drop_index("idx_on_call_entries_window", table_name="on_call_schedule_entries")
    op.drop_table("on_call_schedule_entries")
    op.drop_table("on_call_schedules")
    op.drop_table("team_members")

    op.drop_index("idx_alert_assignments_user", table_name="alert_assignments")
    op.drop_index("idx_alert_assignments_alert", table_name="alert_assignments")
    op.drop_table("alert_assignments")

    op.drop_index("idx_alert_severity_routing_lookup", table_name="alert_severity_routing")
    op.drop_table("alert_severity_routing")

    op.drop_index("idx_alert_notifications_channel", table_name="alert_notifications")
    op.drop_table("alert_notifications")

    op.drop_index("idx_notification_channels_team", table_name="notification_channels")
    op.drop_table("notification_channels")

    op.drop_index("idx_alert_history_alert", table_name="alert_history")
    op.drop_table("alert_history")

    op.drop_index("idx_alerts_status", table_name="alerts")
    op.drop_index("idx_alerts_team_created", table_name="alerts")
    op.drop_table("alerts")

    op.drop_table("alert_rules")
