"""create_notification_engine_tables

Revision ID: 4c1d7e2a9b30
Revises:
Create Date: 2026-10-17 09:12:41.518203

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c1d7e2a9b30"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create profiles, activity_log and the notification tables."""
    op.create_table(
        "profiles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("first_name", sa.String(length=100), nullable=True),
        sa.Column("last_name", sa.String(length=100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("role IN ('user', 'admin', 'superAdmin')"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_profiles_role", "profiles", ["role"], unique=False)

    op.create_table(
        "activity_log",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("action_type", sa.String(length=50), nullable=False),
        sa.Column("resource_type", sa.String(length=50), nullable=False),
        sa.Column("resource_id", sa.String(length=255), nullable=False),
        sa.Column("resource_slug", sa.String(length=255), nullable=True),
        sa.Column("resource_title", sa.String(length=500), nullable=True),
        sa.Column("actor_id", sa.UUID(), nullable=False),
        sa.Column("actor_username", sa.String(length=100), nullable=False),
        sa.Column("actor_role", sa.String(length=20), nullable=True),
        sa.Column("details", sa.Text(), nullable=False, server_default=""),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    # Digest windows and the admin feed both scan by time, newest first
    op.create_index(
        "ix_activity_log_timestamp",
        "activity_log",
        [sa.text("timestamp DESC")],
        unique=False,
    )
    op.create_index("ix_activity_log_action_type", "activity_log", ["action_type"], unique=False)
    op.create_index(
        "ix_activity_log_resource_type", "activity_log", ["resource_type"], unique=False
    )
    op.create_index("ix_activity_log_actor_id", "activity_log", ["actor_id"], unique=False)

    op.create_table(
        "notification_settings",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("key", sa.String(length=20), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column(
            "recipients",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("frequency", sa.String(length=20), nullable=False, server_default="daily"),
        sa.Column("scheduled_time", sa.String(length=5), nullable=False, server_default="09:00"),
        sa.Column(
            "throttling_enabled", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("max_emails_per_hour", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("last_sent_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("frequency IN ('immediate', 'hourly', 'daily', 'weekly')"),
        sa.CheckConstraint("max_emails_per_hour >= 1"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_table(
        "notification_rules",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("settings_id", sa.UUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("action_types", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("resource_types", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("trigger_roles", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "trigger_user_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="normal"),
        sa.Column("include_details", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("subject_template", sa.Text(), nullable=False),
        sa.CheckConstraint("priority IN ('low', 'normal', 'high')"),
        sa.ForeignKeyConstraint(
            ["settings_id"], ["notification_settings.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_rules_settings_id", "notification_rules", ["settings_id"], unique=False
    )

    op.create_table(
        "notification_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("settings_id", sa.UUID(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False, server_default="immediate"),
        sa.Column("sent_at", sa.DateTime(), nullable=False),
        sa.Column("recipient_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("activity_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "recipient_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "skipped_recipient_ids",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.CheckConstraint("kind IN ('immediate', 'digest')"),
        sa.ForeignKeyConstraint(
            ["settings_id"], ["notification_settings.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_history_settings_id",
        "notification_history",
        ["settings_id"],
        unique=False,
    )
    op.create_index(
        "ix_notification_history_sent_at", "notification_history", ["sent_at"], unique=False
    )

    op.create_table(
        "notification_digest_leases",
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("holder", sa.String(length=255), nullable=False),
        sa.Column("acquired_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("name"),
    )


def downgrade() -> None:
    """Drop the notification engine tables."""
    op.drop_table("notification_digest_leases")
    op.drop_index("ix_notification_history_sent_at", table_name="notification_history")
    op.drop_index("ix_notification_history_settings_id", table_name="notification_history")
    op.drop_table("notification_history")
    op.drop_index("ix_notification_rules_settings_id", table_name="notification_rules")
    op.drop_table("notification_rules")
    op.drop_table("notification_settings")
    op.drop_index("ix_activity_log_actor_id", table_name="activity_log")
    op.drop_index("ix_activity_log_resource_type", table_name="activity_log")
    op.drop_index("ix_activity_log_action_type", table_name="activity_log")
    op.drop_index("ix_activity_log_timestamp", table_name="activity_log")
    op.drop_table("activity_log")
    op.drop_index("ix_profiles_role", table_name="profiles")
    op.drop_table("profiles")
