"""SQLAlchemy ORM models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

SETTINGS_KEY = "global"


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class ProfileModel(Base):
    """Application user profile."""

    __tablename__ = "profiles"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint("role IN ('user', 'admin', 'superAdmin')"),
        nullable=False,
        default="user",
        index=True,
    )
    first_name: Mapped[str | None] = mapped_column(String(100))
    last_name: Mapped[str | None] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )


class ActivityLogModel(Base):
    """Activity log model; one row per tracked action."""

    __tablename__ = "activity_log"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    action_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[str] = mapped_column(String(255), nullable=False)
    resource_slug: Mapped[str | None] = mapped_column(String(255))
    resource_title: Mapped[str | None] = mapped_column(String(500))
    # No foreign key: events outlive the profiles that produced them
    actor_id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), nullable=False, index=True)
    actor_username: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_role: Mapped[str | None] = mapped_column(String(20))
    details: Mapped[str] = mapped_column(Text, nullable=False, default="")
    timestamp: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )


class NotificationSettingsModel(Base):
    """The single global notification settings row.

    ``version`` is SQLAlchemy's optimistic-locking column: every UPDATE is
    issued with ``WHERE version = <loaded version>`` and bumps it.
    """

    __tablename__ = "notification_settings"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    key: Mapped[str] = mapped_column(
        String(20), nullable=False, unique=True, default=SETTINGS_KEY
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    recipients: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    frequency: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint("frequency IN ('immediate', 'hourly', 'daily', 'weekly')"),
        nullable=False,
        default="daily",
    )
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False, default="09:00")
    throttling_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    max_emails_per_hour: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("max_emails_per_hour >= 1"),
        nullable=False,
        default=10,
    )
    last_sent_at: Mapped[datetime | None] = mapped_column(DateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    rules: Mapped[list["NotificationRuleModel"]] = relationship(
        "NotificationRuleModel",
        back_populates="settings",
        cascade="all, delete-orphan",
        order_by="NotificationRuleModel.position",
    )
    history: Mapped[list["NotificationHistoryModel"]] = relationship(
        "NotificationHistoryModel",
        back_populates="settings",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="NotificationHistoryModel.sent_at",
    )


class NotificationRuleModel(Base):
    """A notification rule; ``position`` keeps the stored evaluation order."""

    __tablename__ = "notification_rules"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    settings_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("notification_settings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    action_types: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    resource_types: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    trigger_roles: Mapped[list[str]] = mapped_column(JSONB, nullable=False)
    trigger_user_ids: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    priority: Mapped[str] = mapped_column(
        String(10),
        CheckConstraint("priority IN ('low', 'normal', 'high')"),
        nullable=False,
        default="normal",
    )
    include_details: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    subject_template: Mapped[str] = mapped_column(Text, nullable=False)

    # Relationships
    settings: Mapped["NotificationSettingsModel"] = relationship(
        "NotificationSettingsModel", back_populates="rules"
    )


class NotificationHistoryModel(Base):
    """Append-only audit entry for one dispatch attempt."""

    __tablename__ = "notification_history"

    id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    settings_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("notification_settings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint("kind IN ('immediate', 'digest')"),
        nullable=False,
        default="immediate",
    )
    sent_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    recipient_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    activity_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    recipient_ids: Mapped[list[str]] = mapped_column(JSONB, default=list, nullable=False)
    skipped_recipient_ids: Mapped[list[str]] = mapped_column(
        JSONB, default=list, nullable=False
    )

    # Relationships
    settings: Mapped["NotificationSettingsModel"] = relationship(
        "NotificationSettingsModel", back_populates="history"
    )


class DigestLeaseModel(Base):
    """Mutual-exclusion lease for one digest frequency bucket."""

    __tablename__ = "notification_digest_leases"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    holder: Mapped[str] = mapped_column(String(255), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
