from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware timestamp stored UTC-normalised.

    Drivers without native TIMESTAMPTZ (SQLite) hand back naive values; those
    are re-tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            raise ValueError("datetime values must be timezone-aware")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


def _require_aware(key: str, value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        raise ValueError(f"{key} must be timezone-aware")
    return value


class Base(DeclarativeBase):
    pass


class PhoneNumber(Base):
    __tablename__ = "phone_numbers"

    phone_id:     Mapped[str]  = mapped_column(String(36), primary_key=True)
    user_id:      Mapped[str | None] = mapped_column(String, nullable=True)
    e164_number:  Mapped[str]  = mapped_column(String(16), unique=True)
    verified:     Mapped[bool] = mapped_column(default=False)
    notifications_enabled: Mapped[bool] = mapped_column(default=True)
    verify_code:  Mapped[str | None] = mapped_column(String(6), nullable=True)
    code_expires: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at:   Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at:   Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    @validates("code_expires")
    def _aware(self, key, value):
        return _require_aware(key, value)


class Reminder(Base):
    __tablename__ = "reminders"

    reminder_id:     Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id:         Mapped[str | None] = mapped_column(String, nullable=True)
    phone_id:        Mapped[str] = mapped_column(String(36))
    body:            Mapped[str] = mapped_column(Text)
    scheduled_at:    Mapped[datetime] = mapped_column(UTCDateTime)
    timezone:        Mapped[str] = mapped_column(String(64), default="UTC")
    recurring:       Mapped[bool] = mapped_column(default=False)
    recurrence_rule: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    status:          Mapped[str] = mapped_column(String(16), default="pending")
    sent_at:         Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    delivered_body:  Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code:      Mapped[str | None] = mapped_column(Text, nullable=True)
    claimed_at:      Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at:      Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)
    updated_at:      Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_reminders_status_scheduled_at", "status", "scheduled_at"),
    )

    @validates("scheduled_at", "sent_at", "claimed_at")
    def _aware(self, key, value):
        return _require_aware(key, value)
