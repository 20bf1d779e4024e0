"""Pydantic models that define the contract between the API, the dispatcher
and the database layer.

These classes are intentionally framework-agnostic so they can be reused by
workers, API responses, and tests without pulling in FastAPI or database
layers.
"""

from __future__ import annotations

import re
from datetime import datetime, time
from enum import Enum
from typing import List, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")
CODE_PATTERN = re.compile(r"[0-9]{6}")

# One occurrence per minute is the finest the dispatch tick can honour.
MAX_TIMES_PER_DAY = 1440


def _require_aware(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and (v.tzinfo is None or v.utcoffset() is None):
        raise ValueError("datetime must be timezone-aware")
    return v


def sunday_weekday(dt: datetime) -> int:
    """Weekday number with Sunday = 0 … Saturday = 6."""
    return (dt.weekday() + 1) % 7


class ReminderStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM_TIMES_PER_DAY = "custom_times_per_day"
    CUSTOM_DAYS_OF_WEEK = "custom_days_of_week"


class RecurrenceRule(BaseModel):
    """How a recurring reminder produces its next occurrence."""

    frequency: Frequency
    times_per_day: Optional[int] = Field(default=None, ge=1, le=MAX_TIMES_PER_DAY)
    days_of_week: List[int] = Field(default_factory=list)  # 0 = Sunday
    days_of_month: List[int] = Field(default_factory=list)
    end_date: Optional[datetime] = None
    # Wall-clock time of the series in the reminder's timezone. Calendar steps
    # land on it even after an occurrence was pushed through a DST gap.
    local_time: Optional[time] = None

    @field_validator("days_of_week")
    def _valid_weekdays(cls, v: list[int]):  # noqa: N805
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @field_validator("days_of_month")
    def _valid_month_days(cls, v: list[int]):  # noqa: N805
        if any(d < 1 or d > 31 for d in v):
            raise ValueError("days_of_month entries must be between 1 and 31")
        return sorted(set(v))

    @field_validator("end_date")
    def _aware_end(cls, v):  # noqa: N805
        return _require_aware(v)

    @model_validator(mode="after")
    def _required_fields(self):
        if self.frequency == Frequency.CUSTOM_DAYS_OF_WEEK and not self.days_of_week:
            raise ValueError("custom_days_of_week requires at least one day in days_of_week")
        if self.frequency == Frequency.CUSTOM_TIMES_PER_DAY and not self.times_per_day:
            raise ValueError("custom_times_per_day requires times_per_day >= 1")
        return self


class ReminderCreate(BaseModel):
    """Everything needed to schedule a reminder (one-shot or recurring)."""

    phone_id: str
    body: str
    scheduled_at: datetime
    timezone: str = "UTC"
    recurring: bool = False
    recurrence_rule: Optional[RecurrenceRule] = None
    user_id: Optional[str] = None

    @field_validator("body")
    def _non_empty_body(cls, v: str):  # noqa: N805
        if not v or not v.strip():
            raise ValueError("body must be a non-empty string")
        return v.strip()

    @field_validator("scheduled_at")
    def _aware_scheduled_at(cls, v):  # noqa: N805
        return _require_aware(v)

    @field_validator("timezone")
    def _validate_tz(cls, v):  # noqa: N805
        try:
            ZoneInfo(v)
        except Exception:
            raise ValueError(f"timezone '{v}' is not a valid Olson timezone string")
        return v

    @model_validator(mode="after")
    def _rule_iff_recurring(self):
        if self.recurring and self.recurrence_rule is None:
            raise ValueError("recurrence_rule is required when recurring is true")
        if not self.recurring and self.recurrence_rule is not None:
            raise ValueError("recurrence_rule must be omitted when recurring is false")

        rule = self.recurrence_rule
        if rule is not None:
            local = self.scheduled_at.astimezone(ZoneInfo(self.timezone))
            update = {"local_time": local.time().replace(tzinfo=None)}
            if rule.frequency == Frequency.WEEKLY and not rule.days_of_week:
                # Anchor an unqualified weekly rule to the first occurrence's weekday.
                update["days_of_week"] = [sunday_weekday(local)]
            self.recurrence_rule = rule.model_copy(update=update)
        return self


class ReminderUpdate(BaseModel):
    """Partial edit of a pending reminder. Omitted fields keep their value."""

    body: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    timezone: Optional[str] = None
    recurring: Optional[bool] = None
    recurrence_rule: Optional[RecurrenceRule] = None


class ReminderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    reminder_id: str
    phone_id: str
    user_id: Optional[str] = None
    body: str
    scheduled_at: datetime
    timezone: str
    recurring: bool
    recurrence_rule: Optional[RecurrenceRule] = None
    status: ReminderStatus
    sent_at: Optional[datetime] = None
    delivered_body: Optional[str] = None
    error_code: Optional[str] = None


class PhoneVerificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone_id: str
    e164_number: str
    verified: bool
    notifications_enabled: bool = True


class VerificationRequest(BaseModel):
    phone: str

    @field_validator("phone")
    def _e164(cls, v: str):  # noqa: N805
        v = v.strip()
        if not E164_PATTERN.match(v):
            raise ValueError("phone must be in E.164 format, e.g. +15551234567")
        return v


class VerificationConfirm(VerificationRequest):
    code: str

    @field_validator("code")
    def _six_digits(cls, v: str):  # noqa: N805
        v = v.strip()
        if not CODE_PATTERN.fullmatch(v):
            raise ValueError("code must be 6 digits")
        return v


class NotificationSettings(BaseModel):
    enabled: bool


class SendResult(BaseModel):
    """Outcome of one SMS gateway call. The gateway never raises."""

    ok: bool
    message_id: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def failure_cause(self) -> str:
        return self.error_code or self.error_message or "SMS_GATEWAY_ERROR"
