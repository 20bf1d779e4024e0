from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

import db
from app.types.reminder_contract import ReminderCreate
from db.models import PhoneNumber, Reminder


def test_naive_scheduled_at_raises():
    with pytest.raises(ValueError, match="timezone-aware"):
        Reminder(reminder_id="r1", phone_id="p1", body="x", scheduled_at=datetime(2025, 4, 25, 15, 0))


def test_naive_code_expires_raises():
    with pytest.raises(ValueError, match="timezone-aware"):
        PhoneNumber(phone_id="p1", e164_number="+15551234567", code_expires=datetime(2025, 4, 25, 15, 0))


@pytest.mark.asyncio
async def test_insert_naive_datetime_raises(database):
    data = ReminderCreate.model_construct(
        phone_id="p1",
        body="test",
        scheduled_at=datetime(2025, 4, 25, 15, 0, 0),  # Naive!
        timezone="UTC",
        recurring=False,
        recurrence_rule=None,
        user_id=None,
    )
    with pytest.raises(ValueError, match="timezone-aware"):
        await db.insert_reminder(data)


@pytest.mark.asyncio
async def test_insert_aware_datetime_reads_back_utc(database):
    local = datetime(2025, 4, 25, 15, 0, 0, tzinfo=ZoneInfo("America/Chicago"))
    rid = await db.insert_reminder(ReminderCreate(phone_id="p1", body="test", scheduled_at=local))

    row = await db.get_reminder(rid)
    assert row.scheduled_at == local
    assert row.scheduled_at.utcoffset() == timezone.utc.utcoffset(None)
    assert row.created_at.tzinfo is not None
