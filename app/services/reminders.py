"""Reminder creation, lookup and editing.

Validation happens here, before anything touches the store: the payload
itself is checked by ``ReminderCreate`` and the recipient must be a verified
phone.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

import db
from app.errors import InvalidInputError, NotFoundError, PhoneNotVerifiedError
from app.types.reminder_contract import ReminderCreate, ReminderStatus, ReminderUpdate
from db.models import Reminder

_LOGGER = logging.getLogger(__name__)


async def create_reminder(data: ReminderCreate) -> Reminder:
    phone = await db.get_phone_by_id(data.phone_id)
    if phone is None or not phone.verified:
        raise PhoneNotVerifiedError(details={"phone_id": data.phone_id})

    rid = await db.insert_reminder(data)
    _LOGGER.info(
        "Reminder %s scheduled for %s (recurring=%s)",
        rid, data.scheduled_at.isoformat(), data.recurring,
    )
    return await db.get_reminder(rid)


async def list_reminders(
    status: ReminderStatus | None = None,
    phone_id: str | None = None,
    limit: int = 100,
) -> list[Reminder]:
    return await db.list_reminders(status=status, phone_id=phone_id, limit=limit)


async def cancel_reminder(rid: str) -> None:
    """Delete a reminder that has not fired yet."""
    if not await db.delete_pending_reminder(rid):
        raise NotFoundError(f"No pending reminder {rid}")
    _LOGGER.info("Reminder %s cancelled", rid)


async def update_reminder(rid: str, patch: ReminderUpdate) -> Reminder:
    """Edit a reminder that has not fired yet.

    The merged reminder goes through the same checks as a new one, so the
    rule/recurring pairing and the series' local time stay consistent.
    """
    row = await db.get_reminder(rid)
    if row is None or row.status != ReminderStatus.PENDING.value:
        raise NotFoundError(f"No pending reminder {rid}")

    changes = patch.model_dump(exclude_unset=True)
    if changes.get("recurring") is False and "recurrence_rule" not in changes:
        changes["recurrence_rule"] = None
    merged = {
        "phone_id": row.phone_id,
        "user_id": row.user_id,
        "body": row.body,
        "scheduled_at": row.scheduled_at,
        "timezone": row.timezone,
        "recurring": row.recurring,
        "recurrence_rule": row.recurrence_rule,
        **changes,
    }
    try:
        data = ReminderCreate.model_validate(merged)
    except ValidationError as exc:
        raise InvalidInputError(details=[e["msg"] for e in exc.errors()])

    if not await db.update_pending_reminder(rid, data):
        raise NotFoundError(f"No pending reminder {rid}")
    _LOGGER.info("Reminder %s updated (%s)", rid, ", ".join(sorted(changes)) or "no changes")
    return await db.get_reminder(rid)
