"""Due-reminder dispatch.

One call to ``run_tick`` is one tick:

1. Read at most ``batch_size`` pending reminders whose ``scheduled_at`` has
   passed, that nobody else has claimed and whose phone has notifications
   switched on. Paused rows simply wait; they go out late once resumed.
2. For each of them, independently: claim the row, resolve the recipient,
   rewrite the body, send the SMS, then flip the row to ``sent`` or
   ``failed``. Recurring rows get their next occurrence inserted in the same
   transaction as the flip, whichever way the delivery went.
3. Each row commits on its own. A store error surfaces after the rest of the
   batch has been handled; everything already committed stands and the next
   tick picks up whatever is still pending.

Two guards keep a row from being delivered twice: the lease claim taken
before sending and the ``status = 'pending'`` condition on the final write.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Awaitable, Callable
from zoneinfo import ZoneInfoNotFoundError

from sqlalchemy.exc import SQLAlchemyError

import db
from app.services.recurrence import compute_next
from app.services.transformer import transform
from app.types.reminder_contract import RecurrenceRule, ReminderStatus, SendResult
from app.utils.sms import send_sms
from config import settings
from db.models import Reminder

_LOGGER = logging.getLogger(__name__)

PHONE_NOT_FOUND = "PHONE_NOT_FOUND"
PHONE_NOT_VERIFIED = "PHONE_NOT_VERIFIED"
DISPATCH_ERROR = "DISPATCH_ERROR"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Outcome(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class TickReport:
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    scheduled: int = 0
    overlapped: bool = False


@dataclass
class _Delivery:
    outcome: Outcome
    scheduled_next: bool = False


class DeliveryDispatcher:
    def __init__(
        self,
        store=db,
        send: Callable[[str, str], Awaitable[SendResult]] | None = None,
        transformer: Callable[[str], str] = transform,
        clock: Callable[[], datetime] = _utcnow,
        batch_size: int | None = None,
        concurrency: int | None = None,
        claim_lease: timedelta | None = None,
    ):
        self._store = store
        self._send = send or send_sms
        self._transformer = transformer
        self._clock = clock
        self._batch_size = batch_size or settings.DISPATCH_BATCH_SIZE
        self._concurrency = max(1, concurrency or settings.DISPATCH_CONCURRENCY)
        self._lease = claim_lease or timedelta(seconds=settings.DISPATCH_CLAIM_LEASE_SECONDS)
        self._tick_lock = asyncio.Lock()

    async def run_tick(self) -> TickReport:
        if self._tick_lock.locked():
            _LOGGER.warning("Dispatch tick already running in this process; skipping")
            return TickReport(overlapped=True)
        async with self._tick_lock:
            return await self._tick()

    async def _tick(self) -> TickReport:
        now = self._clock()
        due = await self._store.fetch_due_reminders(now, limit=self._batch_size, lease=self._lease)
        report = TickReport(due=len(due))
        if not due:
            return report

        sem = asyncio.Semaphore(self._concurrency)

        async def _guarded(row: Reminder) -> _Delivery:
            async with sem:
                return await self._deliver(row)

        results = await asyncio.gather(*(_guarded(r) for r in due), return_exceptions=True)

        errors: list[BaseException] = []
        for row, result in zip(due, results):
            if isinstance(result, BaseException):
                _LOGGER.error("Reminder %s left pending: %r", row.reminder_id, result)
                errors.append(result)
                continue
            if result.outcome == Outcome.SENT:
                report.sent += 1
            elif result.outcome == Outcome.FAILED:
                report.failed += 1
            else:
                report.skipped += 1
            if result.scheduled_next:
                report.scheduled += 1

        _LOGGER.info(
            "Dispatch tick: due=%d sent=%d failed=%d skipped=%d scheduled=%d errors=%d",
            report.due, report.sent, report.failed, report.skipped, report.scheduled, len(errors),
        )
        if errors:
            raise errors[0]
        return report

    async def _deliver(self, row: Reminder) -> _Delivery:
        rid = row.reminder_id
        if not await self._store.claim_reminder(rid, self._clock(), self._lease):
            _LOGGER.info("Reminder %s claimed elsewhere; skipping", rid)
            return _Delivery(Outcome.SKIPPED)

        phone = await self._store.get_phone_by_id(row.phone_id)
        if phone is None or not phone.verified:
            # Later occurrences cannot reach this number either, so the series ends here.
            cause = PHONE_NOT_FOUND if phone is None else PHONE_NOT_VERIFIED
            _LOGGER.warning("Reminder %s has no deliverable recipient (%s)", rid, cause)
            return await self._finish(row, ReminderStatus.FAILED, {"error_code": cause}, continue_series=False)
        if not phone.notifications_enabled:
            # Paused after the row was fetched: leave it pending for when delivery resumes.
            await self._store.release_claim(rid)
            _LOGGER.info("Reminder %s held: notifications paused for its phone", rid)
            return _Delivery(Outcome.SKIPPED)

        try:
            delivered_body = self._transformer(row.body)
            result = await self._send(phone.e164_number, delivered_body)
        except SQLAlchemyError:
            raise
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Unexpected error delivering reminder %s", rid)
            result = SendResult(ok=False, error_code=DISPATCH_ERROR, error_message=str(exc))

        if result.ok:
            fields = {"sent_at": self._clock(), "delivered_body": delivered_body}
            return await self._finish(row, ReminderStatus.SENT, fields)

        _LOGGER.warning("Reminder %s failed: %s", rid, result.failure_cause)
        return await self._finish(row, ReminderStatus.FAILED, {"error_code": result.failure_cause})

    async def _finish(
        self,
        row: Reminder,
        status: ReminderStatus,
        fields: dict,
        continue_series: bool = True,
    ) -> _Delivery:
        next_fire_at = self._next_occurrence(row) if continue_series else None
        moved = await self._store.transition_reminder(
            row.reminder_id, ReminderStatus.PENDING, status, fields, next_fire_at=next_fire_at,
        )
        if not moved:
            _LOGGER.warning("Reminder %s was no longer pending; %s not recorded", row.reminder_id, status.value)
            return _Delivery(Outcome.SKIPPED)
        if next_fire_at is not None:
            _LOGGER.info("Reminder %s next occurrence at %s", row.reminder_id, next_fire_at.isoformat())
        outcome = Outcome.SENT if status == ReminderStatus.SENT else Outcome.FAILED
        return _Delivery(outcome, scheduled_next=next_fire_at is not None)

    def _next_occurrence(self, row: Reminder) -> datetime | None:
        if not row.recurring or not row.recurrence_rule:
            return None
        try:
            rule = RecurrenceRule.model_validate(row.recurrence_rule)
            return compute_next(row.scheduled_at, rule, tz=row.timezone)
        except (ValueError, ZoneInfoNotFoundError) as exc:
            _LOGGER.error("Reminder %s has an unusable recurrence rule, series stops: %s", row.reminder_id, exc)
            return None


dispatcher = DeliveryDispatcher()


async def run_dispatch_tick() -> None:
    """Entry point for the periodic trigger (Celery beat, cron script)."""
    await dispatcher.run_tick()
