"""Phone-number ownership proof via short-lived 6-digit SMS codes.

Per phone the state goes ``unverified`` → ``code pending`` → ``verified``.
Re-issuing while pending overwrites the code and pushes the expiry out; a
verified phone never gets another code until it is unlinked.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import random
import weakref
from datetime import datetime, timedelta, timezone
from typing import Callable

import db
from app.errors import (
    InvalidOrExpiredCodeError,
    InvalidInputError,
    NotFoundError,
    PhoneAlreadyVerifiedError,
    SmsDeliveryError,
)
from app.types.reminder_contract import E164_PATTERN
from app.utils.sms import send_sms
from config import settings
from db.models import PhoneNumber

_LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationManager:
    def __init__(
        self,
        store=db,
        clock: Callable[[], datetime] = _utcnow,
        rng: random.Random | None = None,
        code_ttl: timedelta | None = None,
    ):
        self._store = store
        self._clock = clock
        self._rng = rng or random.SystemRandom()
        self._code_ttl = code_ttl or timedelta(minutes=settings.VERIFICATION_CODE_TTL_MINUTES)
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock_for(self, phone: str) -> asyncio.Lock:
        lock = self._locks.get(phone)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[phone] = lock
        return lock

    @staticmethod
    def _check_e164(phone: str) -> str:
        phone = phone.strip()
        if not E164_PATTERN.match(phone):
            raise InvalidInputError(f"'{phone}' is not an E.164 phone number")
        return phone

    async def issue_code(self, phone: str, user_id: str | None = None) -> str:
        """Store a fresh code for ``phone`` and return it for out-of-band delivery."""
        phone = self._check_e164(phone)
        async with self._lock_for(phone):
            existing = await self._store.get_phone(phone)
            if existing is not None and existing.verified:
                raise PhoneAlreadyVerifiedError()

            code = str(self._rng.randint(100000, 999999))
            fields = {"verify_code": code, "code_expires": self._clock() + self._code_ttl}
            if user_id is not None:
                fields["user_id"] = user_id
            await self._store.upsert_phone(phone, **fields)
        _LOGGER.info("Verification code issued for %s", phone)
        return code

    async def confirm(self, phone: str, submitted: str) -> PhoneNumber:
        """Mark ``phone`` verified if ``submitted`` matches the live code.

        Raises ``InvalidOrExpiredCodeError``; a wrong guess leaves the pending
        code untouched.
        """
        phone = phone.strip()
        async with self._lock_for(phone):
            record = await self._store.get_phone(phone)
            if record is None or record.verified or not record.verify_code:
                raise InvalidOrExpiredCodeError("no_pending_code")
            if record.code_expires is None or self._clock() >= record.code_expires:
                raise InvalidOrExpiredCodeError("expired")
            if not hmac.compare_digest(record.verify_code.encode(), submitted.strip().encode()):
                raise InvalidOrExpiredCodeError("mismatch")

            # Conditional write: only one confirm across all processes can win.
            if not await self._store.mark_phone_verified(phone, record.verify_code):
                raise InvalidOrExpiredCodeError("already_used")
            verified = await self._store.get_phone(phone)
        _LOGGER.info("Phone %s verified", phone)
        return verified

    async def unlink(self, phone: str) -> None:
        phone = phone.strip()
        async with self._lock_for(phone):
            if not await self._store.delete_phone(phone):
                raise NotFoundError(f"Phone {phone} is not linked")
        _LOGGER.info("Phone %s unlinked", phone)


manager = VerificationManager()


async def issue_verification_code(phone: str, user_id: str | None = None) -> None:
    """Issue a code and text it to ``phone``."""
    code = await manager.issue_code(phone, user_id=user_id)
    result = await send_sms(phone.strip(), f"Your verification code: {code}")
    if not result.ok:
        raise SmsDeliveryError(details={"error_code": result.failure_cause})


async def confirm_verification_code(phone: str, code: str) -> PhoneNumber:
    return await manager.confirm(phone, code)


async def unlink_phone(phone: str) -> None:
    await manager.unlink(phone)


async def set_notifications(phone: str, enabled: bool) -> PhoneNumber:
    """Pause or resume reminder delivery to ``phone``. Paused reminders stay pending."""
    record = await db.set_phone_notifications(phone.strip(), enabled)
    if record is None:
        raise NotFoundError(f"Phone {phone} is not linked")
    _LOGGER.info("Notifications for %s %s", phone, "resumed" if enabled else "paused")
    return record
