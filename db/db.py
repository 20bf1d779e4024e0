"""
Async DB helpers for reminders and phone verification.
Uses SQLAlchemy 2.0 + asyncpg driver – no raw SQL strings in app code.
Tests point DATABASE_URL at sqlite+aiosqlite instead.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator
from uuid import uuid4

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import (
    create_async_engine, async_sessionmaker, AsyncSession
)
from sqlalchemy.pool import NullPool

from app.types.reminder_contract import ReminderCreate, ReminderStatus
from db.models import Base, PhoneNumber, Reminder, utcnow

# ──────────────────────────────────────────────────────────────────────
# 1. Lazy engine / session factory
# ──────────────────────────────────────────────────────────────────────
_engine = None
_session_maker: async_sessionmaker[AsyncSession] | None = None

def _build_url() -> str:
    url = os.getenv("DATABASE_URL") or os.getenv("DATABASE_PUBLIC_URL")
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if "+asyncpg" not in url and not url.startswith("sqlite"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1).replace(
            "postgresql://", "postgresql+asyncpg://", 1
        )
    return url

def get_engine():
    global _engine
    if _engine is None:
        url = _build_url()
        if url.startswith("sqlite"):
            # aiosqlite connections must not outlive the event loop that made them
            _engine = create_async_engine(url, poolclass=NullPool)
        else:
            _engine = create_async_engine(url, pool_size=5, max_overflow=5)
    return _engine

def get_session() -> AsyncGenerator[AsyncSession, None]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(get_engine(), expire_on_commit=False)
    async def _session_scope():
        async with _session_maker() as session:
            yield session
    return _session_scope()


# ──────────────────────────────────────────────────────────────────────
# 2. DDL helper (tests / local dev; production uses Alembic)
# ──────────────────────────────────────────────────────────────────────
async def create_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_all():
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ──────────────────────────────────────────────────────────────────────
# 3. Reminder store
# ──────────────────────────────────────────────────────────────────────

# 3.1 Insert reminder --------------------------------------------------
async def insert_reminder(data: ReminderCreate) -> str:
    rid = str(uuid4())
    rule = data.recurrence_rule
    reminder = Reminder(
        reminder_id=rid,
        user_id=data.user_id,
        phone_id=data.phone_id,
        body=data.body,
        scheduled_at=data.scheduled_at,
        timezone=data.timezone,
        recurring=data.recurring,
        recurrence_rule=rule.model_dump(mode="json") if rule else None,
        status=ReminderStatus.PENDING.value,
    )
    async for s in get_session():
        s.add(reminder)
        await s.commit()
    return rid


# 3.2 Due query + lease claim -----------------------------------------
def _unleased(now: datetime, lease: timedelta):
    return or_(Reminder.claimed_at.is_(None), Reminder.claimed_at <= now - lease)


async def fetch_due_reminders(
    now: datetime, limit: int = 100, lease: timedelta = timedelta(minutes=5)
) -> list[Reminder]:
    """Pending reminders with ``scheduled_at <= now`` and no live claim.

    Rows whose phone has notifications paused stay pending and are left out;
    rows whose phone is gone are still returned so they can be failed.
    """
    async for s in get_session():
        stmt = (
            select(Reminder)
            .outerjoin(PhoneNumber, PhoneNumber.phone_id == Reminder.phone_id)
            .where(
                Reminder.status == ReminderStatus.PENDING.value,
                Reminder.scheduled_at <= now,
                _unleased(now, lease),
                or_(PhoneNumber.phone_id.is_(None), PhoneNumber.notifications_enabled.is_(True)),
            )
            .order_by(Reminder.scheduled_at)
            .limit(limit)
        )
        res = await s.execute(stmt)
        due = list(res.scalars().all())
    return due


async def claim_reminder(rid: str, now: datetime, lease: timedelta = timedelta(minutes=5)) -> bool:
    """Take the dispatch lease on one pending row. False if someone else holds it."""
    async for s in get_session():
        res = await s.execute(
            update(Reminder)
            .where(
                Reminder.reminder_id == rid,
                Reminder.status == ReminderStatus.PENDING.value,
                _unleased(now, lease),
            )
            .values(claimed_at=now, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await s.commit()
        claimed = res.rowcount == 1
    return claimed


async def release_claim(rid: str) -> None:
    """Drop the lease on a still-pending row so the next tick can take it."""
    async for s in get_session():
        await s.execute(
            update(Reminder)
            .where(Reminder.reminder_id == rid, Reminder.status == ReminderStatus.PENDING.value)
            .values(claimed_at=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await s.commit()


# 3.3 Conditional transition ------------------------------------------
async def transition_reminder(
    rid: str,
    expected: ReminderStatus,
    new: ReminderStatus,
    fields: dict[str, Any] | None = None,
    next_fire_at: datetime | None = None,
) -> bool:
    """Move ``rid`` from ``expected`` to ``new`` only if it is still ``expected``.

    When ``next_fire_at`` is given the follow-up occurrence is inserted in the
    same transaction, so a series is never lost or duplicated by a crash.
    """
    async for s in get_session():
        res = await s.execute(
            update(Reminder)
            .where(Reminder.reminder_id == rid, Reminder.status == expected.value)
            .values(status=new.value, claimed_at=None, updated_at=utcnow(), **(fields or {}))
            .execution_options(synchronize_session=False)
        )
        moved = res.rowcount == 1
        if not moved:
            await s.rollback()
        elif next_fire_at is not None:
            current = (
                await s.execute(select(Reminder).where(Reminder.reminder_id == rid))
            ).scalar_one()
            s.add(Reminder(
                reminder_id=str(uuid4()),
                user_id=current.user_id,
                phone_id=current.phone_id,
                body=current.body,
                scheduled_at=next_fire_at,
                timezone=current.timezone,
                recurring=True,
                recurrence_rule=current.recurrence_rule,
                status=ReminderStatus.PENDING.value,
            ))
        if moved:
            await s.commit()
    return moved


# 3.4 Read / cancel helpers -------------------------------------------
async def get_reminder(rid: str) -> Reminder | None:
    async for s in get_session():
        reminder = await s.get(Reminder, rid)
    return reminder


async def list_reminders(
    status: ReminderStatus | None = None,
    phone_id: str | None = None,
    limit: int = 100,
) -> list[Reminder]:
    async for s in get_session():
        stmt = select(Reminder)
        if status:
            stmt = stmt.where(Reminder.status == status.value)
        if phone_id:
            stmt = stmt.where(Reminder.phone_id == phone_id)
        stmt = stmt.order_by(Reminder.scheduled_at.desc()).limit(limit)
        res = await s.execute(stmt)
        reminders = list(res.scalars().all())
    return reminders


async def update_pending_reminder(rid: str, data: ReminderCreate) -> bool:
    """Overwrite the editable fields of ``rid`` while it is still pending."""
    rule = data.recurrence_rule
    async for s in get_session():
        res = await s.execute(
            update(Reminder)
            .where(Reminder.reminder_id == rid, Reminder.status == ReminderStatus.PENDING.value)
            .values(
                body=data.body,
                scheduled_at=data.scheduled_at,
                timezone=data.timezone,
                recurring=data.recurring,
                recurrence_rule=rule.model_dump(mode="json") if rule else None,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await s.commit()
        updated = res.rowcount == 1
    return updated


async def delete_pending_reminder(rid: str) -> bool:
    async for s in get_session():
        res = await s.execute(
            delete(Reminder).where(
                Reminder.reminder_id == rid,
                Reminder.status == ReminderStatus.PENDING.value,
            )
        )
        await s.commit()
        deleted = res.rowcount == 1
    return deleted


# ──────────────────────────────────────────────────────────────────────
# 4. Phone-verification store
# ──────────────────────────────────────────────────────────────────────
async def get_phone(e164: str) -> PhoneNumber | None:
    async for s in get_session():
        res = await s.execute(select(PhoneNumber).where(PhoneNumber.e164_number == e164))
        phone = res.scalar_one_or_none()
    return phone


async def get_phone_by_id(phone_id: str) -> PhoneNumber | None:
    async for s in get_session():
        phone = await s.get(PhoneNumber, phone_id)
    return phone


async def upsert_phone(e164: str, **fields: Any) -> PhoneNumber:
    async for s in get_session():
        res = await s.execute(select(PhoneNumber).where(PhoneNumber.e164_number == e164))
        phone = res.scalar_one_or_none()
        if phone is None:
            phone = PhoneNumber(phone_id=str(uuid4()), e164_number=e164, verified=False)
            s.add(phone)
        for key, value in fields.items():
            setattr(phone, key, value)
        await s.commit()
    return phone


async def mark_phone_verified(e164: str, code: str) -> bool:
    """Flip ``verified`` only if ``code`` is still the outstanding one."""
    async for s in get_session():
        res = await s.execute(
            update(PhoneNumber)
            .where(
                PhoneNumber.e164_number == e164,
                PhoneNumber.verify_code == code,
                PhoneNumber.verified.is_(False),
            )
            .values(verified=True, verify_code=None, code_expires=None, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        await s.commit()
        verified = res.rowcount == 1
    return verified


async def set_phone_notifications(e164: str, enabled: bool) -> PhoneNumber | None:
    async for s in get_session():
        res = await s.execute(select(PhoneNumber).where(PhoneNumber.e164_number == e164))
        phone = res.scalar_one_or_none()
        if phone is not None:
            phone.notifications_enabled = enabled
            await s.commit()
    return phone


async def delete_phone(e164: str) -> bool:
    async for s in get_session():
        res = await s.execute(delete(PhoneNumber).where(PhoneNumber.e164_number == e164))
        await s.commit()
        deleted = res.rowcount == 1
    return deleted


async def dispose_engine():
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_maker = None
