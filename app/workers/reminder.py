"""Celery task that runs one dispatch tick."""

from __future__ import annotations

import asyncio
import logging

import redis
from redis.exceptions import LockError
from sqlalchemy.exc import SQLAlchemyError

from app.celery_app import celery_app
from app.services import dispatcher
from config import settings
import db

_LOGGER = logging.getLogger(__name__)


def _tick_lock():
    """Cluster-wide lock so only one worker runs a tick at any moment."""
    client = redis.Redis.from_url(settings.REDIS_URL)
    return client.lock(
        settings.DISPATCH_LOCK_NAME,
        timeout=settings.DISPATCH_LOCK_TIMEOUT_SECONDS,
        blocking=False,
    )


async def _tick_and_dispose() -> None:
    # Each asyncio.run() gets a fresh loop; pooled connections must not leak across.
    try:
        await dispatcher.run_dispatch_tick()
    finally:
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.dispatch_due", bind=True)
def dispatch_due(self):  # noqa: D401
    """Deliver due reminders unless another worker is already mid-tick."""
    lock = _tick_lock()
    if not lock.acquire():
        _LOGGER.info("Dispatch tick skipped: another tick holds the lock")
        return

    try:
        asyncio.run(_tick_and_dispose())
    except SQLAlchemyError as exc:
        # Nothing to retry here: the next beat tick picks up what is still pending.
        _LOGGER.error("Dispatch tick aborted by store error: %s", exc)
    finally:
        try:
            lock.release()
        except LockError:
            _LOGGER.warning("Dispatch lock expired before the tick finished")
