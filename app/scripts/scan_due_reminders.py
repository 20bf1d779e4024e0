"""Periodic scanner to send due reminders.
Run via Railway schedule (or cron) every minute:
    python -m app.scripts.scan_due_reminders

Use either this or Celery beat, not both: the in-process lock only guards
overlapping ticks within one process.
"""

from __future__ import annotations

import asyncio
import logging

from app.services.dispatcher import dispatcher
from config import settings
import db

_LOGGER = logging.getLogger("app.scripts.scan_due_reminders")


async def main() -> None:
    try:
        report = await dispatcher.run_tick()
    finally:
        await db.dispose_engine()
    _LOGGER.info(
        "[CRON] scan_due_reminders: due=%d sent=%d failed=%d scheduled=%d",
        report.due, report.sent, report.failed, report.scheduled,
    )


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=settings.LOG_LEVEL)
    _LOGGER.info("[CRON] scan_due_reminders: job started")
    try:
        asyncio.run(main())
        _LOGGER.info("[CRON] scan_due_reminders: job completed successfully")
    except Exception as e:
        _LOGGER.error("[CRON] scan_due_reminders: job failed: %s", e)
        raise SystemExit(1)
