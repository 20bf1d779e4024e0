"""Celery application instance shared across the backend.

Start a worker + beat with:
    celery -A app.celery_app worker -B -Q reminder -l info --concurrency=1
"""

from celery import Celery

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("reminders_backend", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True

celery_app.conf.task_routes = {
    "app.workers.reminder.dispatch_due": {"queue": "reminder"},
}

# Beat schedule: dispatch due reminders every minute. A tick that could not
# start before the next one is due is dropped rather than queued behind it.
celery_app.conf.beat_schedule = {
    "dispatch-due-reminders": {
        "task": "app.workers.reminder.dispatch_due",
        "schedule": float(settings.DISPATCH_INTERVAL_SECONDS),
        "options": {"expires": float(settings.DISPATCH_INTERVAL_SECONDS)},
    }
}

# --- Ensure tasks are registered ---
import app.workers.reminder
