"""Celery application instance shared across the backend.

Start a worker with the beat scheduler embedded:
    celery -A app.celery_app worker -B -Q reminder -l info --concurrency=1
"""

from celery import Celery

from config import settings

BROKER_URL = settings.REDIS_URL

celery_app = Celery("medication_reminders", broker=BROKER_URL, backend=BROKER_URL)

# Global task settings
celery_app.conf.task_acks_late = True
celery_app.conf.task_reject_on_worker_lost = True
celery_app.conf.timezone = settings.DEFAULT_TIMEZONE

celery_app.conf.task_routes = {
    "app.workers.reminder.run_tick": {"queue": "reminder"},
}

# Beat schedule: check medication schedules every minute
celery_app.conf.beat_schedule = {
    "dispatch-medication-reminders": {
        "task": "app.workers.reminder.run_tick",
        "schedule": settings.TICK_INTERVAL_SECONDS,
        # a tick that starts late would match the wrong minute
        "options": {"expires": settings.TICK_INTERVAL_SECONDS},
    }
}

# --- Ensure tasks are registered ---
import app.workers.reminder  # noqa: E402,F401
