"""Celery task driving the per-minute dispatcher tick."""

from __future__ import annotations

import asyncio
import logging

from app.celery_app import celery_app
from app.services.dispatcher import Dispatcher
from app.types.reminder_contract import TickSummary
from config import settings
import db

_LOGGER = logging.getLogger(__name__)


async def run_tick_once() -> TickSummary:
    """Run one tick on a fresh engine; the engine is bound to this event loop."""
    try:
        dispatcher = Dispatcher.from_settings(settings, db.get_session_maker())
        return await dispatcher.run_tick()
    finally:
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.run_tick", bind=True)
def run_tick(self):  # noqa: D401
    """Check schedules and send every reminder due this minute.

    No retry: a re-run a minute later would match a different time slot.
    """
    try:
        summary = asyncio.run(run_tick_once())
    except Exception:  # noqa: BLE001
        _LOGGER.exception("Medication reminder tick failed")
        raise
    return summary.model_dump()
