from __future__ import annotations

from collections import Counter
from datetime import date

from app.services.clock import Clock
from app.services.ledger import ReminderLedger
from app.types.reminder_contract import (
    ERROR,
    NOT_TAKEN,
    POSTPONED,
    SENT,
    TAKEN,
    DailyReport,
    DailyStatistics,
)


async def daily_report(ledger: ReminderLedger, clock: Clock, patient_id: str, day: date) -> DailyReport:
    """Tally the patient's reminders created on ``day`` (service timezone)."""
    start, end = clock.day_bounds(day)
    counts = Counter(r.status for r in await ledger.between(patient_id, start, end))

    stats = DailyStatistics(
        taken=counts[TAKEN],
        not_taken=counts[NOT_TAKEN],
        postponed=counts[POSTPONED],
        no_response=counts[SENT],
        errors=counts[ERROR],
    )
    stats.total = stats.taken + stats.not_taken + stats.postponed + stats.no_response
    return DailyReport(
        date=day.isoformat(),
        patient_id=patient_id,
        statistics=stats,
        generated_at=clock.now(),
    )
