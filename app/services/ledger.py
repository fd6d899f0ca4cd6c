"""Reminder ledger: storage and state machine for individual dose reminders.

Lifecycle::

    sent ──► taken | not_taken | postponed      (reply driven)
    sent ──► error                              (delivery failed)
    scheduled_postponed ──► sent                (re-fired by the dispatcher)

``taken``, ``not_taken``, ``postponed`` and ``error`` are terminal. A
``postponed`` reply spawns a fresh ``scheduled_postponed`` instance that keeps
the original scheduled time.

At most one instance per patient is treated as awaiting a reply: the most
recent ``sent`` one. That is a query rule, not a constraint.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Sequence
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.clock import Clock
from app.types.reminder_contract import (
    ERROR,
    NOT_TAKEN,
    POSTPONED,
    SCHEDULED_POSTPONED,
    SENT,
    TAKEN,
    DeliveryResult,
    ReminderStatus,
)
from db.models import Medication, Patient, ReminderInstance

_LOGGER = logging.getLogger(__name__)

TRANSITIONS: dict[str, frozenset[str]] = {
    SENT: frozenset({TAKEN, NOT_TAKEN, POSTPONED, ERROR}),
    SCHEDULED_POSTPONED: frozenset({SENT}),
}


class LedgerError(Exception):
    pass


class ReminderNotFoundError(LedgerError):
    pass


class InvalidTransitionError(LedgerError):
    def __init__(self, reminder_id: str, current: str, requested: str):
        super().__init__(f"reminder {reminder_id}: cannot go from '{current}' to '{requested}'")
        self.reminder_id = reminder_id
        self.current = current
        self.requested = requested


class ReminderLedger:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], clock: Clock):
        self._sessions = sessions
        self._clock = clock

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------
    def _new_instance(self, medication_id: str, patient_id: str, scheduled_time: str, now: datetime) -> ReminderInstance:
        return ReminderInstance(
            reminder_id=str(uuid4()),
            medication_id=medication_id,
            patient_id=patient_id,
            created_at=now,
            status=SENT,
            attempts=1,
            scheduled_time=scheduled_time,
        )

    async def create(self, medication: Medication, patient: Patient, scheduled_time: str) -> ReminderInstance:
        [instance] = await self.create_batch([(medication, patient, scheduled_time)])
        return instance

    async def create_batch(
        self, entries: Iterable[tuple[Medication, Patient, str]]
    ) -> list[ReminderInstance]:
        """Insert one ``sent`` instance per entry in a single commit."""
        now = self._clock.now()
        instances = [
            self._new_instance(med.medication_id, patient.patient_id, scheduled_time, now)
            for med, patient, scheduled_time in entries
        ]
        if not instances:
            return []
        async with self._sessions() as s:
            s.add_all(instances)
            await s.commit()
        return instances

    async def create_postponed(self, original: ReminderInstance, delay_minutes: int) -> ReminderInstance:
        now = self._clock.now()
        instance = ReminderInstance(
            reminder_id=str(uuid4()),
            medication_id=original.medication_id,
            patient_id=original.patient_id,
            created_at=now,
            status=SCHEDULED_POSTPONED,
            attempts=1,
            scheduled_time=original.scheduled_time,
            postponed_by_minutes=delay_minutes,
            due_at=now + timedelta(minutes=delay_minutes),
        )
        async with self._sessions() as s:
            s.add(instance)
            await s.commit()
        return instance

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------
    async def record_delivery_outcome(self, reminder_id: str, result: DeliveryResult) -> None:
        if not result.success:
            await self.mark_error(reminder_id, result.error or "delivery failed")
            return
        async with self._sessions() as s:
            await s.execute(
                update(ReminderInstance)
                .where(ReminderInstance.reminder_id == reminder_id)
                .values(gateway_message_id=result.message_id, delivery_status=result.status)
            )
            await s.commit()

    async def transition(self, reminder_id: str, new_status: ReminderStatus, response_code: str) -> ReminderInstance:
        """Apply a reply-driven transition out of ``sent``."""
        if new_status not in (TAKEN, NOT_TAKEN, POSTPONED):
            raise ValueError(f"'{new_status}' is not a reply status")
        async with self._sessions() as s:
            instance = await s.get(ReminderInstance, reminder_id)
            if instance is None:
                raise ReminderNotFoundError(reminder_id)
            if new_status not in TRANSITIONS.get(instance.status, frozenset()):
                raise InvalidTransitionError(reminder_id, instance.status, new_status)
            instance.status = new_status
            instance.response_code = response_code
            instance.responded_at = self._clock.now()
            await s.commit()
            return instance

    async def mark_error(self, reminder_id: str, detail: str) -> None:
        async with self._sessions() as s:
            await s.execute(
                update(ReminderInstance)
                .where(ReminderInstance.reminder_id == reminder_id)
                .values(status=ERROR, error_detail=detail)
            )
            await s.commit()

    async def claim_due_postponed(self, now: datetime | None = None) -> list[ReminderInstance]:
        """Flip every postponed instance whose delay has elapsed back to ``sent``.

        Only instances of active medications are claimed. ``created_at`` is
        restamped to ``now`` so the re-fired reminder is the one a following
        reply lands on.
        """
        now = now or self._clock.now()
        async with self._sessions() as s:
            res = await s.execute(
                select(ReminderInstance)
                .join(Medication, Medication.medication_id == ReminderInstance.medication_id)
                .where(
                    ReminderInstance.status == SCHEDULED_POSTPONED,
                    ReminderInstance.due_at <= now,
                    Medication.active.is_(True),
                )
                .order_by(ReminderInstance.due_at)
                .with_for_update(skip_locked=True, of=ReminderInstance)
            )
            due = list(res.scalars())
            for instance in due:
                instance.status = SENT
                instance.created_at = now
            await s.commit()
        if due:
            _LOGGER.info("Re-firing %d postponed reminder(s)", len(due))
        return due

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get(self, reminder_id: str) -> ReminderInstance | None:
        async with self._sessions() as s:
            return await s.get(ReminderInstance, reminder_id)

    async def latest_pending(self, patient_id: str) -> ReminderInstance | None:
        async with self._sessions() as s:
            res = await s.execute(
                select(ReminderInstance)
                .where(
                    ReminderInstance.patient_id == patient_id,
                    ReminderInstance.status == SENT,
                )
                .order_by(ReminderInstance.created_at.desc())
                .limit(1)
            )
            return res.scalar_one_or_none()

    async def between(self, patient_id: str, start: datetime, end: datetime) -> Sequence[ReminderInstance]:
        """Instances created in ``[start, end)``; read side of the daily report."""
        async with self._sessions() as s:
            res = await s.execute(
                select(ReminderInstance)
                .where(
                    ReminderInstance.patient_id == patient_id,
                    ReminderInstance.created_at >= start,
                    ReminderInstance.created_at < end,
                )
                .order_by(ReminderInstance.created_at)
            )
            return list(res.scalars())
