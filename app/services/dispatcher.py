"""One scheduling tick: find due medications, open ledger entries, deliver.

All reminder instances for a tick are committed in a single batch before the
first message goes out, so a crash mid-delivery leaves ``sent`` rows without a
gateway message id instead of losing them.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.clock import Clock
from app.services.ledger import ReminderLedger
from app.services.patients import PatientDirectory
from app.services.schedule import is_due
from app.types.reminder_contract import TickSummary
from app.utils.whatsapp import WhatsAppGateway
from config import Settings
from db.models import Medication, Patient, ReminderInstance

_LOGGER = logging.getLogger(__name__)


def reminder_message(patient_name: str, medication_name: str, dosage: str, delay_minutes: int = 10) -> str:
    return (
        f"Olá, {patient_name} 👋 Hora do remédio {medication_name} ({dosage}). "
        f"Responda: 1) ✅ Tomei 2) ❌ Não tomei 3) ⏳ Adiar {delay_minutes} min."
    )


class Dispatcher:
    def __init__(
        self,
        clock: Clock,
        directory: PatientDirectory,
        ledger: ReminderLedger,
        gateway: WhatsAppGateway,
        postpone_minutes: int = 10,
    ):
        self.clock = clock
        self.directory = directory
        self.ledger = ledger
        self.gateway = gateway
        self.postpone_minutes = postpone_minutes

    @classmethod
    def from_settings(cls, settings: Settings, sessions: async_sessionmaker[AsyncSession]) -> "Dispatcher":
        clock = Clock(settings.DEFAULT_TIMEZONE)
        return cls(
            clock=clock,
            directory=PatientDirectory(sessions, settings.DEFAULT_COUNTRY_CODE),
            ledger=ReminderLedger(sessions, clock),
            gateway=WhatsAppGateway(settings.messaging()),
            postpone_minutes=settings.POSTPONE_DELAY_MINUTES,
        )

    async def run_tick(self) -> TickSummary:
        summary = TickSummary()
        current_day, current_time = self.clock.now_day_and_time()
        _LOGGER.info("Checking medication reminders for day=%d time=%s", current_day, current_time)

        medications = await self.directory.active_medications()
        summary.checked = len(medications)

        due: list[tuple[Medication, Patient, str]] = []
        for med in medications:
            try:
                if not is_due(med, current_day, current_time):
                    continue
                patient = await self.directory.get_patient(med.patient_id)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Failed to evaluate medication %s", med.medication_id)
                summary.failed += 1
                continue
            if patient is None:
                _LOGGER.warning(
                    "Patient %s for medication %s not found; skipping", med.patient_id, med.medication_id
                )
                summary.skipped += 1
                continue
            due.append((med, patient, current_time))
        summary.due = len(due)

        # Storage failures here propagate to the trigger.
        created = await self.ledger.create_batch(due)
        deliveries = [(inst, patient, med) for inst, (med, patient, _) in zip(created, due)]

        deliveries.extend(await self._refire_postponed(summary))

        for instance, patient, med in deliveries:
            try:
                delivered = await self._deliver(instance, patient, med)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Failed to deliver reminder %s", instance.reminder_id)
                delivered = False
            if delivered:
                summary.delivered += 1
            else:
                summary.failed += 1

        if deliveries:
            _LOGGER.info("Tick done: %s", summary.model_dump())
        return summary

    async def _refire_postponed(self, summary: TickSummary) -> list[tuple[ReminderInstance, Patient, Medication]]:
        claimed = await self.ledger.claim_due_postponed(self.clock.now())
        summary.refired = len(claimed)
        ready = []
        for instance in claimed:
            try:
                patient = await self.directory.get_patient(instance.patient_id)
                med = await self.directory.get_medication(instance.medication_id)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.exception("Failed to look up postponed reminder %s", instance.reminder_id)
                detail = f"lookup failed: {exc}"
            else:
                if patient is not None and med is not None and med.active:
                    ready.append((instance, patient, med))
                    continue
                _LOGGER.warning("Postponed reminder %s lost its patient or medication", instance.reminder_id)
                detail = "patient or medication no longer available"
            summary.failed += 1
            try:
                await self.ledger.mark_error(instance.reminder_id, detail)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Failed to mark postponed reminder %s as error", instance.reminder_id)
        return ready

    async def _deliver(self, instance: ReminderInstance, patient: Patient, med: Medication) -> bool:
        body = reminder_message(patient.name, med.name, med.dosage, self.postpone_minutes)
        result = await self.gateway.send(patient.whatsapp, body)
        await self.ledger.record_delivery_outcome(instance.reminder_id, result)
        if not result.success:
            _LOGGER.error("Reminder %s not delivered: %s", instance.reminder_id, result.error)
        return result.success
