"""Patient, medication and contact records.

Simple reads and writes used by the dispatcher, the reply interpreter and
the registration endpoint. No state machine lives here.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Sequence
from uuid import uuid4

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.types.reminder_contract import RegistrationRequest, RegistrationResult
from app.utils.whatsapp import normalize_sender
from db.models import Caregiver, EmergencyContact, Medication, Patient

_LOGGER = logging.getLogger(__name__)


class PatientDirectory:
    def __init__(self, sessions: async_sessionmaker[AsyncSession], country_code: str = "55"):
        self._sessions = sessions
        self._country_code = country_code

    async def get_patient(self, patient_id: str) -> Patient | None:
        async with self._sessions() as s:
            return await s.get(Patient, patient_id)

    async def find_by_phone(self, normalized_phone: str) -> Patient | None:
        if not normalized_phone:
            return None
        async with self._sessions() as s:
            res = await s.execute(
                select(Patient)
                .where(Patient.whatsapp == normalized_phone)
                .order_by(Patient.created_at)
                .limit(1)
            )
            return res.scalar_one_or_none()

    async def active_medications(self, patient_id: str | None = None) -> Sequence[Medication]:
        async with self._sessions() as s:
            stmt = select(Medication).where(Medication.active.is_(True))
            if patient_id:
                stmt = stmt.where(Medication.patient_id == patient_id)
            res = await s.execute(stmt)
            return list(res.scalars())

    async def get_medication(self, medication_id: str) -> Medication | None:
        async with self._sessions() as s:
            return await s.get(Medication, medication_id)

    async def deactivate_medications(self, patient_id: str, at: datetime) -> int:
        """Switch off every active medication of the patient in one commit.

        Returns how many rows changed; already inactive ones are left alone.
        """
        async with self._sessions() as s:
            res = await s.execute(
                update(Medication)
                .where(Medication.patient_id == patient_id, Medication.active.is_(True))
                .values(active=False, deactivated_at=at)
            )
            await s.commit()
            return res.rowcount or 0

    async def register(self, request: RegistrationRequest) -> RegistrationResult:
        """Store caregiver, patient, medications and contacts together."""
        caregiver = Caregiver(
            caregiver_id=str(uuid4()),
            name=request.caregiver.name,
            phone=request.caregiver.phone,
            email=request.caregiver.email,
        )
        patient = Patient(
            patient_id=str(uuid4()),
            caregiver_id=caregiver.caregiver_id,
            name=request.patient.name,
            whatsapp=normalize_sender(request.patient.whatsapp, self._country_code),
        )
        medications = [
            Medication(
                medication_id=str(uuid4()),
                patient_id=patient.patient_id,
                name=med.name,
                dosage=med.dosage,
                active=True,
                days_of_week=med.days_of_week,
                times=med.times,
            )
            for med in request.medications
        ]
        contacts = [
            EmergencyContact(
                contact_id=str(uuid4()),
                patient_id=patient.patient_id,
                name=c.name,
                phone=c.phone,
                relationship=c.relationship,
            )
            for c in request.contacts
        ]
        async with self._sessions() as s:
            s.add(caregiver)
            await s.flush()
            s.add(patient)
            await s.flush()
            s.add_all([*medications, *contacts])
            await s.commit()

        _LOGGER.info(
            "Registered patient %s with %d medication(s)", patient.patient_id, len(medications)
        )
        return RegistrationResult(
            caregiver_id=caregiver.caregiver_id,
            patient_id=patient.patient_id,
            medication_ids=[m.medication_id for m in medications],
            contact_ids=[c.contact_id for c in contacts],
        )
