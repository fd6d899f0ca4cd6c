from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class Caregiver(Base):
    __tablename__ = "caregivers"

    caregiver_id: Mapped[str] = mapped_column(primary_key=True)
    name:         Mapped[str]
    phone:        Mapped[str | None]
    email:        Mapped[str | None]
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Patient(Base):
    __tablename__ = "patients"

    patient_id:   Mapped[str] = mapped_column(primary_key=True)
    caregiver_id: Mapped[str | None] = mapped_column(ForeignKey("caregivers.caregiver_id"))
    name:         Mapped[str]
    # digits only, country code stripped
    whatsapp:     Mapped[str] = mapped_column(index=True)
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Medication(Base):
    __tablename__ = "medications"

    medication_id:  Mapped[str] = mapped_column(primary_key=True)
    patient_id:     Mapped[str] = mapped_column(ForeignKey("patients.patient_id"))
    name:           Mapped[str]
    dosage:         Mapped[str]
    active:         Mapped[bool] = mapped_column(default=True)
    days_of_week:   Mapped[list[int]] = mapped_column(JSON)
    times:          Mapped[list[str]] = mapped_column(JSON)
    created_at:     Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_medications_patient_active", "patient_id", "active"),
    )


class EmergencyContact(Base):
    __tablename__ = "emergency_contacts"

    contact_id:   Mapped[str] = mapped_column(primary_key=True)
    patient_id:   Mapped[str] = mapped_column(ForeignKey("patients.patient_id"))
    name:         Mapped[str]
    phone:        Mapped[str]
    relationship: Mapped[str | None]
    created_at:   Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ReminderInstance(Base):
    __tablename__ = "reminder_instances"

    reminder_id:          Mapped[str] = mapped_column(primary_key=True)
    medication_id:        Mapped[str] = mapped_column(ForeignKey("medications.medication_id"))
    patient_id:           Mapped[str] = mapped_column(ForeignKey("patients.patient_id"))
    created_at:           Mapped[datetime] = mapped_column(DateTime(timezone=True))
    status:               Mapped[str] = mapped_column(default="sent")
    attempts:             Mapped[int] = mapped_column(default=1)
    scheduled_time:       Mapped[str]
    gateway_message_id:   Mapped[str | None]
    delivery_status:      Mapped[str | None]
    response_code:        Mapped[str | None]
    responded_at:         Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    postponed_by_minutes: Mapped[int | None]
    due_at:               Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    error_detail:         Mapped[str | None]
    updated_at:           Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_reminder_instances_patient_status", "patient_id", "status", "created_at"),
        Index("ix_reminder_instances_status_due", "status", "due_at"),
    )
