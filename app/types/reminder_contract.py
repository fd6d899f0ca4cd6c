"""Pydantic models shared by the scheduler, the webhook handlers and the
registration/report endpoints.

Kept free of FastAPI and database imports so workers and tests can use them
directly.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ReminderStatus = Literal[
    "sent",
    "taken",
    "not_taken",
    "postponed",
    "scheduled_postponed",
    "error",
]

SENT = "sent"
TAKEN = "taken"
NOT_TAKEN = "not_taken"
POSTPONED = "postponed"
SCHEDULED_POSTPONED = "scheduled_postponed"
ERROR = "error"

REPLY_STATUSES = {"1": TAKEN, "2": NOT_TAKEN, "3": POSTPONED}

ReplyAction = Literal["taken", "not_taken", "postponed", "opt_out", "help", "not_found"]

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$")


# ──────────────────────────────
# Gateway
# ──────────────────────────────


class DeliveryResult(BaseModel):
    """Outcome of a single outbound message."""

    success: bool
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None


# ──────────────────────────────
# Scheduler / interpreter results
# ──────────────────────────────


class TickSummary(BaseModel):
    checked: int = 0
    due: int = 0
    skipped: int = 0
    delivered: int = 0
    failed: int = 0
    refired: int = 0


class ReplyOutcome(BaseModel):
    """What the reply interpreter did with one inbound message."""

    patient_found: bool = True
    action: ReplyAction = "help"
    reminder_id: Optional[str] = None
    postponed_reminder_id: Optional[str] = None
    deactivated: int = 0
    confirmation_sent: bool = False


# ──────────────────────────────
# Registration
# ──────────────────────────────


class CaregiverIn(BaseModel):
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None


class PatientIn(BaseModel):
    name: str
    whatsapp: str


class MedicationIn(BaseModel):
    name: str
    dosage: str
    days_of_week: List[int] = Field(min_length=1)
    times: List[str] = Field(min_length=1)

    @field_validator("days_of_week")
    def _valid_days(cls, v: list[int]):  # noqa: N805
        if any(d < 0 or d > 6 for d in v):
            raise ValueError("days_of_week entries must be between 0 (Sunday) and 6")
        return sorted(set(v))

    @field_validator("times")
    def _valid_times(cls, v: list[str]):  # noqa: N805
        for t in v:
            if not _TIME_RE.match(t):
                raise ValueError(f"time '{t}' must be HH:MM")
        return [t[:5] for t in v]


class ContactIn(BaseModel):
    name: str
    phone: str
    relationship: Optional[str] = None


class RegistrationRequest(BaseModel):
    caregiver: CaregiverIn
    patient: PatientIn
    medications: List[MedicationIn]
    contacts: List[ContactIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _ensure_medication(self):  # noqa: N805
        if not self.medications:
            raise ValueError("at least one medication must be provided")
        return self


class RegistrationResult(BaseModel):
    caregiver_id: str
    patient_id: str
    medication_ids: List[str]
    contact_ids: List[str] = Field(default_factory=list)
    welcome_sent: bool = False


# ──────────────────────────────
# Reporting
# ──────────────────────────────


class DailyStatistics(BaseModel):
    total: int = 0
    taken: int = 0
    not_taken: int = 0
    postponed: int = 0
    no_response: int = 0
    errors: int = 0


class DailyReport(BaseModel):
    date: str
    patient_id: str
    statistics: DailyStatistics
    generated_at: datetime
