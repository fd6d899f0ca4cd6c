from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.services.clock import Clock
from app.services.ledger import ReminderLedger
from app.services.patients import PatientDirectory
from app.types.reminder_contract import DeliveryResult
from db.models import Base, Medication, Patient, ReminderInstance

# Monday 2025-10-20 08:00 in São Paulo (UTC-3)
MONDAY_8AM = datetime(2025, 10, 20, 11, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    def __init__(self, at: datetime = MONDAY_8AM):
        self.at = at
        super().__init__("America/Sao_Paulo", now_fn=lambda: self.at)

    def advance(self, **kwargs) -> None:
        self.at = self.at + timedelta(**kwargs)


class FakeGateway:
    """Records outbound messages; numbers in ``failing`` get a failed result."""

    configured = True

    def __init__(self, failing: set[str] | None = None):
        self.sent: list[tuple[str, str]] = []
        self.failing = failing or set()

    async def send(self, to: str, body: str) -> DeliveryResult:
        self.sent.append((to, body))
        if to in self.failing:
            return DeliveryResult(success=False, error="recipient rejected")
        return DeliveryResult(success=True, message_id=f"msg-{len(self.sent)}", status="queued")


@pytest_asyncio.fixture
async def sessions():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def ledger(sessions, clock) -> ReminderLedger:
    return ReminderLedger(sessions, clock)


@pytest.fixture
def directory(sessions) -> PatientDirectory:
    return PatientDirectory(sessions)


async def add_patient(sessions, name: str = "Dona Maria", whatsapp: str = "11987654321") -> Patient:
    patient = Patient(patient_id=str(uuid4()), name=name, whatsapp=whatsapp)
    async with sessions() as s:
        s.add(patient)
        await s.commit()
    return patient


async def add_medication(
    sessions,
    patient_id: str,
    name: str = "Losartana",
    dosage: str = "50mg",
    days: list[int] | None = None,
    times: list[str] | None = None,
    active: bool = True,
) -> Medication:
    med = Medication(
        medication_id=str(uuid4()),
        patient_id=patient_id,
        name=name,
        dosage=dosage,
        active=active,
        days_of_week=[1] if days is None else days,
        times=["08:00"] if times is None else times,
    )
    async with sessions() as s:
        s.add(med)
        await s.commit()
    return med


async def all_reminders(sessions) -> list[ReminderInstance]:
    async with sessions() as s:
        res = await s.execute(select(ReminderInstance).order_by(ReminderInstance.created_at))
        return list(res.scalars())


async def reload(sessions, model, key):
    async with sessions() as s:
        return await s.get(model, key)
