import pytest

from app.services.dispatcher import Dispatcher
from app.services.reply_interpreter import HELP_MESSAGE, ReplyInterpreter
from db.models import Medication, ReminderInstance

from conftest import add_medication, add_patient, all_reminders, reload

SENDER = "whatsapp:+5511987654321"


@pytest.fixture
def interpreter(clock, directory, ledger, gateway) -> ReplyInterpreter:
    return ReplyInterpreter(clock, directory, ledger, gateway, postpone_minutes=10)


async def _pending(sessions, ledger):
    patient = await add_patient(sessions)
    med = await add_medication(sessions, patient.patient_id)
    instance = await ledger.create(med, patient, "08:00")
    return patient, med, instance


@pytest.mark.asyncio
async def test_taken_reply_transitions_and_confirms_once(sessions, ledger, gateway, interpreter):
    patient, _, instance = await _pending(sessions, ledger)

    outcome = await interpreter.handle_reply(SENDER, " 1 ")

    assert outcome.action == "taken"
    assert outcome.reminder_id == instance.reminder_id
    stored = await reload(sessions, ReminderInstance, instance.reminder_id)
    assert stored.status == "taken"
    assert stored.response_code == "1"
    assert len(gateway.sent) == 1
    assert gateway.sent[0][0] == patient.whatsapp
    assert "tomou o medicamento" in gateway.sent[0][1]


@pytest.mark.asyncio
async def test_postpone_reply_spawns_one_scheduled_instance(sessions, ledger, gateway, interpreter):
    _, _, instance = await _pending(sessions, ledger)

    outcome = await interpreter.handle_reply(SENDER, "3")

    reminders = await all_reminders(sessions)
    assert len(reminders) == 2
    original = await reload(sessions, ReminderInstance, instance.reminder_id)
    postponed = await reload(sessions, ReminderInstance, outcome.postponed_reminder_id)
    assert original.status == "postponed"
    assert postponed.status == "scheduled_postponed"
    assert postponed.scheduled_time == "08:00"
    assert postponed.postponed_by_minutes == 10
    assert len(gateway.sent) == 1
    assert "10 minutos" in gateway.sent[0][1]


@pytest.mark.asyncio
async def test_reply_without_pending_still_confirms(sessions, ledger, gateway, interpreter):
    await add_patient(sessions)

    outcome = await interpreter.handle_reply(SENDER, "1")

    assert outcome.action == "taken"
    assert outcome.reminder_id is None
    assert await all_reminders(sessions) == []
    assert len(gateway.sent) == 1


@pytest.mark.asyncio
async def test_reply_goes_to_most_recent_pending(sessions, ledger, clock, interpreter):
    patient, med, older = await _pending(sessions, ledger)
    clock.advance(hours=12)
    newer = await ledger.create(med, patient, "20:00")

    await interpreter.handle_reply(SENDER, "2")

    assert (await reload(sessions, ReminderInstance, newer.reminder_id)).status == "not_taken"
    assert (await reload(sessions, ReminderInstance, older.reminder_id)).status == "sent"


@pytest.mark.asyncio
async def test_opt_out_deactivates_and_is_idempotent(sessions, ledger, gateway, interpreter):
    patient, med, instance = await _pending(sessions, ledger)
    second = await add_medication(sessions, patient.patient_id, name="Metformina")

    outcome = await interpreter.handle_reply(SENDER, "SAIR")

    assert outcome.action == "opt_out"
    assert outcome.deactivated == 2
    for med_id in (med.medication_id, second.medication_id):
        stored = await reload(sessions, Medication, med_id)
        assert stored.active is False
        assert stored.deactivated_at is not None
    # pending reminder untouched
    assert (await reload(sessions, ReminderInstance, instance.reminder_id)).status == "sent"
    assert len(gateway.sent) == 1
    assert "interrompidos" in gateway.sent[0][1]

    again = await interpreter.handle_reply(SENDER, "sair")

    assert again.deactivated == 0
    assert len(gateway.sent) == 2


@pytest.mark.asyncio
async def test_unrecognized_text_sends_help_without_touching_ledger(sessions, ledger, gateway, interpreter):
    _, _, instance = await _pending(sessions, ledger)

    outcome = await interpreter.handle_reply(SENDER, "xyz")

    assert outcome.action == "help"
    assert (await reload(sessions, ReminderInstance, instance.reminder_id)).status == "sent"
    assert len(await all_reminders(sessions)) == 1
    assert gateway.sent == [("11987654321", HELP_MESSAGE)]


@pytest.mark.asyncio
async def test_unknown_number_is_not_found_and_silent(sessions, gateway, interpreter):
    await add_patient(sessions)

    outcome = await interpreter.handle_reply("whatsapp:+5521900000000", "1")

    assert not outcome.patient_found
    assert outcome.action == "not_found"
    assert gateway.sent == []


@pytest.mark.asyncio
async def test_end_to_end_not_taken(sessions, clock, directory, ledger, gateway, interpreter):
    patient = await add_patient(sessions)
    await add_medication(sessions, patient.patient_id, days=[1], times=["08:00"])

    await Dispatcher(clock, directory, ledger, gateway).run_tick()
    [reminder] = await all_reminders(sessions)
    assert reminder.status == "sent"
    assert len(gateway.sent) == 1

    clock.advance(minutes=3)
    await interpreter.handle_reply(SENDER, "2")

    reminders = await all_reminders(sessions)
    assert len(reminders) == 1
    assert reminders[0].status == "not_taken"
    assert len(gateway.sent) == 2
