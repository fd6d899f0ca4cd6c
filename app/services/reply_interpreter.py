from __future__ import annotations

import logging

from app.services.clock import Clock
from app.services.ledger import InvalidTransitionError, ReminderLedger
from app.services.patients import PatientDirectory
from app.types.reminder_contract import POSTPONED, REPLY_STATUSES, ReplyOutcome
from app.utils.whatsapp import WhatsAppGateway, normalize_sender
from db.models import Patient

_LOGGER = logging.getLogger(__name__)

OPT_OUT_KEYWORD = "sair"

HELP_MESSAGE = (
    "Resposta não reconhecida. Responda:\n"
    "1 - Tomei\n"
    "2 - Não tomei\n"
    "3 - Adiar\n"
    'Ou envie "SAIR" para parar.'
)


def confirmation_message(code: str, patient: Patient, delay_minutes: int) -> str:
    if code == "1":
        return f"Perfeito, {patient.name}! ✔ Registramos que você tomou o medicamento."
    if code == "2":
        return "Entendido. Foi registrado que o medicamento não foi tomado."
    return f"Ok, vamos lembrar de novo em {delay_minutes} minutos. Responda 1 quando tomar :)"


def opt_out_message(patient: Patient) -> str:
    return f"{patient.name}, os lembretes foram interrompidos conforme solicitado."


class ReplyInterpreter:
    """Turns an inbound WhatsApp reply into a ledger transition plus an answer.

    Ledger writes always finish before the answer is sent, so a failed
    confirmation never undoes a recorded response.
    """

    def __init__(
        self,
        clock: Clock,
        directory: PatientDirectory,
        ledger: ReminderLedger,
        gateway: WhatsAppGateway,
        postpone_minutes: int = 10,
        country_code: str = "55",
    ):
        self.clock = clock
        self.directory = directory
        self.ledger = ledger
        self.gateway = gateway
        self.postpone_minutes = postpone_minutes
        self.country_code = country_code

    async def handle_reply(self, raw_from: str | None, raw_body: str | None) -> ReplyOutcome:
        phone = normalize_sender(raw_from, self.country_code)
        text = (raw_body or "").strip()

        patient = await self.directory.find_by_phone(phone)
        if patient is None:
            _LOGGER.info("Reply from unknown number %s", phone)
            return ReplyOutcome(patient_found=False, action="not_found")

        if text in REPLY_STATUSES:
            outcome = await self._record_response(patient, text)
            body = confirmation_message(text, patient, self.postpone_minutes)
        elif text.lower() == OPT_OUT_KEYWORD:
            deactivated = await self.directory.deactivate_medications(patient.patient_id, self.clock.now())
            _LOGGER.info("Patient %s opted out; %d medication(s) deactivated", patient.patient_id, deactivated)
            outcome = ReplyOutcome(action="opt_out", deactivated=deactivated)
            body = opt_out_message(patient)
        else:
            outcome = ReplyOutcome(action="help")
            body = HELP_MESSAGE

        result = await self.gateway.send(patient.whatsapp, body)
        outcome.confirmation_sent = result.success
        if not result.success:
            _LOGGER.error("Answer to patient %s not delivered: %s", patient.patient_id, result.error)
        return outcome

    async def _record_response(self, patient: Patient, code: str) -> ReplyOutcome:
        new_status = REPLY_STATUSES[code]
        outcome = ReplyOutcome(action=new_status)

        pending = await self.ledger.latest_pending(patient.patient_id)
        if pending is None:
            _LOGGER.info("Reply %s from patient %s matched no pending reminder", code, patient.patient_id)
            return outcome

        try:
            await self.ledger.transition(pending.reminder_id, new_status, code)
        except InvalidTransitionError as exc:
            # lost a race with a delivery outcome update
            _LOGGER.warning("%s", exc)
            return outcome
        outcome.reminder_id = pending.reminder_id

        if new_status == POSTPONED:
            postponed = await self.ledger.create_postponed(pending, self.postpone_minutes)
            outcome.postponed_reminder_id = postponed.reminder_id
        return outcome
