import logging
from datetime import date, datetime, timezone

import telnyx
from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import db
from app.services.clock import Clock
from app.services.ledger import ReminderLedger
from app.services.patients import PatientDirectory
from app.services.reply_interpreter import ReplyInterpreter
from app.services.reports import daily_report
from app.types.reminder_contract import DailyReport, RegistrationRequest, RegistrationResult
from app.utils.whatsapp import WhatsAppGateway
from config import settings

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
_LOGGER = logging.getLogger(__name__)

# Configure telnyx public key for webhook signature checks
if settings.TELNYX_PUBLIC_KEY:
    telnyx.public_key = settings.TELNYX_PUBLIC_KEY

app = FastAPI(title="Medication reminders")


def welcome_message(patient_name: str) -> str:
    return (
        f"Olá, {patient_name}! 👋\n\n"
        "Sou o Cuidador Digital. Vou lembrar você dos seus remédios por aqui. "
        "Quando chegar a hora, responda 1 (tomei), 2 (não tomei) ou 3 (adiar). "
        'Envie "SAIR" a qualquer momento para parar.'
    )


@app.on_event("shutdown")
async def shutdown_event():
    await db.dispose_engine()


# --------------------------------------------
# Dependencies
# --------------------------------------------

def get_sessions() -> async_sessionmaker[AsyncSession]:
    return db.get_session_maker()


def get_clock() -> Clock:
    return Clock(settings.DEFAULT_TIMEZONE)


def get_gateway() -> WhatsAppGateway:
    return WhatsAppGateway(settings.messaging())


def get_directory(sessions=Depends(get_sessions)) -> PatientDirectory:
    return PatientDirectory(sessions, settings.DEFAULT_COUNTRY_CODE)


def get_ledger(sessions=Depends(get_sessions), clock: Clock = Depends(get_clock)) -> ReminderLedger:
    return ReminderLedger(sessions, clock)


def get_reply_interpreter(
    clock: Clock = Depends(get_clock),
    directory: PatientDirectory = Depends(get_directory),
    ledger: ReminderLedger = Depends(get_ledger),
    gateway: WhatsAppGateway = Depends(get_gateway),
) -> ReplyInterpreter:
    return ReplyInterpreter(
        clock=clock,
        directory=directory,
        ledger=ledger,
        gateway=gateway,
        postpone_minutes=settings.POSTPONE_DELAY_MINUTES,
        country_code=settings.DEFAULT_COUNTRY_CODE,
    )


# --------------------------------------------
# Inbound replies
# --------------------------------------------

async def _reply(interpreter: ReplyInterpreter, sender: str, text: str) -> JSONResponse:
    try:
        outcome = await interpreter.handle_reply(sender, text)
    except Exception as e:  # noqa: BLE001
        _LOGGER.exception("[Webhook] Failed to handle reply from %s", sender)
        return JSONResponse({"success": False, "error": str(e)}, status_code=500)

    if not outcome.patient_found:
        return JSONResponse({"success": False, "error": "patient not found"})
    return JSONResponse({"success": True, "action": outcome.action})


@app.post("/v1/whatsapp/webhook")
async def whatsapp_webhook(request: Request, interpreter: ReplyInterpreter = Depends(get_reply_interpreter)):
    if request.headers.get("content-type", "").startswith("application/json"):
        form = await request.json()
    else:
        form = await request.form()

    sender = form.get("From")
    if not sender:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "From is required")
    return await _reply(interpreter, sender, form.get("Body") or "")


@app.post("/v1/sms/telnyx")
async def telnyx_webhook(request: Request, interpreter: ReplyInterpreter = Depends(get_reply_interpreter)):
    raw_body = await request.body()
    sig = request.headers.get("telnyx-signature-ed25519")
    ts = request.headers.get("telnyx-timestamp")

    try:
        if settings.TELNYX_PUBLIC_KEY:
            event = telnyx.Webhook.construct_event(raw_body.decode(), sig, ts)
            data = event.data
        else:  # dev mode: skip signature verification
            data = (await request.json())["data"]
    except Exception:  # noqa: BLE001
        raise HTTPException(400, "Bad signature")

    if hasattr(data, "to_dict"):
        data = data.to_dict()
    payload = data.get("payload") or {}

    if payload.get("type") == "ping":
        return PlainTextResponse("PONG")
    event_type = data.get("event_type")
    if event_type and event_type != "message.received":
        return PlainTextResponse("IGNORED")

    sender = payload.get("from") or {}
    from_num = sender.get("phone_number")
    if not from_num:
        return PlainTextResponse("IGNORED")
    return await _reply(interpreter, from_num, payload.get("text", ""))


# --------------------------------------------
# Registration & reports
# --------------------------------------------

@app.post("/v1/registrations", response_model=RegistrationResult)
async def register(
    request: RegistrationRequest,
    directory: PatientDirectory = Depends(get_directory),
    gateway: WhatsAppGateway = Depends(get_gateway),
):
    result = await directory.register(request)
    delivery = await gateway.send(request.patient.whatsapp, welcome_message(request.patient.name))
    result.welcome_sent = delivery.success
    return result


@app.get("/v1/reports/daily", response_model=DailyReport)
async def report(
    patient_id: str = Query(...),
    day: date = Query(..., alias="date"),
    directory: PatientDirectory = Depends(get_directory),
    ledger: ReminderLedger = Depends(get_ledger),
    clock: Clock = Depends(get_clock),
):
    if await directory.get_patient(patient_id) is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "patient not found")
    return await daily_report(ledger, clock, patient_id, day)


@app.get("/health")
async def health(gateway: WhatsAppGateway = Depends(get_gateway)):
    return {
        "status": "ok",
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "services": {
            "database": await db.ping(),
            "whatsapp": gateway.configured,
            "timezone": settings.DEFAULT_TIMEZONE,
        },
    }
