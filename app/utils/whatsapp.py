from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable

import telnyx
from telnyx.error import TelnyxError

from app.types.reminder_contract import DeliveryResult
from config import MessagingConfig

_LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED = "WhatsApp gateway not configured"

_NON_DIGITS = re.compile(r"\D")


def normalize_sender(raw_from: str | None, country_code: str = "55") -> str:
    """``whatsapp:+5511987654321`` -> ``11987654321``."""
    number = (raw_from or "").strip()
    if ":" in number:
        number = number.split(":", 1)[1].strip()
    if number.startswith("+" + country_code):
        number = number[len(country_code) + 1:]
    return _NON_DIGITS.sub("", number)


def format_phone(phone: str, country_code: str = "55") -> str:
    """Stored number -> E.164. Local numbers (10 or 11 digits) get the
    default country code."""
    digits = _NON_DIGITS.sub("", phone)
    if len(digits) in (10, 11):
        return f"+{country_code}{digits}"
    return f"+{digits}"


def _telnyx_send(config: MessagingConfig, to: str, body: str) -> Any:
    params = {"from_": config.from_number, "to": to, "text": body}
    if config.messaging_profile_id:
        params["messaging_profile_id"] = config.messaging_profile_id
    return telnyx.Message.create(api_key=config.api_key, **params)


def _first_status(message: Any) -> str | None:
    recipients = message.get("to") or []
    if recipients:
        return recipients[0].get("status")
    return None


class WhatsAppGateway:
    """Outbound WhatsApp messages through Telnyx.

    ``send`` never raises for delivery problems: an unconfigured gateway or a
    Telnyx error comes back as a failed ``DeliveryResult``.
    """

    def __init__(self, config: MessagingConfig, send_fn: Callable[[MessagingConfig, str, str], Any] = _telnyx_send):
        self.config = config
        self._send_fn = send_fn

    @property
    def configured(self) -> bool:
        return self.config.configured

    async def send(self, to: str, body: str) -> DeliveryResult:
        if not self.configured:
            _LOGGER.error("[WhatsApp] %s; dropping message to %s", NOT_CONFIGURED, to)
            return DeliveryResult(success=False, error=NOT_CONFIGURED)

        recipient = format_phone(to, self.config.country_code)
        _LOGGER.info("[WhatsApp] Sending to %s: %s", recipient, body)
        try:
            message = await asyncio.to_thread(self._send_fn, self.config, recipient, body)
        except TelnyxError as exc:
            _LOGGER.error("[WhatsApp] Telnyx error for %s: %s", recipient, exc)
            return DeliveryResult(success=False, error=str(exc))

        _LOGGER.info("[WhatsApp] Message sent: %s", message.get("id"))
        return DeliveryResult(success=True, message_id=message.get("id"), status=_first_status(message))
