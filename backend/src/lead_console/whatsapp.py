from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import count
from typing import Protocol

from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from .contacts import WHATSAPP_SCHEME, mask_whatsapp_address

logger = logging.getLogger(__name__)


class GatewaySendError(Exception):
    """Raised when the messaging gateway refuses or fails an outbound send."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


@dataclass(frozen=True)
class GatewaySendResult:
    provider_message_id: str
    status: str | None
    sent_at: datetime


def ensure_whatsapp_prefix(address: str) -> str:
    normalized = address.strip()
    if not normalized:
        raise ValueError("address must not be empty")
    if normalized.lower().startswith(WHATSAPP_SCHEME):
        return f"{WHATSAPP_SCHEME}{normalized[len(WHATSAPP_SCHEME):]}"
    return f"{WHATSAPP_SCHEME}{normalized}"


class WhatsAppGateway(Protocol):
    def send_message(self, *, to: str, body: str) -> GatewaySendResult: ...


@dataclass(frozen=True)
class RecordedSend:
    from_address: str
    to: str
    body: str
    provider_message_id: str


class StubWhatsAppGateway:
    """Records outbound sends; recipients containing ``fail`` are rejected."""

    def __init__(self, *, from_number: str = "whatsapp:+14155238886") -> None:
        self._from_address = ensure_whatsapp_prefix(from_number)
        self._counter = count(1)
        self.sent: list[RecordedSend] = []

    def send_message(self, *, to: str, body: str) -> GatewaySendResult:
        recipient = ensure_whatsapp_prefix(to)
        if "fail" in recipient.lower():
            raise GatewaySendError("stub_delivery_failed", "Stub gateway forced failure for recipient")
        sid = f"SMstub{next(self._counter):08d}"
        self.sent.append(RecordedSend(from_address=self._from_address, to=recipient, body=body, provider_message_id=sid))
        return GatewaySendResult(provider_message_id=sid, status="queued", sent_at=datetime.now(timezone.utc))


class TwilioWhatsAppGateway:
    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        status_callback_url: str = "",
        client: Client | None = None,
    ) -> None:
        if client is None:
            if not account_sid.strip():
                raise ValueError("account_sid must not be empty")
            if not auth_token.strip():
                raise ValueError("auth_token must not be empty")
        if not from_number.strip():
            raise ValueError("from_number must not be empty")
        self._client = client or Client(account_sid.strip(), auth_token.strip())
        self._from_address = ensure_whatsapp_prefix(from_number)
        self._status_callback_url = status_callback_url.strip()

    def send_message(self, *, to: str, body: str) -> GatewaySendResult:
        recipient = ensure_whatsapp_prefix(to)
        params = {"from_": self._from_address, "to": recipient, "body": body}
        if self._status_callback_url:
            params["status_callback"] = self._status_callback_url

        try:
            message = self._client.messages.create(**params)
        except TwilioRestException as exc:
            logger.warning(
                "twilio send to %s failed: status=%s code=%s",
                mask_whatsapp_address(recipient),
                exc.status,
                exc.code,
            )
            raise GatewaySendError(f"twilio_{exc.code or exc.status}", exc.msg or "Twilio request failed") from exc
        except TwilioException as exc:
            raise GatewaySendError("twilio_error", str(exc)) from exc

        if not message.sid:
            raise GatewaySendError("twilio_missing_sid", "Twilio response did not include a message SID")
        return GatewaySendResult(
            provider_message_id=message.sid,
            status=message.status,
            sent_at=datetime.now(timezone.utc),
        )
