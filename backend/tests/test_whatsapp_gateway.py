from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from twilio.base.exceptions import TwilioRestException

from lead_console.whatsapp import (
    GatewaySendError,
    StubWhatsAppGateway,
    TwilioWhatsAppGateway,
    ensure_whatsapp_prefix,
)


def test_ensure_whatsapp_prefix_is_idempotent() -> None:
    assert ensure_whatsapp_prefix("+31612345678") == "whatsapp:+31612345678"
    assert ensure_whatsapp_prefix("whatsapp:+31612345678") == "whatsapp:+31612345678"
    assert ensure_whatsapp_prefix(" WhatsApp:+31612345678 ") == "whatsapp:+31612345678"
    with pytest.raises(ValueError):
        ensure_whatsapp_prefix("")


def test_twilio_gateway_normalizes_both_addresses_and_passes_status_callback() -> None:
    sdk = MagicMock()
    sdk.messages.create.return_value = MagicMock(sid="SM123", status="queued")
    gateway = TwilioWhatsAppGateway(
        account_sid="",
        auth_token="",
        from_number="+14155238886",
        status_callback_url="https://leads.example.com/api/v1/console/webhooks/twilio/status",
        client=sdk,
    )

    result = gateway.send_message(to="+31612345678", body="Hallo!")

    assert result.provider_message_id == "SM123"
    assert result.status == "queued"
    sdk.messages.create.assert_called_once_with(
        from_="whatsapp:+14155238886",
        to="whatsapp:+31612345678",
        body="Hallo!",
        status_callback="https://leads.example.com/api/v1/console/webhooks/twilio/status",
    )


def test_twilio_gateway_omits_status_callback_when_unset() -> None:
    sdk = MagicMock()
    sdk.messages.create.return_value = MagicMock(sid="SM124", status="queued")
    gateway = TwilioWhatsAppGateway(account_sid="", auth_token="", from_number="whatsapp:+14155238886", client=sdk)

    gateway.send_message(to="whatsapp:+31612345678", body="Hallo!")

    assert "status_callback" not in sdk.messages.create.call_args.kwargs


def test_twilio_rest_errors_become_gateway_errors() -> None:
    sdk = MagicMock()
    sdk.messages.create.side_effect = TwilioRestException(
        status=400,
        uri="/Accounts/AC0001/Messages.json",
        msg="The 'To' number is not a valid phone number.",
        code=21211,
    )
    gateway = TwilioWhatsAppGateway(account_sid="", auth_token="", from_number="+14155238886", client=sdk)

    with pytest.raises(GatewaySendError) as excinfo:
        gateway.send_message(to="+31600000000", body="Hallo!")

    assert excinfo.value.error_code == "twilio_21211"


def test_twilio_gateway_requires_credentials_without_injected_client() -> None:
    with pytest.raises(ValueError, match="account_sid"):
        TwilioWhatsAppGateway(account_sid="", auth_token="token", from_number="+14155238886")


def test_stub_gateway_records_sends_and_can_fail() -> None:
    gateway = StubWhatsAppGateway(from_number="+14155238886")

    result = gateway.send_message(to="+31612345678", body="Hallo!")

    assert result.provider_message_id.startswith("SMstub")
    assert gateway.sent[0].to == "whatsapp:+31612345678"
    assert gateway.sent[0].from_address == "whatsapp:+14155238886"
    with pytest.raises(GatewaySendError):
        gateway.send_message(to="whatsapp:fail", body="Hallo!")
