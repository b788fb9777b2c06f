from __future__ import annotations

from twilio.request_validator import RequestValidator

from lead_console.config import Settings
from lead_console.webhook_security import verify_twilio_signature

URL = "https://leads.example.com/api/v1/console/webhooks/twilio/inbound"
FORM = {"From": "whatsapp:+31612345678", "Body": "Hallo", "MessageSid": "SM001"}


def _settings(mode: str, auth_token: str = "twilio-token-001") -> Settings:
    return Settings(whatsapp_webhook_signature_mode=mode, twilio_auth_token=auth_token)


def test_off_mode_skips_verification() -> None:
    result = verify_twilio_signature(settings=_settings("off", auth_token=""), url=URL, form_data=FORM, headers={})
    assert result.verified is True


def test_valid_signature_is_accepted_case_insensitively() -> None:
    signature = RequestValidator("twilio-token-001").compute_signature(URL, FORM)

    result = verify_twilio_signature(
        settings=_settings("enforce"),
        url=URL,
        form_data=FORM,
        headers={"x-twilio-signature": signature},
    )

    assert result.verified is True


def test_tampered_form_is_rejected() -> None:
    signature = RequestValidator("twilio-token-001").compute_signature(URL, FORM)

    result = verify_twilio_signature(
        settings=_settings("enforce"),
        url=URL,
        form_data={**FORM, "Body": "Iets anders"},
        headers={"X-Twilio-Signature": signature},
    )

    assert result.verified is False
    assert result.reason == "signature_mismatch"


def test_missing_signature_and_token_are_reported() -> None:
    missing_header = verify_twilio_signature(settings=_settings("log_only"), url=URL, form_data=FORM, headers={})
    missing_token = verify_twilio_signature(
        settings=_settings("enforce", auth_token=""),
        url=URL,
        form_data=FORM,
        headers={"X-Twilio-Signature": "abc"},
    )

    assert missing_header.reason == "signature_missing"
    assert missing_token.reason == "twilio_auth_token_missing"
