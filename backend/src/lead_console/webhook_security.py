from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from twilio.request_validator import RequestValidator

from .config import Settings


@dataclass(frozen=True)
class WebhookVerification:
    verified: bool
    reason: str | None = None


def _header_value(headers: Mapping[str, str], key: str) -> str | None:
    value = headers.get(key)
    if value is None:
        lowered_key = key.lower()
        for header_key, header_value in headers.items():
            if header_key.lower() == lowered_key:
                value = header_value
                break
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def verify_twilio_signature(
    *,
    settings: Settings,
    url: str,
    form_data: Mapping[str, str],
    headers: Mapping[str, str],
) -> WebhookVerification:
    """Check ``X-Twilio-Signature`` against the request URL and form params.

    The caller decides what to do with a failed verification based on
    ``WHATSAPP_WEBHOOK_SIGNATURE_MODE``; this function only reports.
    """
    if settings.whatsapp_webhook_signature_mode == "off":
        return WebhookVerification(verified=True)

    auth_token = settings.twilio_auth_token.strip()
    if not auth_token:
        return WebhookVerification(verified=False, reason="twilio_auth_token_missing")

    provided = _header_value(headers, "X-Twilio-Signature")
    if provided is None:
        return WebhookVerification(verified=False, reason="signature_missing")

    validator = RequestValidator(auth_token)
    if not validator.validate(url, dict(form_data), provided):
        return WebhookVerification(verified=False, reason="signature_mismatch")

    return WebhookVerification(verified=True)
