from __future__ import annotations

import os

import pytest

from lead_console.main import create_app


def _set_env(overrides: dict[str, str | None]) -> dict[str, str | None]:
    previous: dict[str, str | None] = {}
    for key, value in overrides.items():
        previous[key] = os.environ.get(key)
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    return previous


def _restore_env(previous: dict[str, str | None]) -> None:
    for key, value in previous.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value


def _base_runtime_secret_env() -> dict[str, str | None]:
    return {
        "OPERATOR_SESSION_SECRET": "prod-operator-secret-001",
        "RUNTIME_SECRET_GUARD_MODE": "enforce",
        "LEAD_STORE_BACKEND": "inmemory",
        "LLM_CLIENT_TYPE": "stub",
        "WHATSAPP_GATEWAY_TYPE": "stub",
        "CALENDAR_CREATOR_TYPE": "stub",
        "WHATSAPP_WEBHOOK_SIGNATURE_MODE": "log_only",
    }


def test_create_app_starts_with_stub_integrations_under_enforce() -> None:
    previous = _set_env(_base_runtime_secret_env())
    try:
        app = create_app()
        assert app.title == "WhatsApp Lead Console"
    finally:
        _restore_env(previous)


def test_create_app_blocks_placeholder_operator_secret_under_enforce() -> None:
    previous = _set_env({**_base_runtime_secret_env(), "OPERATOR_SESSION_SECRET": "change-me"})
    try:
        with pytest.raises(RuntimeError, match="OPERATOR_SESSION_SECRET"):
            create_app()
    finally:
        _restore_env(previous)


def test_create_app_blocks_twilio_gateway_without_credentials() -> None:
    previous = _set_env(
        {
            **_base_runtime_secret_env(),
            "WHATSAPP_GATEWAY_TYPE": "twilio",
            "TWILIO_ACCOUNT_SID": None,
            "TWILIO_AUTH_TOKEN": None,
            "TWILIO_WHATSAPP_NUMBER": None,
        }
    )
    try:
        with pytest.raises(RuntimeError, match="TWILIO_ACCOUNT_SID is required"):
            create_app()
    finally:
        _restore_env(previous)


def test_create_app_only_warns_in_warn_mode(caplog: pytest.LogCaptureFixture) -> None:
    previous = _set_env(
        {
            **_base_runtime_secret_env(),
            "RUNTIME_SECRET_GUARD_MODE": "warn",
            "OPERATOR_SESSION_SECRET": None,
        }
    )
    try:
        with caplog.at_level("WARNING", logger="lead_console.main"):
            app = create_app()
        assert app.title == "WhatsApp Lead Console"
        assert any("OPERATOR_SESSION_SECRET" in record.getMessage() for record in caplog.records)
    finally:
        _restore_env(previous)
