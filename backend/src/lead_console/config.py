from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BUSINESS_PERSONA = "een onderhoud- en renovatiebedrijf"


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


def _as_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _normalize_mode(value: str | None, *, default: str, allowed: set[str]) -> str:
    if value is None:
        return default
    normalized = value.strip().lower()
    return normalized if normalized in allowed else default


def _is_placeholder(value: str, *, defaults: set[str]) -> bool:
    normalized = value.strip()
    if not normalized:
        return True
    if normalized in defaults:
        return True
    lower = normalized.lower()
    return lower in {"change-me", "replace-me", "placeholder", "changeme"}


@dataclass(frozen=True)
class Settings:
    app_name: str = "WhatsApp Lead Console"
    api_prefix: str = "/api/v1"
    console_base_url: str = "http://localhost:5173"
    runtime_secret_guard_mode: str = "warn"
    # Storage
    lead_store_backend: str = "inmemory"
    database_url: str = ""
    default_tenant_id: str = ""
    default_tenant_name: str = "Demo Organization"
    # Conversation
    conversation_history_limit: int = 10
    business_persona: str = DEFAULT_BUSINESS_PERSONA
    # LLM
    llm_client_type: str = "stub"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_temperature: float = 0.7
    openai_max_tokens: int = 500
    openai_timeout_seconds: int = 60
    # Messaging gateway
    whatsapp_gateway_type: str = "stub"
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_whatsapp_number: str = ""
    twilio_status_callback_url: str = ""
    whatsapp_webhook_signature_mode: str = "log_only"
    # Calendar
    calendar_creator_type: str = "stub"
    nylas_api_base_url: str = "https://api.us.nylas.com"
    nylas_api_key: str = ""
    nylas_timeout_seconds: int = 30
    appointment_timezone: str = "Europe/Amsterdam"
    # Operator sessions
    operator_session_secret: str = "dev-operator-secret"
    operator_session_ttl_minutes: int = 480


def get_settings() -> Settings:
    return Settings(
        app_name=os.getenv("LEAD_CONSOLE_APP_NAME", "WhatsApp Lead Console"),
        api_prefix=os.getenv("LEAD_CONSOLE_API_PREFIX", "/api/v1"),
        console_base_url=os.getenv("CONSOLE_BASE_URL", "http://localhost:5173"),
        runtime_secret_guard_mode=_normalize_mode(
            os.getenv("RUNTIME_SECRET_GUARD_MODE"),
            default="warn",
            allowed={"off", "warn", "enforce"},
        ),
        lead_store_backend=os.getenv("LEAD_STORE_BACKEND", "inmemory"),
        database_url=os.getenv("DATABASE_URL", ""),
        default_tenant_id=os.getenv("DEFAULT_TENANT_ID", ""),
        default_tenant_name=os.getenv("DEFAULT_TENANT_NAME", "Demo Organization"),
        conversation_history_limit=max(0, _as_int(os.getenv("CONVERSATION_HISTORY_LIMIT"), 10)),
        business_persona=os.getenv("BUSINESS_PERSONA", DEFAULT_BUSINESS_PERSONA),
        llm_client_type=os.getenv("LLM_CLIENT_TYPE", "stub"),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_temperature=_as_float(os.getenv("OPENAI_TEMPERATURE"), 0.7),
        openai_max_tokens=_as_int(os.getenv("OPENAI_MAX_TOKENS"), 500),
        openai_timeout_seconds=_as_int(os.getenv("OPENAI_TIMEOUT_SECONDS"), 60),
        whatsapp_gateway_type=os.getenv("WHATSAPP_GATEWAY_TYPE", "stub"),
        twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
        twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),
        twilio_whatsapp_number=os.getenv("TWILIO_WHATSAPP_NUMBER", ""),
        twilio_status_callback_url=os.getenv("TWILIO_STATUS_CALLBACK_URL", ""),
        whatsapp_webhook_signature_mode=_normalize_mode(
            os.getenv("WHATSAPP_WEBHOOK_SIGNATURE_MODE"),
            default="log_only",
            allowed={"off", "log_only", "enforce"},
        ),
        calendar_creator_type=os.getenv("CALENDAR_CREATOR_TYPE", "stub"),
        nylas_api_base_url=os.getenv("NYLAS_API_BASE_URL", "https://api.us.nylas.com"),
        nylas_api_key=os.getenv("NYLAS_API_KEY", os.getenv("NYLAS_CLIENT_SECRET", "")),
        nylas_timeout_seconds=_as_int(os.getenv("NYLAS_TIMEOUT_SECONDS"), 30),
        appointment_timezone=os.getenv("APPOINTMENT_TIMEZONE", "Europe/Amsterdam"),
        operator_session_secret=os.getenv("OPERATOR_SESSION_SECRET", "dev-operator-secret"),
        operator_session_ttl_minutes=_as_int(os.getenv("OPERATOR_SESSION_TTL_MINUTES"), 480),
    )


def runtime_secret_issues(settings: Settings) -> tuple[str, ...]:
    issues: list[str] = []
    if _is_placeholder(
        settings.operator_session_secret,
        defaults={"dev-operator-secret", "change-me-in-production"},
    ):
        issues.append("OPERATOR_SESSION_SECRET is empty or uses a development placeholder")
    if settings.llm_client_type.strip().lower() == "openai" and not settings.openai_api_key.strip():
        issues.append("OPENAI_API_KEY is required when LLM_CLIENT_TYPE=openai")
    if settings.whatsapp_gateway_type.strip().lower() == "twilio":
        if not settings.twilio_account_sid.strip():
            issues.append("TWILIO_ACCOUNT_SID is required when WHATSAPP_GATEWAY_TYPE=twilio")
        if not settings.twilio_auth_token.strip():
            issues.append("TWILIO_AUTH_TOKEN is required when WHATSAPP_GATEWAY_TYPE=twilio")
        if not settings.twilio_whatsapp_number.strip():
            issues.append("TWILIO_WHATSAPP_NUMBER is required when WHATSAPP_GATEWAY_TYPE=twilio")
    if settings.whatsapp_webhook_signature_mode == "enforce" and not settings.twilio_auth_token.strip():
        issues.append("TWILIO_AUTH_TOKEN is required when WHATSAPP_WEBHOOK_SIGNATURE_MODE=enforce")
    if settings.calendar_creator_type.strip().lower() == "http" and not settings.nylas_api_key.strip():
        issues.append("NYLAS_API_KEY is required when CALENDAR_CREATOR_TYPE=http")
    if settings.lead_store_backend.strip().lower() == "postgres" and not settings.database_url.strip():
        issues.append("DATABASE_URL is required when LEAD_STORE_BACKEND=postgres")
    return tuple(issues)
