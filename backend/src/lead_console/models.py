from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MessageRole = Literal["user", "agent", "human", "system"]
LlmRole = Literal["system", "user", "assistant"]
ReplyBranch = Literal[
    "text",
    "empty",
    "appointment_created",
    "appointment_invalid",
    "calendar_missing",
    "calendar_failed",
    "unknown_function",
]


class HealthResponse(BaseModel):
    ok: bool = True


class StatusCallbackResponse(BaseModel):
    success: bool
    updated: bool
    message_sid: str
    status: str


class AiPauseToggleResponse(BaseModel):
    ai_paused: bool
    message: str


class AiPauseStateResponse(BaseModel):
    tenant_id: str
    ai_paused: bool


class ContactItem(BaseModel):
    contact_id: str
    whatsapp_address: str
    display_name: str | None = None
    last_message_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ContactListResponse(BaseModel):
    items: list[ContactItem]


class MessageItem(BaseModel):
    message_id: int
    contact_id: str
    role: MessageRole
    body: str | None = None
    provider_message_id: str | None = None
    provider_status: str | None = None
    created_at: datetime


class ConversationResponse(BaseModel):
    contact: ContactItem
    messages: list[MessageItem]


class HumanMessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=1600)

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("text must not be blank")
        return stripped


class HumanMessageResponse(BaseModel):
    success: bool
    message_id: int
    provider_message_id: str | None = None


class ConversationDeleteResponse(BaseModel):
    contact_id: str
    deleted_count: int
    message: str


class CalendarConnectionRequest(BaseModel):
    grant_id: str = Field(min_length=1, max_length=256)
    default_calendar_id: str | None = Field(default=None, max_length=256)

    @field_validator("grant_id")
    @classmethod
    def _strip_grant_id(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("grant_id must not be blank")
        return stripped


class CalendarConnectionResponse(BaseModel):
    tenant_id: str
    user_id: str
    grant_id: str | None = None
    default_calendar_id: str | None = None
    connected: bool
