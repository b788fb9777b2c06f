from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from .calendar_events import CalendarEventCreator, CalendarEventError, CalendarEventRequest
from .contacts import strip_whatsapp_scheme
from .conversation_context import ChatTurn
from .lead_store import ContactRecord, LeadRepository
from .llm import ChatCompletionClient, FunctionCall
from .models import ReplyBranch

logger = logging.getLogger(__name__)

CREATE_APPOINTMENT = "create_appointment"

FALLBACK_REPLY = "Sorry, ik kon geen antwoord genereren."
INVALID_APPOINTMENT_REPLY = "Sorry, er ontbreken gegevens om de afspraak in te plannen. Probeer het opnieuw."
CALENDAR_MISSING_REPLY = (
    "Sorry, er is geen kalender gekoppeld of geen standaard agenda ingesteld. "
    "Koppel eerst je agenda om afspraken te kunnen maken."
)
CALENDAR_FAILED_REPLY = "Sorry, er ging iets mis bij het inplannen van je afspraak. Probeer het later opnieuw."
CONFIRMATION_TEMPLATE = "Perfect! Je afspraak is ingepland voor {date} van {start_time} tot {end_time}. We zien je dan graag!"

CREATE_APPOINTMENT_TOOL: dict[str, Any] = {
    "type": "function",
    "function": {
        "name": CREATE_APPOINTMENT,
        "description": "Maak een afspraak aan in de agenda",
        "parameters": {
            "type": "object",
            "properties": {
                "date": {"type": "string", "description": "Datum in YYYY-MM-DD formaat"},
                "start_time": {"type": "string", "description": "Starttijd in HH:MM formaat"},
                "end_time": {"type": "string", "description": "Eindtijd in HH:MM formaat"},
            },
            "required": ["date", "start_time", "end_time"],
        },
    },
}

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^\d{2}:\d{2}$")


@dataclass(frozen=True)
class ReplyOutcome:
    reply_text: str
    branch: ReplyBranch
    event_id: str | None = None


@dataclass(frozen=True)
class AppointmentSlot:
    date: str
    start_time: str
    end_time: str


def parse_appointment_arguments(arguments: str) -> AppointmentSlot | None:
    """Parse ``create_appointment`` arguments; ``None`` when anything is off."""
    try:
        payload = json.loads(arguments or "")
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None

    values: dict[str, str] = {}
    for key in ("date", "start_time", "end_time"):
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            return None
        values[key] = value.strip()

    if not _DATE_PATTERN.match(values["date"]):
        return None
    if not _TIME_PATTERN.match(values["start_time"]) or not _TIME_PATTERN.match(values["end_time"]):
        return None
    try:
        datetime.strptime(values["date"], "%Y-%m-%d")
        start = datetime.strptime(values["start_time"], "%H:%M")
        end = datetime.strptime(values["end_time"], "%H:%M")
    except ValueError:
        return None
    if end <= start:
        return None

    return AppointmentSlot(**values)


class ReplyOrchestrator:
    def __init__(
        self,
        *,
        repository: LeadRepository,
        llm_client: ChatCompletionClient,
        calendar_creator: CalendarEventCreator,
    ) -> None:
        self._repository = repository
        self._llm_client = llm_client
        self._calendar_creator = calendar_creator

    def generate_reply(self, *, tenant_id: str, contact: ContactRecord, context: Sequence[ChatTurn]) -> ReplyOutcome:
        completion = self._llm_client.complete(context, tools=[CREATE_APPOINTMENT_TOOL])

        if completion.function_call is not None:
            return self._handle_function_call(tenant_id, contact, completion.function_call)

        content = (completion.content or "").strip()
        if not content:
            return ReplyOutcome(reply_text=FALLBACK_REPLY, branch="empty")
        return ReplyOutcome(reply_text=completion.content or content, branch="text")

    def _handle_function_call(self, tenant_id: str, contact: ContactRecord, call: FunctionCall) -> ReplyOutcome:
        if call.name != CREATE_APPOINTMENT:
            logger.warning("model requested unknown function %s", call.name)
            return ReplyOutcome(reply_text=FALLBACK_REPLY, branch="unknown_function")

        slot = parse_appointment_arguments(call.arguments)
        if slot is None:
            logger.info("appointment arguments rejected for contact %s", contact.contact_id)
            return ReplyOutcome(reply_text=INVALID_APPOINTMENT_REPLY, branch="appointment_invalid")

        grant = self._repository.find_calendar_grant(tenant_id)
        if grant is None or not grant.grant_id or not grant.default_calendar_id:
            logger.info("tenant %s has no calendar connected", tenant_id)
            return ReplyOutcome(reply_text=CALENDAR_MISSING_REPLY, branch="calendar_missing")

        display_name = contact.display_name or strip_whatsapp_scheme(contact.whatsapp_address)
        request = CalendarEventRequest(
            grant_id=grant.grant_id,
            calendar_id=grant.default_calendar_id,
            title=f"Appointment: {display_name}",
            date=slot.date,
            start_time=slot.start_time,
            end_time=slot.end_time,
        )
        try:
            result = self._calendar_creator.create_event(request)
        except CalendarEventError as exc:
            logger.warning("calendar event creation failed for tenant %s: %s", tenant_id, exc.error_code)
            return ReplyOutcome(reply_text=CALENDAR_FAILED_REPLY, branch="calendar_failed")

        logger.info("appointment %s created for contact %s", result.event_id, contact.contact_id)
        return ReplyOutcome(
            reply_text=CONFIRMATION_TEMPLATE.format(
                date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
            ),
            branch="appointment_created",
            event_id=result.event_id,
        )
