from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from .config import DEFAULT_BUSINESS_PERSONA
from .lead_store import MessageRecord
from .models import LlmRole, MessageRole

# Operators and system notes speak to the model as the customer side of the chat.
_ROLE_TABLE: dict[str, LlmRole] = {
    "user": "user",
    "human": "user",
    "system": "user",
    "agent": "assistant",
}


@dataclass(frozen=True)
class ChatTurn:
    role: LlmRole
    content: str

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def to_llm_role(role: MessageRole | str) -> LlmRole:
    try:
        return _ROLE_TABLE[role]
    except KeyError as exc:
        raise ValueError(f"unsupported message role: {role}") from exc


def build_system_prompt(contact_name: str | None, business_persona: str = DEFAULT_BUSINESS_PERSONA) -> str:
    persona = business_persona.strip() or DEFAULT_BUSINESS_PERSONA
    name = (contact_name or "").strip() or "onbekend"
    return (
        f"Je bent een vriendelijke klantenservice agent voor {persona}.\n"
        "Je helpt klanten met vragen over onderhoud en renovatie, en je kunt afspraken inplannen.\n\n"
        "Als iemand een afspraak wil inplannen, vraag dan naar:\n"
        "- De gewenste datum (YYYY-MM-DD formaat)\n"
        "- Starttijd (HH:MM formaat)\n"
        "- Eindtijd (HH:MM formaat)\n\n"
        "Zodra je alle gegevens hebt, gebruik dan de functie create_appointment.\n"
        "Antwoord in het Nederlands en houd het kort en professioneel.\n\n"
        f"De contactpersoon heet: {name}"
    )


def build_conversation_context(
    history: Sequence[MessageRecord],
    inbound_body: str,
    *,
    contact_name: str | None,
    business_persona: str = DEFAULT_BUSINESS_PERSONA,
) -> list[ChatTurn]:
    """Assemble the model input: system prompt, mapped history, then the new message.

    ``history`` is expected in chronological order. The inbound message is
    always appended last, even when it is already part of ``history``.
    """
    turns = [ChatTurn(role="system", content=build_system_prompt(contact_name, business_persona))]
    for message in history:
        turns.append(ChatTurn(role=to_llm_role(message.role), content=message.body or ""))
    turns.append(ChatTurn(role="user", content=inbound_body))
    return turns
