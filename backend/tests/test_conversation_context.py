from __future__ import annotations

from datetime import datetime, timezone

import pytest

from lead_console.conversation_context import build_conversation_context, build_system_prompt, to_llm_role
from lead_console.lead_store import MessageRecord


def _message(message_id: int, role: str, body: str | None) -> MessageRecord:
    return MessageRecord(
        message_id=message_id,
        tenant_id="tenant_000001",
        contact_id="contact_000001",
        role=role,  # type: ignore[arg-type]
        body=body,
        provider_message_id=None,
        provider_status=None,
        created_at=datetime(2026, 3, 1, 12, message_id, tzinfo=timezone.utc),
    )


def test_role_table_maps_operator_and_system_to_user() -> None:
    assert to_llm_role("user") == "user"
    assert to_llm_role("human") == "user"
    assert to_llm_role("system") == "user"
    assert to_llm_role("agent") == "assistant"


def test_unknown_role_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported message role"):
        to_llm_role("bot")


def test_system_prompt_names_contact_and_persona() -> None:
    prompt = build_system_prompt("+31612345678", "een schildersbedrijf")

    assert "een schildersbedrijf" in prompt
    assert "De contactpersoon heet: +31612345678" in prompt
    assert "YYYY-MM-DD" in prompt
    assert "HH:MM" in prompt


def test_system_prompt_falls_back_for_blank_inputs() -> None:
    prompt = build_system_prompt(None, "  ")

    assert "onderhoud- en renovatiebedrijf" in prompt
    assert "De contactpersoon heet: onbekend" in prompt


def test_context_is_system_then_history_then_inbound() -> None:
    history = [
        _message(1, "user", "Hallo"),
        _message(2, "agent", "Goedendag!"),
        _message(3, "human", "Ik bel je zo."),
        _message(4, "user", None),
    ]

    turns = build_conversation_context(history, "Kan ik morgen langskomen?", contact_name="Jan")

    assert [turn.role for turn in turns] == ["system", "user", "assistant", "user", "user", "user"]
    assert turns[1].content == "Hallo"
    assert turns[2].content == "Goedendag!"
    assert turns[4].content == ""
    assert turns[-1].as_message() == {"role": "user", "content": "Kan ik morgen langskomen?"}


def test_inbound_is_appended_even_when_already_in_history() -> None:
    history = [_message(1, "user", "Wanneer zijn jullie open?")]

    turns = build_conversation_context(history, "Wanneer zijn jullie open?", contact_name="Jan")

    assert [turn.content for turn in turns[1:]] == ["Wanneer zijn jullie open?", "Wanneer zijn jullie open?"]
