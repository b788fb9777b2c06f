from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import openai
import pytest

from lead_console.conversation_context import ChatTurn
from lead_console.llm import ChatCompletionError, OpenAIChatCompletionClient
from lead_console.reply_orchestrator import CREATE_APPOINTMENT_TOOL


def _response(*, content: str | None = None, tool_calls: list[MagicMock] | None = None) -> MagicMock:
    message = MagicMock()
    message.content = content
    message.tool_calls = tool_calls
    choice = MagicMock()
    choice.message = message
    response = MagicMock()
    response.choices = [choice]
    return response


def _tool_call(name: str, arguments: str) -> MagicMock:
    call = MagicMock()
    call.function.name = name
    call.function.arguments = arguments
    return call


def _client(sdk: MagicMock) -> OpenAIChatCompletionClient:
    return OpenAIChatCompletionClient(api_key="", model="gpt-4o-mini", client=sdk)


TURNS = [ChatTurn(role="system", content="Je bent een agent."), ChatTurn(role="user", content="Hallo")]


def test_text_completion_sends_messages_and_tools() -> None:
    sdk = MagicMock()
    sdk.chat.completions.create.return_value = _response(content="Hoi!")

    completion = _client(sdk).complete(TURNS, tools=[CREATE_APPOINTMENT_TOOL])

    assert completion.content == "Hoi!"
    assert completion.function_call is None
    kwargs = sdk.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"] == [
        {"role": "system", "content": "Je bent een agent."},
        {"role": "user", "content": "Hallo"},
    ]
    assert kwargs["tools"] == [CREATE_APPOINTMENT_TOOL]
    assert kwargs["tool_choice"] == "auto"
    assert kwargs["temperature"] == 0.7
    assert kwargs["max_tokens"] == 500


def test_only_first_tool_call_is_used() -> None:
    sdk = MagicMock()
    sdk.chat.completions.create.return_value = _response(
        tool_calls=[
            _tool_call("create_appointment", '{"date": "2026-03-15"}'),
            _tool_call("something_else", "{}"),
        ]
    )

    completion = _client(sdk).complete(TURNS, tools=[CREATE_APPOINTMENT_TOOL])

    assert completion.function_call is not None
    assert completion.function_call.name == "create_appointment"
    assert completion.function_call.arguments == '{"date": "2026-03-15"}'


def test_sdk_errors_become_chat_completion_errors() -> None:
    sdk = MagicMock()
    sdk.chat.completions.create.side_effect = openai.APIConnectionError(
        request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    )

    with pytest.raises(ChatCompletionError) as excinfo:
        _client(sdk).complete(TURNS, tools=[])

    assert excinfo.value.error_code == "llm_request_failed"


def test_empty_choices_are_an_error() -> None:
    sdk = MagicMock()
    response = MagicMock()
    response.choices = []
    sdk.chat.completions.create.return_value = response

    with pytest.raises(ChatCompletionError) as excinfo:
        _client(sdk).complete(TURNS, tools=[])

    assert excinfo.value.error_code == "llm_empty_response"


def test_missing_api_key_is_rejected_without_injected_client() -> None:
    with pytest.raises(ValueError, match="api_key must not be empty"):
        OpenAIChatCompletionClient(api_key=" ", model="gpt-4o-mini")
