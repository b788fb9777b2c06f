from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence

from openai import OpenAI, OpenAIError

from .conversation_context import ChatTurn

logger = logging.getLogger(__name__)


class ChatCompletionError(Exception):
    """Raised when the language model call fails or returns no choices."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


@dataclass(frozen=True)
class FunctionCall:
    name: str
    arguments: str


@dataclass(frozen=True)
class ChatCompletion:
    content: str | None = None
    function_call: FunctionCall | None = None


class ChatCompletionClient(Protocol):
    def complete(self, turns: Sequence[ChatTurn], *, tools: Sequence[dict[str, Any]]) -> ChatCompletion: ...


class StubChatCompletionClient:
    """Replays scripted completions; falls back to a fixed Dutch greeting."""

    def __init__(self, responses: Iterable[ChatCompletion] = ()) -> None:
        self._responses: deque[ChatCompletion] = deque(responses)
        self.calls: list[list[ChatTurn]] = []

    def queue(self, *responses: ChatCompletion) -> None:
        self._responses.extend(responses)

    def complete(self, turns: Sequence[ChatTurn], *, tools: Sequence[dict[str, Any]]) -> ChatCompletion:
        self.calls.append(list(turns))
        if self._responses:
            return self._responses.popleft()
        return ChatCompletion(content="Bedankt voor je bericht! Hoe kan ik je helpen?")


class OpenAIChatCompletionClient:
    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: int = 500,
        timeout_seconds: int = 60,
        client: OpenAI | None = None,
    ) -> None:
        if client is None and not api_key.strip():
            raise ValueError("api_key must not be empty")
        self._client = client or OpenAI(api_key=api_key.strip(), timeout=timeout_seconds, max_retries=0)
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    def complete(self, turns: Sequence[ChatTurn], *, tools: Sequence[dict[str, Any]]) -> ChatCompletion:
        request: dict[str, Any] = {
            "model": self._model,
            "messages": [turn.as_message() for turn in turns],
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if tools:
            request["tools"] = list(tools)
            request["tool_choice"] = "auto"

        try:
            response = self._client.chat.completions.create(**request)
        except OpenAIError as exc:
            logger.warning("chat completion failed: %s", type(exc).__name__)
            raise ChatCompletionError("llm_request_failed", str(exc)) from exc

        if not response.choices:
            raise ChatCompletionError("llm_empty_response", "model returned no choices")

        message = response.choices[0].message
        tool_calls = message.tool_calls or []
        if tool_calls:
            first = tool_calls[0]
            return ChatCompletion(
                content=message.content,
                function_call=FunctionCall(name=first.function.name, arguments=first.function.arguments or ""),
            )
        return ChatCompletion(content=message.content)
