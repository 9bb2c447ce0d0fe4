"""Deterministic provider for scripted multi-turn scenarios.

Responses are served from a FIFO queue first, then from the first matching
rule, then from a default. No network access; every call is recorded for
assertions.

Usage:
    provider = ScriptedProvider()
    provider.set_responses([
        ScriptedResponse(
            "Writing it now",
            tool_calls=[ToolCall("t1", "write_file", {"file_path": "/a.md", "content": "x"})],
        ),
        ScriptedResponse("Done"),
    ])
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any

from agentsession.core.llm.provider import (
    BlockType,
    ContentBlock,
    Message,
    ModelInfo,
    ProviderResponse,
    Role,
    StopReason,
    ToolCall,
    ToolDefinition,
    Usage,
)


@dataclass
class ScriptedResponse:
    """One canned assistant turn."""

    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 100
    output_tokens: int = 50
    stop_reason: StopReason | None = None


@dataclass
class ScriptedRule:
    """Serve ``response`` when every given condition matches.

    Attributes:
        response: The canned turn
        conversation_length: Exact number of history messages
        user_message_contains: Substring of the latest user text
        tool_result_contains: Substring of any tool result in history
        once: Only match the first time
    """

    response: ScriptedResponse
    conversation_length: int | None = None
    user_message_contains: str | None = None
    tool_result_contains: str | None = None
    once: bool = False
    used: bool = False

    def matches(self, messages: list[Message]) -> bool:
        if self.once and self.used:
            return False
        if self.conversation_length is not None and len(messages) != self.conversation_length:
            return False
        if self.user_message_contains is not None:
            if self.user_message_contains not in _last_user_text(messages):
                return False
        if self.tool_result_contains is not None:
            if not _has_tool_result(messages, self.tool_result_contains):
                return False
        return True


@dataclass
class RecordedCall:
    messages: list[Message]
    tools: list[ToolDefinition]
    system: str | None


def _last_user_text(messages: list[Message]) -> str:
    for message in reversed(messages):
        if message.role == Role.USER and message.text:
            return message.text
    return ""


def _has_tool_result(messages: list[Message], needle: str) -> bool:
    return any(
        needle in (block.content or "")
        for message in messages
        if message.role == Role.USER
        for block in message.blocks
        if block.type == BlockType.TOOL_RESULT
    )


class ScriptedProvider:
    """Provider test double with queued responses and matching rules."""

    def __init__(
        self,
        model: str = "scripted-model",
        *,
        input_cost_per_1k: float = 0.003,
        output_cost_per_1k: float = 0.015,
        default: ScriptedResponse | None = None,
    ) -> None:
        self._model = model
        self._input_cost = input_cost_per_1k
        self._output_cost = output_cost_per_1k
        self._default = default or ScriptedResponse("Mock response")
        self._queue: deque[ScriptedResponse] = deque()
        self._rules: list[ScriptedRule] = []
        self.calls: list[RecordedCall] = []

    @property
    def model(self) -> str:
        return self._model

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def set_responses(self, responses: list[ScriptedResponse]) -> None:
        """Replace the queue; responses are served in order, one per call."""
        self._queue = deque(responses)

    def add_rule(self, rule: ScriptedRule) -> None:
        self._rules.append(rule)

    def reset(self) -> None:
        self._queue.clear()
        self._rules.clear()
        self.calls.clear()

    def _next_response(self, messages: list[Message]) -> ScriptedResponse:
        if self._queue:
            return self._queue.popleft()
        for rule in self._rules:
            if rule.matches(messages):
                rule.used = True
                return rule.response
        return self._default

    async def send_message(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ProviderResponse:
        self.calls.append(RecordedCall(messages=list(messages), tools=list(tools), system=system))
        scripted = self._next_response(messages)

        blocks: list[ContentBlock] = []
        if scripted.content:
            blocks.append(ContentBlock.text_block(scripted.content))
        blocks.extend(ContentBlock.tool_use(call) for call in scripted.tool_calls)

        stop_reason = scripted.stop_reason
        if stop_reason is None:
            stop_reason = StopReason.TOOL_USE if scripted.tool_calls else StopReason.END_TURN

        return ProviderResponse(
            message=Message(role=Role.ASSISTANT, content=tuple(blocks)),
            usage=Usage(scripted.input_tokens, scripted.output_tokens),
            stop_reason=stop_reason,
            tool_calls=list(scripted.tool_calls),
        )

    def calculate_cost(self, usage: Usage) -> float:
        return (usage.input_tokens / 1000) * self._input_cost + (
            usage.output_tokens / 1000
        ) * self._output_cost

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(
            name=self._model,
            max_tokens=200000,
            input_cost_per_1k=self._input_cost,
            output_cost_per_1k=self._output_cost,
        )


def tool_call(call_id: str, name: str, **arguments: Any) -> ToolCall:
    """Shorthand for building scripted tool calls."""
    return ToolCall(id=call_id, name=name, input=arguments)
