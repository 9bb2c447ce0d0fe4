"""LiteLLM provider implementation.

Supports 100+ model backends through litellm:
- Anthropic: "claude-sonnet-4-20250514"
- OpenAI: "gpt-4o"
- Local: "ollama/llama3"

Content-block histories are translated to the OpenAI-style message shape
litellm accepts (assistant ``tool_calls`` and ``role: tool`` results) and
responses are mapped back into blocks.
"""

from __future__ import annotations

import json
from typing import Any

import litellm

from agentsession.core.llm.models import DEFAULT_CONTEXT_LENGTH, ModelSpec, resolve_model
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
from agentsession.logging import get_logger

log = get_logger("llm")

_FINISH_REASONS = {
    "tool_calls": StopReason.TOOL_USE,
    "function_call": StopReason.TOOL_USE,
    "length": StopReason.MAX_TOKENS,
    "stop": StopReason.END_TURN,
}


def _to_litellm_messages(messages: list[Message], system: str | None) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    if system:
        out.append({"role": "system", "content": system})

    for message in messages:
        if isinstance(message.content, str):
            out.append({"role": message.role.value, "content": message.content})
            continue

        if message.role == Role.ASSISTANT:
            entry: dict[str, Any] = {"role": "assistant", "content": message.text or None}
            calls = message.tool_calls
            if calls:
                entry["tool_calls"] = [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.name, "arguments": json.dumps(call.input)},
                    }
                    for call in calls
                ]
            out.append(entry)
            continue

        for block in message.content:
            if block.type == BlockType.TOOL_RESULT:
                out.append(
                    {
                        "role": "tool",
                        "tool_call_id": block.tool_use_id,
                        "content": block.content or "",
                    }
                )
        text = message.text
        if text:
            out.append({"role": message.role.value, "content": text})

    return out


def _to_litellm_tools(tools: list[ToolDefinition]) -> list[dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tools
    ]


def _parse_arguments(raw: Any) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        log.warning("Model returned non-JSON tool arguments: %r", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _resolve_spec(model: str) -> ModelSpec:
    """Catalog entry for ``model``, else pricing from litellm's cost map.

    Raises:
        ValueError: If neither source knows the model.
    """
    try:
        return resolve_model(model)
    except ValueError:
        pass
    info = litellm.model_cost.get(model) or litellm.model_cost.get(model.split("/", 1)[-1])
    if not info or "input_cost_per_token" not in info:
        raise ValueError(f"Unknown model: {model}")
    log.debug("Pricing %s from litellm cost map", model)
    return ModelSpec(
        id=model,
        name=model,
        context_length=int(info.get("max_input_tokens") or info.get("max_tokens") or DEFAULT_CONTEXT_LENGTH),
        input_cost_per_1k=float(info["input_cost_per_token"]) * 1000,
        output_cost_per_1k=float(info.get("output_cost_per_token") or 0.0) * 1000,
    )


class LiteLLMProvider:
    """Model provider using litellm for multi-backend support.

    Usage:
        provider = LiteLLMProvider("claude-sonnet-4-20250514")
        provider = LiteLLMProvider("gpt-4o", api_base="http://localhost:8000/v1")
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        api_base: str | None = None,
        max_tokens: int = 4096,
        temperature: float | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize the provider.

        Args:
            model: Model identifier or catalog alias (e.g., "sonnet", "gpt-4o")
            api_key: API key (litellm reads provider env vars if not provided)
            api_base: Custom API base URL
            max_tokens: Default generation limit
            temperature: Default sampling temperature
            **kwargs: Additional litellm options

        Raises:
            ValueError: If the model has no known pricing.
        """
        self._spec = _resolve_spec(model)
        self._model = self._spec.id if model in self._spec.aliases else model
        self._api_key = api_key
        self._api_base = api_base
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._kwargs = kwargs

    @property
    def model(self) -> str:
        return self._model

    def _build_kwargs(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        *,
        system: str | None,
        max_tokens: int | None,
        temperature: float | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": _to_litellm_messages(messages, system),
            "max_tokens": max_tokens or self._max_tokens,
            **self._kwargs,
        }
        if tools:
            kwargs["tools"] = _to_litellm_tools(tools)

        temp = temperature if temperature is not None else self._temperature
        if temp is not None:
            kwargs["temperature"] = temp
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._api_base:
            kwargs["api_base"] = self._api_base
        return kwargs

    async def send_message(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ProviderResponse:
        kwargs = self._build_kwargs(
            messages,
            tools,
            system=system,
            max_tokens=max_tokens,
            temperature=temperature,
        )
        log.debug("litellm.acompletion model=%s messages=%d", self._model, len(kwargs["messages"]))

        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        text = choice.message.content or ""
        tool_calls = [
            ToolCall(
                id=tc.id,
                name=tc.function.name,
                input=_parse_arguments(tc.function.arguments),
            )
            for tc in (getattr(choice.message, "tool_calls", None) or [])
        ]

        blocks: list[ContentBlock] = []
        if text:
            blocks.append(ContentBlock.text_block(text))
        blocks.extend(ContentBlock.tool_use(call) for call in tool_calls)

        usage = Usage()
        if response.usage:
            usage = Usage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        stop_reason = _FINISH_REASONS.get(choice.finish_reason or "stop", StopReason.END_TURN)
        if tool_calls:
            stop_reason = StopReason.TOOL_USE

        return ProviderResponse(
            message=Message(role=Role.ASSISTANT, content=tuple(blocks)),
            usage=usage,
            stop_reason=stop_reason,
            tool_calls=tool_calls,
        )

    def calculate_cost(self, usage: Usage) -> float:
        info = self.get_model_info()
        return (usage.input_tokens / 1000) * info.input_cost_per_1k + (
            usage.output_tokens / 1000
        ) * info.output_cost_per_1k

    def get_model_info(self) -> ModelInfo:
        return ModelInfo(
            name=self._model,
            max_tokens=self._spec.context_length,
            input_cost_per_1k=self._spec.input_cost_per_1k,
            output_cost_per_1k=self._spec.output_cost_per_1k,
        )


def create_provider(
    model: str = "claude-sonnet-4-20250514",
    **kwargs: Any,
) -> LiteLLMProvider:
    """Create a provider with sensible defaults."""
    return LiteLLMProvider(model, **kwargs)
