"""Model provider protocol and message types.

Messages follow the content-block shape used by tool-calling chat models:
content is either plain text or a list of text / tool_use / tool_result
blocks. Every type round-trips through ``to_dict`` / ``from_dict`` so
session snapshots stay plain data.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable


class Role(Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class BlockType(Enum):
    TEXT = "text"
    TOOL_USE = "tool_use"
    TOOL_RESULT = "tool_result"


class StopReason(Enum):
    """Why the model stopped generating."""

    END_TURN = "end_turn"
    TOOL_USE = "tool_use"
    MAX_TOKENS = "max_tokens"
    STOP_SEQUENCE = "stop_sequence"


@dataclass(frozen=True, slots=True)
class ContentBlock:
    """One block of structured message content.

    Attributes:
        type: text, tool_use or tool_result
        text: Text for text blocks
        id: Tool call id for tool_use blocks
        name: Tool name for tool_use blocks
        input: Tool arguments for tool_use blocks
        tool_use_id: Id of the answered call for tool_result blocks
        content: Result payload for tool_result blocks
        is_error: Whether a tool_result reports a failure
    """

    type: BlockType
    text: str | None = None
    id: str | None = None
    name: str | None = None
    input: dict[str, Any] | None = None
    tool_use_id: str | None = None
    content: str | None = None
    is_error: bool = False

    @classmethod
    def text_block(cls, text: str) -> ContentBlock:
        return cls(type=BlockType.TEXT, text=text)

    @classmethod
    def tool_use(cls, call: ToolCall) -> ContentBlock:
        return cls(type=BlockType.TOOL_USE, id=call.id, name=call.name, input=dict(call.input))

    @classmethod
    def tool_result(cls, tool_use_id: str, content: str, is_error: bool = False) -> ContentBlock:
        return cls(
            type=BlockType.TOOL_RESULT,
            tool_use_id=tool_use_id,
            content=content,
            is_error=is_error,
        )

    def to_dict(self) -> dict[str, Any]:
        if self.type == BlockType.TEXT:
            return {"type": self.type.value, "text": self.text or ""}
        if self.type == BlockType.TOOL_USE:
            return {
                "type": self.type.value,
                "id": self.id,
                "name": self.name,
                "input": dict(self.input or {}),
            }
        return {
            "type": self.type.value,
            "tool_use_id": self.tool_use_id,
            "content": self.content or "",
            "is_error": self.is_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ContentBlock:
        block_type = BlockType(data["type"])
        if block_type == BlockType.TEXT:
            return cls(type=block_type, text=data.get("text", ""))
        if block_type == BlockType.TOOL_USE:
            return cls(
                type=block_type,
                id=data.get("id"),
                name=data.get("name"),
                input=dict(data.get("input") or {}),
            )
        return cls(
            type=block_type,
            tool_use_id=data.get("tool_use_id"),
            content=data.get("content", ""),
            is_error=bool(data.get("is_error", False)),
        )


@dataclass(frozen=True, slots=True)
class Message:
    """A message in a model conversation.

    Messages are immutable once appended to a history.
    """

    role: Role
    content: str | tuple[ContentBlock, ...]

    @property
    def blocks(self) -> tuple[ContentBlock, ...]:
        """Content as blocks; plain text becomes one text block."""
        if isinstance(self.content, str):
            return (ContentBlock.text_block(self.content),) if self.content else ()
        return self.content

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "\n".join(b.text or "" for b in self.content if b.type == BlockType.TEXT)

    @property
    def tool_calls(self) -> list[ToolCall]:
        return [
            ToolCall(id=b.id or "", name=b.name or "", input=dict(b.input or {}))
            for b in self.blocks
            if b.type == BlockType.TOOL_USE
        ]

    @property
    def tool_results(self) -> list[ContentBlock]:
        return [b for b in self.blocks if b.type == BlockType.TOOL_RESULT]

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            content: Any = self.content
        else:
            content = [b.to_dict() for b in self.content]
        return {"role": self.role.value, "content": content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        raw = data.get("content", "")
        if isinstance(raw, str):
            content: str | tuple[ContentBlock, ...] = raw
        else:
            content = tuple(ContentBlock.from_dict(b) for b in raw)
        return cls(role=Role(data["role"]), content=content)


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by the model."""

    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "input": dict(self.input)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolCall:
        return cls(id=data["id"], name=data["name"], input=dict(data.get("input") or {}))


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """A tool the model may call, described by a JSON schema."""

    name: str
    description: str
    input_schema: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }


@dataclass(frozen=True, slots=True)
class Usage:
    """Token usage for one provider call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(slots=True)
class ProviderResponse:
    """Result of one ``send_message`` call."""

    message: Message
    usage: Usage
    stop_reason: StopReason = StopReason.END_TURN
    tool_calls: list[ToolCall] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ModelInfo:
    """Static facts about the model behind a provider."""

    name: str
    max_tokens: int
    input_cost_per_1k: float
    output_cost_per_1k: float


@runtime_checkable
class LLMProvider(Protocol):
    """Protocol for model providers.

    Implementations translate the content-block history to their backend,
    report token usage, and price it.
    """

    @property
    def model(self) -> str:
        """The model identifier being used."""
        ...

    async def send_message(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        *,
        system: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> ProviderResponse:
        """Send the history and tool schema, returning the assistant turn.

        Args:
            messages: Conversation history (user/assistant only)
            tools: Tool schemas the model may call
            system: System prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature

        Returns:
            ProviderResponse with the assistant message, tool calls and usage
        """
        ...

    def calculate_cost(self, usage: Usage) -> float:
        """Price a usage record in the provider's currency."""
        ...

    def get_model_info(self) -> ModelInfo:
        """Return pricing and context facts for the model."""
        ...
