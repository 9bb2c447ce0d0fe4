"""Session data model: statuses, options, results and snapshots.

Snapshots are pure data. ``SessionState.to_dict()`` yields only builtin types
so adapters can store it as YAML or JSON, and ``from_dict`` reverses it
exactly.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from agentsession.core.llm.provider import ContentBlock, Message
from agentsession.cost.tracker import CostReport
from agentsession.tools.sandbox import Document


class SessionStatus(Enum):
    """Turn executor lifecycle.

    pending -> running -> (paused <-> running) -> completed | failed | timeout
    """

    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.TIMEOUT)


class ConversationStatus(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    WAITING_FOR_ANSWER = "waiting_for_answer"
    ENDED = "ended"
    ERROR = "error"


class SessionStateError(RuntimeError):
    """Operation not allowed in the session's current state."""


class PauseTimeoutError(TimeoutError):
    """No answer arrived for a pending question in time."""


class ConversationTimeoutError(TimeoutError):
    """A caller's wait for a conversation turn timed out."""


def generate_id(prefix: str) -> str:
    """``<prefix>_<epoch ms>_<random>``; unique enough, not collision-checked."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


@dataclass
class SessionOptions:
    """Per-session settings.

    Attributes:
        cost_limit: Budget in the ledger currency; None means unlimited
        pause_timeout: Seconds to wait for an answer; None uses the client default
        context: Arbitrary caller data carried with the session
        parent_session_id: Set on sub-agent sessions
        is_sub_agent: Sub-agents cannot ask the user or invoke further agents
        auto_save: Persist the snapshot after every provider call
    """

    cost_limit: float | None = None
    pause_timeout: float | None = None
    context: dict[str, Any] = field(default_factory=dict)
    parent_session_id: str | None = None
    is_sub_agent: bool = False
    auto_save: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "cost_limit": self.cost_limit,
            "pause_timeout": self.pause_timeout,
            "context": dict(self.context),
            "parent_session_id": self.parent_session_id,
            "is_sub_agent": self.is_sub_agent,
            "auto_save": self.auto_save,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SessionOptions:
        data = data or {}
        return cls(
            cost_limit=data.get("cost_limit"),
            pause_timeout=data.get("pause_timeout"),
            context=dict(data.get("context") or {}),
            parent_session_id=data.get("parent_session_id"),
            is_sub_agent=bool(data.get("is_sub_agent", False)),
            auto_save=bool(data.get("auto_save", False)),
        )


@dataclass
class Question:
    """A clarification the model asked for via ``ask_user``."""

    question: str
    context: str | None = None
    tool_call_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"question": self.question, "context": self.context, "tool_call_id": self.tool_call_id}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Question:
        return cls(
            question=data.get("question", ""),
            context=data.get("context"),
            tool_call_id=data.get("tool_call_id", ""),
        )


@dataclass
class SessionResult:
    """Terminal outcome of ``AgentSession.execute()``."""

    session_id: str
    status: SessionStatus
    documents: list[Document]
    costs: CostReport
    duration_ms: float
    messages: list[Message] = field(default_factory=list)
    final_response: str | None = None
    error: BaseException | None = None
    storage_urls: list[str] = field(default_factory=list)

    @property
    def error_message(self) -> str | None:
        return str(self.error) if self.error is not None else None


def _messages_to_dicts(messages: list[Message]) -> list[dict[str, Any]]:
    return [m.to_dict() for m in messages]


def _messages_from_dicts(data: list[dict[str, Any]] | None) -> list[Message]:
    return [Message.from_dict(m) for m in data or []]


@dataclass
class SessionState:
    """Complete snapshot of an AgentSession."""

    id: str
    agent_id: str
    command: str
    status: SessionStatus
    created_at: float
    started_at: float | None = None
    paused_at: float | None = None
    completed_at: float | None = None
    messages: list[Message] = field(default_factory=list)
    vfs_files: dict[str, str] = field(default_factory=dict)
    costs: CostReport = field(default_factory=CostReport)
    emitted_warnings: list[float] = field(default_factory=list)
    options: SessionOptions = field(default_factory=SessionOptions)
    pending_question: Question | None = None
    pending_tool_results: list[ContentBlock] = field(default_factory=list)
    model: str | None = None
    error: str | None = None

    kind = "session"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "agent_id": self.agent_id,
            "command": self.command,
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "paused_at": self.paused_at,
            "completed_at": self.completed_at,
            "messages": _messages_to_dicts(self.messages),
            "vfs_files": dict(self.vfs_files),
            "costs": self.costs.to_dict(),
            "emitted_warnings": list(self.emitted_warnings),
            "options": self.options.to_dict(),
            "pending_question": self.pending_question.to_dict() if self.pending_question else None,
            "pending_tool_results": [b.to_dict() for b in self.pending_tool_results],
            "model": self.model,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionState:
        pending = data.get("pending_question")
        return cls(
            id=data["id"],
            agent_id=data["agent_id"],
            command=data.get("command", ""),
            status=SessionStatus(data["status"]),
            created_at=data.get("created_at") or 0.0,
            started_at=data.get("started_at"),
            paused_at=data.get("paused_at"),
            completed_at=data.get("completed_at"),
            messages=_messages_from_dicts(data.get("messages")),
            vfs_files=dict(data.get("vfs_files") or {}),
            costs=CostReport.from_dict(data.get("costs") or {}),
            emitted_warnings=list(data.get("emitted_warnings") or []),
            options=SessionOptions.from_dict(data.get("options")),
            pending_question=Question.from_dict(pending) if pending else None,
            pending_tool_results=[
                ContentBlock.from_dict(b) for b in data.get("pending_tool_results") or []
            ],
            model=data.get("model"),
            error=data.get("error"),
        )


@dataclass
class ConversationTurn:
    """One user message and the agent's complete response to it."""

    id: str
    user_message: str
    agent_response: str
    tool_calls: list[str] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_message": self.user_message,
            "agent_response": self.agent_response,
            "tool_calls": list(self.tool_calls),
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cost": self.cost,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationTurn:
        return cls(
            id=data["id"],
            user_message=data.get("user_message", ""),
            agent_response=data.get("agent_response", ""),
            tool_calls=list(data.get("tool_calls") or []),
            input_tokens=data.get("input_tokens", 0),
            output_tokens=data.get("output_tokens", 0),
            cost=data.get("cost", 0.0),
            timestamp=data.get("timestamp", 0.0),
        )


@dataclass
class ConversationResult:
    conversation_id: str
    turns: list[ConversationTurn]
    documents: list[Document]
    total_cost: float
    total_tokens: int
    duration_ms: float
    storage_urls: list[str] = field(default_factory=list)


@dataclass
class ConversationState:
    """Complete snapshot of a ConversationalSession."""

    id: str
    agent_id: str
    status: ConversationStatus
    created_at: float
    started_at: float | None = None
    ended_at: float | None = None
    messages: list[Message] = field(default_factory=list)
    turns: list[ConversationTurn] = field(default_factory=list)
    vfs_files: dict[str, str] = field(default_factory=dict)
    costs: CostReport = field(default_factory=CostReport)
    emitted_warnings: list[float] = field(default_factory=list)
    options: SessionOptions = field(default_factory=SessionOptions)
    pending_question: Question | None = None
    pending_tool_results: list[ContentBlock] = field(default_factory=list)
    current_turn_id: str | None = None
    current_user_message: str | None = None
    model: str | None = None
    error: str | None = None

    kind = "conversation"

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "agent_id": self.agent_id,
            "command": "",
            "status": self.status.value,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "messages": _messages_to_dicts(self.messages),
            "turns": [t.to_dict() for t in self.turns],
            "vfs_files": dict(self.vfs_files),
            "costs": self.costs.to_dict(),
            "emitted_warnings": list(self.emitted_warnings),
            "options": self.options.to_dict(),
            "pending_question": self.pending_question.to_dict() if self.pending_question else None,
            "pending_tool_results": [b.to_dict() for b in self.pending_tool_results],
            "current_turn_id": self.current_turn_id,
            "current_user_message": self.current_user_message,
            "model": self.model,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationState:
        pending = data.get("pending_question")
        return cls(
            id=data["id"],
            agent_id=data["agent_id"],
            status=ConversationStatus(data["status"]),
            created_at=data.get("created_at") or 0.0,
            started_at=data.get("started_at"),
            ended_at=data.get("ended_at"),
            messages=_messages_from_dicts(data.get("messages")),
            turns=[ConversationTurn.from_dict(t) for t in data.get("turns") or []],
            vfs_files=dict(data.get("vfs_files") or {}),
            costs=CostReport.from_dict(data.get("costs") or {}),
            emitted_warnings=list(data.get("emitted_warnings") or []),
            options=SessionOptions.from_dict(data.get("options")),
            pending_question=Question.from_dict(pending) if pending else None,
            pending_tool_results=[
                ContentBlock.from_dict(b) for b in data.get("pending_tool_results") or []
            ],
            current_turn_id=data.get("current_turn_id"),
            current_user_message=data.get("current_user_message"),
            model=data.get("model"),
            error=data.get("error"),
        )
