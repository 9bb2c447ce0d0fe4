"""Executors: single-shot sessions and continuable conversations."""

from agentsession.session.base import DEFAULT_PAUSE_TIMEOUT, BaseSession, SessionServices
from agentsession.session.conversation import ConversationalSession
from agentsession.session.engine import SubAgentRequest, SubAgentRunner, TurnEngine
from agentsession.session.session import AgentSession
from agentsession.session.state import (
    ConversationResult,
    ConversationState,
    ConversationStatus,
    ConversationTimeoutError,
    ConversationTurn,
    PauseTimeoutError,
    Question,
    SessionOptions,
    SessionResult,
    SessionState,
    SessionStateError,
    SessionStatus,
    generate_id,
)

__all__ = [
    "DEFAULT_PAUSE_TIMEOUT",
    "AgentSession",
    "BaseSession",
    "ConversationResult",
    "ConversationState",
    "ConversationStatus",
    "ConversationTimeoutError",
    "ConversationTurn",
    "ConversationalSession",
    "PauseTimeoutError",
    "Question",
    "SessionOptions",
    "SessionResult",
    "SessionServices",
    "SessionState",
    "SessionStateError",
    "SessionStatus",
    "SubAgentRequest",
    "SubAgentRunner",
    "TurnEngine",
    "generate_id",
]
