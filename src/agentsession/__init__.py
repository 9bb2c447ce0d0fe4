"""agentsession: drive agent personas through a budgeted, resumable turn loop."""

__version__ = "0.1.0"

# Public API
from agentsession.agents import AgentDefinition, AgentRegistry
from agentsession.client import AgentClient
from agentsession.config import Config, get_config, load_config
from agentsession.core.llm import LiteLLMProvider, LLMProvider, Message, Role, ScriptedProvider
from agentsession.cost import CostEstimator, CostLimitExceededError, CostReport, CostTracker
from agentsession.session import (
    AgentSession,
    ConversationalSession,
    ConversationResult,
    ConversationStatus,
    ConversationTurn,
    Question,
    SessionOptions,
    SessionResult,
    SessionState,
    SessionStateError,
    SessionStatus,
)
from agentsession.storage import FileSystemStorageAdapter, InMemoryStorageAdapter, StorageAdapter
from agentsession.tools import Document, VirtualFileSystem

__all__ = [
    # Main entry point
    "AgentClient",
    # Executors
    "AgentSession",
    "ConversationalSession",
    "ConversationResult",
    "ConversationStatus",
    "ConversationTurn",
    "Question",
    "SessionOptions",
    "SessionResult",
    "SessionState",
    "SessionStateError",
    "SessionStatus",
    # Agents
    "AgentDefinition",
    "AgentRegistry",
    # Config
    "Config",
    "load_config",
    "get_config",
    # LLM
    "LLMProvider",
    "LiteLLMProvider",
    "ScriptedProvider",
    "Message",
    "Role",
    # Costs
    "CostEstimator",
    "CostLimitExceededError",
    "CostReport",
    "CostTracker",
    # Storage
    "FileSystemStorageAdapter",
    "InMemoryStorageAdapter",
    "StorageAdapter",
    # Documents
    "Document",
    "VirtualFileSystem",
]
