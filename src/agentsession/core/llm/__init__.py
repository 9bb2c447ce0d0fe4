"""Model provider abstraction."""

from agentsession.core.llm.litellm_provider import LiteLLMProvider, create_provider
from agentsession.core.llm.models import ModelSpec, resolve_model
from agentsession.core.llm.provider import (
    BlockType,
    ContentBlock,
    LLMProvider,
    Message,
    ModelInfo,
    ProviderResponse,
    Role,
    StopReason,
    ToolCall,
    ToolDefinition,
    Usage,
)
from agentsession.core.llm.scripted import (
    ScriptedProvider,
    ScriptedResponse,
    ScriptedRule,
    tool_call,
)

__all__ = [
    "BlockType",
    "ContentBlock",
    "LLMProvider",
    "LiteLLMProvider",
    "Message",
    "ModelInfo",
    "ModelSpec",
    "ProviderResponse",
    "Role",
    "ScriptedProvider",
    "ScriptedResponse",
    "ScriptedRule",
    "StopReason",
    "ToolCall",
    "ToolDefinition",
    "Usage",
    "create_provider",
    "resolve_model",
    "tool_call",
]
