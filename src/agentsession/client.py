"""AgentClient: main entry point for programmatic use.

Usage:
    from agentsession import AgentClient

    async with AgentClient() as client:
        session = client.start_agent("pm", "*create-prd")
        session.on("question", lambda q: session.answer(input(q.question + " ")))
        result = await session.execute()
        for doc in result.documents:
            print(doc.path)

    # Continuable conversation
    async with AgentClient() as client:
        conversation = client.start_conversation("analyst")
        await conversation.send("Help me brainstorm a product")
        turn = await conversation.wait_for_completion()
        print(turn.agent_response)
        await conversation.end()
"""

from __future__ import annotations

from pathlib import Path
from agentsession.agents.registry import AgentRegistry, AgentSource
from agentsession.config import Config, get_config
from agentsession.config.schema import StorageType
from agentsession.config.secrets import fetch_secret
from agentsession.core.llm.litellm_provider import create_provider
from agentsession.core.llm.provider import LLMProvider
from agentsession.logging import get_logger
from agentsession.prompts.builder import SystemPromptBuilder
from agentsession.session import (
    AgentSession,
    ConversationalSession,
    SessionOptions,
    SessionResult,
    SessionServices,
    SubAgentRequest,
)
from agentsession.storage import (
    FileSystemStorageAdapter,
    InMemoryStorageAdapter,
    SessionListOptions,
    SessionListResult,
    StorageAdapter,
    StorageNotConfiguredError,
)

log = get_logger("client")

DEFAULT_STORAGE_DIR = ".agentsession/storage"


def create_storage(config: Config) -> StorageAdapter | None:
    """Build the adapter named by ``storage.type``; None when it is ``none``."""
    storage_type = config.storage.type
    if storage_type == StorageType.MEMORY:
        return InMemoryStorageAdapter()
    if storage_type == StorageType.FILESYSTEM:
        return FileSystemStorageAdapter(Path(config.storage.path or DEFAULT_STORAGE_DIR))
    return None


def create_default_provider(config: Config) -> LLMProvider:
    llm = config.llm
    api_key = fetch_secret(llm.api_key_env) if llm.api_key_env else None
    return create_provider(
        llm.model,
        api_key=api_key,
        api_base=llm.api_base,
        max_tokens=llm.max_tokens,
        temperature=llm.temperature,
    )


class AgentClient:
    """Creates, recovers and lists sessions against one set of collaborators.

    Args:
        provider: Model provider; built from ``config.llm`` if omitted
        storage: Storage adapter; built from ``config.storage`` if omitted
        agents: Agent source; an AgentRegistry over ``config.agents.paths`` if omitted
        config: Configuration; the cached global config if omitted
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        *,
        storage: StorageAdapter | None = None,
        agents: AgentSource | None = None,
        config: Config | None = None,
        prompt_builder: SystemPromptBuilder | None = None,
    ) -> None:
        self.config = config or get_config()
        self._provider = provider
        self._storage = storage if storage is not None else create_storage(self.config)
        self.agents = agents if agents is not None else AgentRegistry(self.config.agents.paths)
        self._prompt_builder = prompt_builder or SystemPromptBuilder()
        self._initialized = False

    async def __aenter__(self) -> AgentClient:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        await self.close()

    async def initialize(self) -> None:
        if self._storage is not None and not self._initialized:
            await self._storage.initialize()
        self._initialized = True

    async def close(self) -> None:
        if self._storage is not None and self._initialized:
            await self._storage.close()
        self._initialized = False

    @property
    def provider(self) -> LLMProvider:
        """The model provider, created from config on first use."""
        if self._provider is None:
            self._provider = create_default_provider(self.config)
        return self._provider

    @property
    def storage(self) -> StorageAdapter | None:
        return self._storage

    def require_storage(self) -> StorageAdapter:
        if self._storage is None:
            raise StorageNotConfiguredError()
        return self._storage

    def services(self, *, sub_agents: bool = True) -> SessionServices:
        """Collaborators handed to each executor."""
        defaults = self.config.session
        return SessionServices(
            provider=self.provider,
            agents=self.agents,
            storage=self._storage,
            prompt_builder=self._prompt_builder,
            sub_agent_runner=self._run_sub_agent if sub_agents else None,
            allowed_commands=tuple(self.config.tools.allowed_commands),
            warning_thresholds=tuple(defaults.warning_thresholds),
            currency=defaults.currency,
            pause_timeout=defaults.pause_timeout,
            max_tokens=self.config.llm.max_tokens,
            temperature=self.config.llm.temperature,
        )

    def default_options(self) -> SessionOptions:
        defaults = self.config.session
        return SessionOptions(cost_limit=defaults.cost_limit, auto_save=defaults.auto_save)

    def start_agent(
        self,
        agent_id: str,
        command: str,
        options: SessionOptions | None = None,
    ) -> AgentSession:
        """Create a pending session; call ``execute()`` to run it."""
        session = AgentSession(agent_id, command, self.services(), options or self.default_options())
        log.info("Created session %s for %s", session.id, agent_id)
        return session

    def start_conversation(
        self,
        agent_id: str,
        options: SessionOptions | None = None,
    ) -> ConversationalSession:
        """Create an idle conversation; call ``send()`` to start a turn."""
        conversation = ConversationalSession(
            agent_id, self.services(), options or self.default_options()
        )
        log.info("Created conversation %s for %s", conversation.id, agent_id)
        return conversation

    async def recover_session(self, session_id: str) -> AgentSession | ConversationalSession:
        """Rebuild a session or conversation from its stored snapshot.

        Raises:
            StorageNotConfiguredError: If no storage is configured.
            SessionNotFoundError: If no snapshot exists for ``session_id``.
        """
        state = await self.require_storage().load_session_state(session_id)
        if state.get("kind") == "conversation":
            return ConversationalSession.deserialize(state, self.services())
        return AgentSession.deserialize(state, self.services())

    async def list_sessions(self, options: SessionListOptions | None = None) -> SessionListResult:
        return await self.require_storage().list_sessions(options)

    async def delete_session(self, session_id: str) -> bool:
        return await self.require_storage().delete_session(session_id)

    async def _run_sub_agent(self, request: SubAgentRequest) -> SessionResult:
        options = SessionOptions(
            cost_limit=request.budget,
            context=request.context,
            parent_session_id=request.parent_session_id,
            is_sub_agent=True,
        )
        child = AgentSession(request.agent_id, request.command, self.services(sub_agents=False), options)
        child.tools.vfs.initialize_files(request.files)
        log.info("Sub-agent session %s (%s) for parent %s", child.id, request.agent_id, request.parent_session_id)
        return await child.execute()


__all__ = [
    "AgentClient",
    "create_default_provider",
    "create_storage",
]
