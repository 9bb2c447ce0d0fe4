"""Plumbing shared by AgentSession and ConversationalSession."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from agentsession.agents.registry import AgentSource
from agentsession.agents.schema import AgentDefinition
from agentsession.core.llm.provider import LLMProvider, Message
from agentsession.cost.tracker import DEFAULT_WARNING_THRESHOLDS, CostReport, CostTracker
from agentsession.events import EventEmitter, Handler
from agentsession.logging import get_logger
from agentsession.prompts.builder import SystemPromptBuilder
from agentsession.session.engine import SubAgentRunner, TurnEngine
from agentsession.session.state import PauseTimeoutError, Question, SessionOptions, SessionStateError
from agentsession.storage.base import (
    StorageAdapter,
    StorageError,
    StorageMetadata,
    StorageNotConfiguredError,
    StorageQueryOptions,
)
from agentsession.tools.sandbox import DEFAULT_ALLOWED_COMMANDS, Document, SandboxToolExecutor, VirtualFileSystem

log = get_logger("session")

DEFAULT_PAUSE_TIMEOUT = 300.0


@dataclass
class SessionServices:
    """Collaborators and defaults an executor is built with.

    Attributes:
        provider: Model provider
        agents: Resolves agent ids to definitions
        storage: Optional adapter for documents and snapshots
        prompt_builder: Turns an agent and its tools into the system prompt
        sub_agent_runner: Runs ``invoke_agent`` children; None disables the tool
        allowed_commands: Commands accepted by bash_command
        warning_thresholds: Budget fractions that raise cost warnings
        currency: Ledger currency
        pause_timeout: Seconds to wait for an answer when options give none
        max_tokens: Completion limit passed to the provider
        temperature: Sampling temperature passed to the provider
    """

    provider: LLMProvider
    agents: AgentSource
    storage: StorageAdapter | None = None
    prompt_builder: SystemPromptBuilder = field(default_factory=SystemPromptBuilder)
    sub_agent_runner: SubAgentRunner | None = None
    allowed_commands: tuple[str, ...] = DEFAULT_ALLOWED_COMMANDS
    warning_thresholds: tuple[float, ...] = DEFAULT_WARNING_THRESHOLDS
    currency: str = "USD"
    pause_timeout: float | None = DEFAULT_PAUSE_TIMEOUT
    max_tokens: int | None = None
    temperature: float | None = None


class BaseSession:
    """Owns the sandbox, ledger and engine for one executor instance."""

    def __init__(
        self,
        session_id: str,
        agent_id: str,
        services: SessionServices,
        options: SessionOptions | None = None,
    ) -> None:
        self.id = session_id
        self.agent_id = agent_id
        self.services = services
        self.options = options or SessionOptions()
        self.events = EventEmitter()
        self.created_at = time.time()

        self.tools = SandboxToolExecutor(VirtualFileSystem(), services.allowed_commands)
        self.ledger = CostTracker(
            services.provider,
            cost_limit=self.options.cost_limit,
            warning_thresholds=services.warning_thresholds,
            currency=services.currency,
        )
        self.ledger.events.on("cost-warning", lambda w: self.events.emit("cost-warning", w))

        runner = None if self.options.is_sub_agent else services.sub_agent_runner
        self.engine = TurnEngine(
            session_id,
            services.provider,
            self.tools,
            self.ledger,
            allow_questions=not self.options.is_sub_agent,
            sub_agent_runner=runner,
            max_tokens=services.max_tokens,
            temperature=services.temperature,
        )
        self.agent: AgentDefinition | None = None
        self._pending_question: Question | None = None
        self._answer_future: asyncio.Future[str] | None = None

    # Events

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        return self.events.on(event, handler)

    def once(self, event: str, handler: Handler) -> Callable[[], None]:
        return self.events.once(event, handler)

    def off(self, event: str, handler: Handler) -> None:
        self.events.off(event, handler)

    # Getters

    @property
    def storage(self) -> StorageAdapter | None:
        return self.services.storage

    @property
    def pending_question(self) -> Question | None:
        return self._pending_question

    def get_messages(self) -> list[Message]:
        return list(self.engine.messages)

    def get_documents(self) -> list[Document]:
        return self.tools.vfs.get_documents()

    def get_costs(self) -> CostReport:
        return self.ledger.get_report()

    # Preparation

    async def _prepare(self) -> None:
        """Load the agent and build the system prompt once per instance."""
        if self.agent is not None and self.engine.system_prompt is not None:
            return
        self.agent = await self.services.agents.load(self.agent_id)
        if self.engine.sub_agent_runner is not None and not self.engine.sub_agent_ids:
            lister = getattr(self.services.agents, "list_agents", None)
            if lister is not None:
                self.engine.sub_agent_ids = [a for a in lister() if a != self.agent_id]
        self.engine.system_prompt = self.services.prompt_builder.build(
            self.agent, self.engine.tool_definitions()
        )
        log.debug("Prepared %s with agent %s", self.id, self.agent_id)

    # Pause / resume

    def _pause_timeout(self) -> float | None:
        if self.options.pause_timeout is not None:
            return self.options.pause_timeout
        return self.services.pause_timeout

    async def _wait_for_answer(self, question: Question) -> str:
        self._pending_question = question
        self._answer_future = asyncio.get_running_loop().create_future()
        self._on_paused(question)
        self.events.emit("question", question)
        try:
            return await asyncio.wait_for(self._answer_future, self._pause_timeout())
        except asyncio.TimeoutError:
            raise PauseTimeoutError(
                f"No answer received within {self._pause_timeout()}s: {question.question}"
            ) from None
        finally:
            self._pending_question = None
            self._answer_future = None

    def _on_paused(self, question: Question) -> None:
        """Hook for subclasses to update status."""

    def _deliver_answer(self, text: str) -> None:
        """Store an answer for the pending question.

        Raises:
            SessionStateError: If no question is pending.
        """
        question = self._pending_question
        if question is None:
            raise SessionStateError("No pending question to answer")
        self._pending_question = None
        future = self._answer_future
        if future is not None and not future.done():
            future.set_result(text)
        else:
            # Restored from a snapshot: no loop is parked on the answer yet.
            self.engine.provide_answer(question.tool_call_id, text)

    # Storage

    def _require_storage(self, message: str = "Storage not configured") -> StorageAdapter:
        if self.services.storage is None:
            raise StorageNotConfiguredError(message)
        return self.services.storage

    def _metadata(self, command: str) -> StorageMetadata:
        return StorageMetadata(
            session_id=self.id,
            agent_id=self.agent_id,
            command=command,
            timestamp=time.time(),
        )

    async def _save_documents(self, command: str) -> list[str]:
        """Persist every document; returns the URLs the adapter reports."""
        storage = self.services.storage
        documents = self.get_documents()
        if storage is None or not documents:
            return []
        results = await storage.save_batch(documents, self._metadata(command))
        failed = [r.path for r in results if not r.success]
        if failed:
            log.warning("Failed to save documents for %s: %s", self.id, ", ".join(failed))
        return [r.url for r in results if r.success and r.url]

    def to_state_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    async def save_state(self) -> None:
        """Persist the current snapshot.

        Raises:
            StorageNotConfiguredError: If no adapter is configured.
            StorageError: If the adapter reports the write failed.
        """
        storage = self._require_storage()
        result = await storage.save_session_state(self.to_state_dict())
        if not result.success:
            raise StorageError(f"Failed to save session {self.id}: {result.error or 'unknown error'}")

    async def _auto_save(self) -> None:
        if not self.options.auto_save:
            return
        if self.services.storage is None:
            log.warning("auto_save is enabled but storage is not configured")
            return
        try:
            await self.save_state()
        except StorageError as e:
            log.warning("Auto-save for %s failed: %s", self.id, e)

    async def load_document(self, path: str) -> Document:
        """Copy a stored document into this session's virtual space."""
        storage = self._require_storage("Storage not configured - cannot load documents")
        document = await storage.load(path)
        self.tools.vfs.write(document.path, document.content)
        return document

    async def load_documents(self, paths: list[str]) -> list[Document]:
        return [await self.load_document(path) for path in paths]

    async def load_session_documents(self, session_id: str) -> list[Document]:
        """Load every document another session saved."""
        storage = self._require_storage("Storage not configured - cannot load documents")
        loaded: list[Document] = []
        offset = 0
        while True:
            listing = await storage.list(StorageQueryOptions(session_id=session_id, offset=offset))
            for info in listing.documents:
                loaded.append(await self.load_document(info.path))
            if not listing.has_more:
                return loaded
            offset += len(listing.documents)
