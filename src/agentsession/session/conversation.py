"""Continuable executor: many user turns against one agent."""

from __future__ import annotations

import asyncio
import time
from typing import Any

from agentsession.logging import get_logger
from agentsession.session.base import BaseSession, SessionServices
from agentsession.session.state import (
    ConversationResult,
    ConversationState,
    ConversationStatus,
    ConversationTimeoutError,
    ConversationTurn,
    Question,
    SessionOptions,
    SessionStateError,
    generate_id,
)

log = get_logger("session.conversation")


class ConversationalSession(BaseSession):
    """Open-ended conversation that toggles between idle and processing.

    ``send()`` validates state, starts processing in a background task and
    returns the turn id straight away. Use ``wait_for_completion()`` or the
    ``turn-completed`` event to get the result. Processing failures move the
    conversation to ``error`` and are emitted, never raised from ``send()``.

    Events:
        started(conversation_id)
        turn-started(turn_id, message)
        turn-completed(ConversationTurn)
        question(Question)
        resumed(conversation_id)
        cost-warning(CostWarning)
        error(Exception)
        ended(ConversationResult)
    """

    def __init__(
        self,
        agent_id: str,
        services: SessionServices,
        options: SessionOptions | None = None,
        *,
        conversation_id: str | None = None,
    ) -> None:
        super().__init__(conversation_id or generate_id("conv"), agent_id, services, options)
        self._status = ConversationStatus.IDLE
        self._turns: list[ConversationTurn] = []
        self._task: asyncio.Task[ConversationTurn] | None = None
        self._current_turn_id: str | None = None
        self._current_user_message: str | None = None
        self._last_error: BaseException | None = None
        self._error_message: str | None = None
        self._baseline = (0, 0, 0.0)
        self.started_at: float | None = None
        self.ended_at: float | None = None

    # Getters

    @property
    def status(self) -> ConversationStatus:
        return self._status

    def get_status(self) -> ConversationStatus:
        return self._status

    def is_idle(self) -> bool:
        return self._status == ConversationStatus.IDLE

    def get_history(self) -> list[ConversationTurn]:
        return list(self._turns)

    @property
    def last_error(self) -> BaseException | None:
        return self._last_error

    # Turns

    async def send(self, text: str) -> str:
        """Start a turn for ``text``; returns its id without waiting.

        Raises:
            SessionStateError: If the conversation has ended or is busy.
        """
        if self._status == ConversationStatus.ENDED:
            raise SessionStateError("Cannot send message to ended conversation")
        if self._status in (ConversationStatus.PROCESSING, ConversationStatus.WAITING_FOR_ANSWER):
            raise SessionStateError("Cannot send message while agent is still processing previous message")

        if self.started_at is None:
            self.started_at = time.time()
            self.events.emit("started", self.id)

        turn_id = generate_id("turn")
        self._status = ConversationStatus.PROCESSING
        self._current_turn_id = turn_id
        self._current_user_message = text
        self._last_error = None
        self._error_message = None
        report = self.ledger.get_report()
        self._baseline = (report.input_tokens, report.output_tokens, report.total_cost)
        self.engine.turn_tool_calls = []
        log.debug("Conversation %s turn %s started", self.id, turn_id)
        self.events.emit("turn-started", turn_id, text)

        self._start_task(text)
        return turn_id

    def _start_task(self, text: str | None) -> None:
        self._task = asyncio.create_task(self._process_turn(text))
        self._task.add_done_callback(self._on_task_done)

    @staticmethod
    def _on_task_done(task: asyncio.Task[ConversationTurn]) -> None:
        # Failures are delivered through the error event and wait_for_completion.
        if not task.cancelled():
            task.exception()

    async def _process_turn(self, text: str | None) -> ConversationTurn:
        try:
            await self._prepare()
            if text is not None:
                self.engine.add_user_message(text)
            response = await self.engine.run(self._wait_for_answer, self._auto_save)
        except Exception as e:
            self.engine.abandon_tool_round(str(e))
            self._status = ConversationStatus.ERROR
            self._last_error = e
            self._error_message = str(e)
            self._current_turn_id = None
            self._current_user_message = None
            log.error("Conversation %s turn failed: %s", self.id, e)
            self.events.emit("error", e)
            await self._auto_save_quietly()
            raise

        report = self.ledger.get_report()
        base_in, base_out, base_cost = self._baseline
        turn = ConversationTurn(
            id=self._current_turn_id or generate_id("turn"),
            user_message=self._current_user_message or "",
            agent_response=response,
            tool_calls=list(self.engine.turn_tool_calls),
            input_tokens=report.input_tokens - base_in,
            output_tokens=report.output_tokens - base_out,
            cost=report.total_cost - base_cost,
            timestamp=time.time(),
        )
        self._turns.append(turn)
        self._status = ConversationStatus.IDLE
        self._current_turn_id = None
        self._current_user_message = None
        log.debug("Conversation %s turn %s completed", self.id, turn.id)
        self.events.emit("turn-completed", turn)
        await self._auto_save_quietly()
        return turn

    async def _auto_save_quietly(self) -> None:
        try:
            await self._auto_save()
        except Exception as e:
            log.warning("Conversation %s auto-save failed: %s", self.id, e)

    async def wait_for_completion(self, timeout: float | None = None) -> ConversationTurn:
        """Wait for the in-flight turn and return it.

        Abandoning the wait on timeout does not cancel the turn.

        Raises:
            SessionStateError: If nothing is in flight and no turn has completed.
            ConversationTimeoutError: If ``timeout`` seconds pass first.
            Exception: Whatever failed the in-flight turn.
        """
        task = self._task
        if task is None or (task.done() and self._status != ConversationStatus.ERROR):
            if not self._turns:
                raise SessionStateError("No turns completed yet")
            return self._turns[-1]
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.TimeoutError:
            raise ConversationTimeoutError("Timeout waiting for completion") from None

    def _on_paused(self, question: Question) -> None:
        self._status = ConversationStatus.WAITING_FOR_ANSWER

    def answer(self, text: str) -> None:
        """Answer the pending question of the current turn.

        Raises:
            SessionStateError: If no question is pending.
        """
        if self._status != ConversationStatus.WAITING_FOR_ANSWER or self._pending_question is None:
            raise SessionStateError("No pending question to answer")
        self._deliver_answer(text)
        self._status = ConversationStatus.PROCESSING
        self.events.emit("resumed", self.id)
        if self._task is None or self._task.done():
            self._start_task(None)

    def resume(self) -> None:
        """Continue a turn that was in flight when the snapshot was taken.

        Raises:
            SessionStateError: If there is no interrupted turn to continue.
        """
        if self._status != ConversationStatus.PROCESSING or (self._task and not self._task.done()):
            raise SessionStateError("No interrupted turn to resume")
        self._start_task(None)

    async def end(self) -> ConversationResult:
        """Close the conversation and save its documents if storage is set.

        Raises:
            SessionStateError: While a turn is in flight or if already ended.
        """
        if self._status in (ConversationStatus.PROCESSING, ConversationStatus.WAITING_FOR_ANSWER):
            raise SessionStateError("Cannot end conversation while processing")
        if self._status == ConversationStatus.ENDED:
            raise SessionStateError("Conversation already ended")

        self._status = ConversationStatus.ENDED
        self.ended_at = time.time()
        storage_urls = await self._save_documents(command="conversation")
        report = self.ledger.get_report()
        result = ConversationResult(
            conversation_id=self.id,
            turns=list(self._turns),
            documents=self.get_documents(),
            total_cost=report.total_cost,
            total_tokens=report.total_tokens,
            duration_ms=(self.ended_at - (self.started_at or self.created_at)) * 1000,
            storage_urls=storage_urls,
        )
        log.info("Conversation %s ended after %d turns", self.id, len(self._turns))
        await self._auto_save_quietly()
        self.events.emit("ended", result)
        return result

    # Snapshots

    def serialize(self) -> ConversationState:
        question = self._pending_question
        return ConversationState(
            id=self.id,
            agent_id=self.agent_id,
            status=self._status,
            created_at=self.created_at,
            started_at=self.started_at,
            ended_at=self.ended_at,
            messages=self.get_messages(),
            turns=self.get_history(),
            vfs_files=self.tools.vfs.to_dict(),
            costs=self.get_costs(),
            emitted_warnings=sorted(self.ledger.emitted_warnings),
            options=SessionOptions.from_dict(self.options.to_dict()),
            pending_question=Question(**vars(question)) if question else None,
            pending_tool_results=list(self.engine.pending_results.values()),
            current_turn_id=self._current_turn_id,
            current_user_message=self._current_user_message,
            model=self.services.provider.model,
            error=self._error_message,
        )

    def to_state_dict(self) -> dict[str, Any]:
        return self.serialize().to_dict()

    @classmethod
    def deserialize(
        cls, state: ConversationState | dict[str, Any], services: SessionServices
    ) -> ConversationalSession:
        """Rebuild a conversation from a snapshot.

        A conversation captured mid-turn comes back in the same status; call
        ``answer()`` or ``resume()`` to continue it.
        """
        if isinstance(state, dict):
            state = ConversationState.from_dict(state)

        conversation = cls(
            state.agent_id,
            services,
            SessionOptions.from_dict(state.options.to_dict()),
            conversation_id=state.id,
        )
        conversation._status = state.status
        conversation.created_at = state.created_at
        conversation.started_at = state.started_at
        conversation.ended_at = state.ended_at
        conversation._turns = list(state.turns)
        conversation._current_turn_id = state.current_turn_id
        conversation._current_user_message = state.current_user_message
        conversation._error_message = state.error
        conversation.engine.messages = list(state.messages)
        conversation.engine.pending_results = {
            b.tool_use_id or "": b for b in state.pending_tool_results
        }
        conversation.tools.vfs.initialize_files(state.vfs_files)
        conversation.ledger.restore(state.costs, state.emitted_warnings)
        conversation._pending_question = state.pending_question
        # Tokens not attributed to completed turns belong to the in-flight one.
        conversation._baseline = (
            sum(t.input_tokens for t in state.turns),
            sum(t.output_tokens for t in state.turns),
            sum(t.cost for t in state.turns),
        )
        return conversation
