"""Single-shot executor: one command, run to a terminal state."""

from __future__ import annotations

import time
from typing import Any

from agentsession.cost.tracker import CostLimitExceededError
from agentsession.logging import get_logger
from agentsession.session.base import BaseSession, SessionServices
from agentsession.session.state import (
    PauseTimeoutError,
    Question,
    SessionOptions,
    SessionResult,
    SessionState,
    SessionStateError,
    SessionStatus,
    generate_id,
)

log = get_logger("session")


class AgentSession(BaseSession):
    """Runs one agent command through the turn loop.

    Lifecycle: pending -> running -> (paused <-> running) -> completed | failed | timeout.

    ``execute()`` never raises for ordinary failures; budget, provider, agent
    and storage errors end up in the returned SessionResult. Only misuse,
    such as executing a finished session, raises SessionStateError.

    Events:
        started(session_id)
        question(Question)
        resumed(session_id)
        cost-warning(CostWarning)
        completed(SessionResult) / failed(SessionResult) / timeout(SessionResult)

    A timeout emits ``timeout`` and then ``failed``, so a single ``failed``
    handler sees every unsuccessful run.
    """

    def __init__(
        self,
        agent_id: str,
        command: str,
        services: SessionServices,
        options: SessionOptions | None = None,
        *,
        session_id: str | None = None,
    ) -> None:
        super().__init__(session_id or generate_id("sess"), agent_id, services, options)
        self.command = command
        self._status = SessionStatus.PENDING
        self.started_at: float | None = None
        self.paused_at: float | None = None
        self.completed_at: float | None = None
        self._error_message: str | None = None
        self._executing = False
        self._result: SessionResult | None = None

    @property
    def status(self) -> SessionStatus:
        return self._status

    def get_status(self) -> SessionStatus:
        return self._status

    @property
    def result(self) -> SessionResult | None:
        """The terminal result once ``execute()`` has finished."""
        return self._result

    async def execute(self) -> SessionResult:
        """Run to a terminal state.

        A pending session starts fresh. A session restored from a snapshot
        continues where it left off; if it was paused, the question is asked
        again unless ``answer()`` was called first.

        Raises:
            SessionStateError: If the session is terminal or already executing.
        """
        if self._status.is_terminal:
            raise SessionStateError(f"Cannot execute session in {self._status.value} state")
        if self._executing:
            raise SessionStateError("Session is already executing")

        self._executing = True
        try:
            if self._status == SessionStatus.PENDING:
                self._status = SessionStatus.RUNNING
                self.started_at = time.time()
                log.info("Session %s started: %s %s", self.id, self.agent_id, self.command)
                self.events.emit("started", self.id)
            else:
                self._status = SessionStatus.RUNNING
                log.info("Session %s resumed from snapshot", self.id)

            error: Exception | None = None
            try:
                await self._prepare()
                if not self.engine.messages:
                    self.engine.add_user_message(self.command)
                await self.engine.run(self._wait_for_answer, self._auto_save)
                status = SessionStatus.COMPLETED
            except CostLimitExceededError as e:
                status, error = SessionStatus.FAILED, e
            except PauseTimeoutError as e:
                status, error = SessionStatus.TIMEOUT, e
            except Exception as e:
                log.error("Session %s failed: %s", self.id, e, exc_info=True)
                status, error = SessionStatus.FAILED, e

            return await self._finish(status, error)
        finally:
            self._executing = False

    async def _finish(self, status: SessionStatus, error: Exception | None) -> SessionResult:
        storage_urls: list[str] = []
        if status == SessionStatus.COMPLETED and self.storage is not None:
            try:
                storage_urls = await self._save_documents(self.command)
            except Exception as e:
                log.error("Session %s could not save documents: %s", self.id, e)
                status, error = SessionStatus.FAILED, e

        if error is not None:
            self.engine.abandon_tool_round(str(error))
            self._error_message = str(error)

        self._status = status
        self.completed_at = time.time()
        started = self.started_at or self.created_at

        result = SessionResult(
            session_id=self.id,
            status=status,
            documents=self.get_documents(),
            costs=self.get_costs(),
            duration_ms=(self.completed_at - started) * 1000,
            messages=self.get_messages(),
            final_response=self.engine.final_text if status == SessionStatus.COMPLETED else None,
            error=error,
            storage_urls=storage_urls,
        )
        self._result = result
        log.info(
            "Session %s %s: %d calls, %s %.4f",
            self.id,
            status.value,
            result.costs.api_calls,
            result.costs.currency,
            result.costs.total_cost,
        )

        try:
            await self._auto_save()
        except Exception as e:
            log.warning("Session %s auto-save failed: %s", self.id, e)

        self.events.emit(status.value, result)
        if status == SessionStatus.TIMEOUT:
            self.events.emit(SessionStatus.FAILED.value, result)
        return result

    def _on_paused(self, question: Question) -> None:
        self._status = SessionStatus.PAUSED
        self.paused_at = time.time()
        log.info("Session %s paused: %s", self.id, question.question)

    def answer(self, text: str) -> None:
        """Answer the pending question and resume the loop.

        Raises:
            SessionStateError: If the session is not paused on a question.
        """
        if self._status != SessionStatus.PAUSED or self._pending_question is None:
            raise SessionStateError("No pending question to answer")
        self._deliver_answer(text)
        self._status = SessionStatus.RUNNING
        self.events.emit("resumed", self.id)

    # Snapshots

    def serialize(self) -> SessionState:
        question = self._pending_question
        return SessionState(
            id=self.id,
            agent_id=self.agent_id,
            command=self.command,
            status=self._status,
            created_at=self.created_at,
            started_at=self.started_at,
            paused_at=self.paused_at,
            completed_at=self.completed_at,
            messages=self.get_messages(),
            vfs_files=self.tools.vfs.to_dict(),
            costs=self.get_costs(),
            emitted_warnings=sorted(self.ledger.emitted_warnings),
            options=SessionOptions.from_dict(self.options.to_dict()),
            pending_question=Question(**vars(question)) if question else None,
            pending_tool_results=list(self.engine.pending_results.values()),
            model=self.services.provider.model,
            error=self._error_message,
        )

    def to_state_dict(self) -> dict[str, Any]:
        return self.serialize().to_dict()

    @classmethod
    def deserialize(cls, state: SessionState | dict[str, Any], services: SessionServices) -> AgentSession:
        """Rebuild a session from a snapshot.

        Calling ``serialize()`` on the result yields the same state.
        """
        if isinstance(state, dict):
            state = SessionState.from_dict(state)

        session = cls(
            state.agent_id,
            state.command,
            services,
            SessionOptions.from_dict(state.options.to_dict()),
            session_id=state.id,
        )
        session._status = state.status
        session.created_at = state.created_at
        session.started_at = state.started_at
        session.paused_at = state.paused_at
        session.completed_at = state.completed_at
        session._error_message = state.error
        session.engine.messages = list(state.messages)
        session.engine.pending_results = {b.tool_use_id or "": b for b in state.pending_tool_results}
        session.tools.vfs.initialize_files(state.vfs_files)
        session.ledger.restore(state.costs, state.emitted_warnings)
        session._pending_question = state.pending_question
        log.debug("Session %s restored in %s state", state.id, state.status.value)
        return session
