"""The turn loop shared by both executors.

The loop is driven entirely by the message history, so a restored session
re-enters it at the right point:

- last message is a user message: call the provider
- last message is an assistant message with unanswered tool calls: run the tool round
- last message is an assistant message without tool calls: the turn is done
"""

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from typing import Any

from agentsession.core.llm.provider import (
    BlockType,
    ContentBlock,
    LLMProvider,
    Message,
    Role,
    ToolCall,
    ToolDefinition,
)
from agentsession.cost.tracker import ChildSessionCost, CostTracker
from agentsession.logging import get_logger
from agentsession.session.state import Question, SessionResult, SessionStatus
from agentsession.tools.definitions import ASK_USER, ASK_USER_TOOL, INVOKE_AGENT, invoke_agent_definition
from agentsession.tools.sandbox import SandboxToolExecutor, ToolResult

log = get_logger("session.engine")

AskHandler = Callable[[Question], Awaitable[str]]
AfterCallHook = Callable[[], Awaitable[None]]


@dataclass
class SubAgentRequest:
    """What a parent session hands to the sub-agent runner."""

    agent_id: str
    command: str
    parent_session_id: str
    context: dict[str, Any] = field(default_factory=dict)
    budget: float | None = None
    files: dict[str, str] = field(default_factory=dict)


SubAgentRunner = Callable[[SubAgentRequest], Awaitable[SessionResult]]


class TurnEngine:
    """Message history, tool dispatch and budget accounting for one session."""

    def __init__(
        self,
        session_id: str,
        provider: LLMProvider,
        tools: SandboxToolExecutor,
        ledger: CostTracker,
        *,
        allow_questions: bool = True,
        sub_agent_runner: SubAgentRunner | None = None,
        sub_agent_ids: list[str] | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> None:
        self.session_id = session_id
        self.provider = provider
        self.tools = tools
        self.ledger = ledger
        self.allow_questions = allow_questions
        self.sub_agent_runner = sub_agent_runner
        self.sub_agent_ids = list(sub_agent_ids or [])
        self.max_tokens = max_tokens
        self.temperature = temperature

        self.messages: list[Message] = []
        self.system_prompt: str | None = None
        self.pending_results: dict[str, ContentBlock] = {}
        self.turn_tool_calls: list[str] = []

    def tool_definitions(self) -> list[ToolDefinition]:
        """Tools declared to the model, in prompt order."""
        definitions = self.tools.definitions()
        if self.allow_questions:
            definitions.append(ASK_USER_TOOL)
        if self.sub_agent_runner is not None:
            definitions.append(invoke_agent_definition(self.sub_agent_ids))
        return definitions

    def add_user_message(self, text: str) -> None:
        self.messages.append(Message(role=Role.USER, content=text))

    @property
    def final_text(self) -> str | None:
        for message in reversed(self.messages):
            if message.role == Role.ASSISTANT:
                return message.text
        return None

    def _open_tool_calls(self) -> list[ToolCall]:
        if not self.messages:
            return []
        last = self.messages[-1]
        if last.role != Role.ASSISTANT:
            return []
        return last.tool_calls

    async def run(self, ask: AskHandler, after_call: AfterCallHook | None = None) -> str:
        """Drive the loop until the model stops requesting tools.

        Returns the final assistant text.

        Raises:
            CostLimitExceededError: If a provider call pushes spend over budget.
            PauseTimeoutError: If ``ask`` gives up waiting for an answer.
        """
        while True:
            if self.messages and self.messages[-1].role == Role.ASSISTANT:
                calls = self._open_tool_calls()
                if not calls:
                    return self.messages[-1].text
                await self._run_tool_round(calls, ask)
                continue
            await self._call_provider()
            if after_call is not None:
                await after_call()

    async def _call_provider(self) -> None:
        response = await self.provider.send_message(
            list(self.messages),
            self.tool_definitions(),
            system=self.system_prompt,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )
        log.debug(
            "Provider response stop=%s tool_calls=%d",
            response.stop_reason.value,
            len(response.tool_calls),
        )
        # Raises before the message is appended, so a blown budget never
        # leaves tool calls without results.
        self.ledger.record_usage(response.usage, self.provider.model)
        self.messages.append(self._normalize(response.message, response.tool_calls))

    @staticmethod
    def _normalize(message: Message, tool_calls: list[ToolCall]) -> Message:
        """Give every reported tool call its own tool_use block with a unique id.

        Repeated or missing ids are rewritten so each call is paired with
        exactly one result.
        """
        blocks = list(message.blocks)
        present = {b.id for b in blocks if b.id}
        blocks.extend(ContentBlock.tool_use(c) for c in tool_calls if c.id not in present)
        present.update(c.id for c in tool_calls if c.id)

        seen: set[str] = set()
        for i, block in enumerate(blocks):
            if block.type != BlockType.TOOL_USE:
                continue
            if block.id and block.id not in seen:
                seen.add(block.id)
                continue
            base, n = block.id or "call", 1
            while f"{base}_{n}" in seen or f"{base}_{n}" in present:
                n += 1
            log.warning("Tool call id %r repeated in one response; using %s_%d", block.id, base, n)
            blocks[i] = replace(block, id=f"{base}_{n}")
            seen.add(f"{base}_{n}")
        return Message(role=Role.ASSISTANT, content=tuple(blocks))

    async def _run_tool_round(self, calls: list[ToolCall], ask: AskHandler) -> None:
        for call in calls:
            if call.id in self.pending_results or call.name == ASK_USER:
                continue
            result = await self._execute(call)
            self._record(call, result)

        for call in calls:
            if call.id in self.pending_results:
                continue
            if not self.allow_questions:
                self._record(
                    call,
                    ToolResult(success=False, error="ask_user is not available in sub-agent sessions"),
                )
                continue
            question = Question(
                question=str(call.input.get("question", "")),
                context=call.input.get("context"),
                tool_call_id=call.id,
            )
            answer = await ask(question)
            self.provide_answer(call.id, answer)

        results = tuple(self.pending_results[call.id] for call in calls)
        self.messages.append(Message(role=Role.USER, content=results))
        self.pending_results.clear()

    def _record(self, call: ToolCall, result: ToolResult) -> None:
        self.turn_tool_calls.append(call.name)
        self.pending_results[call.id] = ContentBlock.tool_result(
            call.id, result.text, is_error=not result.success
        )

    def provide_answer(self, tool_call_id: str, answer: str) -> None:
        self.turn_tool_calls.append(ASK_USER)
        self.pending_results[tool_call_id] = ContentBlock.tool_result(tool_call_id, answer)

    def abandon_tool_round(self, reason: str) -> None:
        """Close an interrupted tool round so every call has a result."""
        calls = self._open_tool_calls()
        if not calls:
            return
        results = tuple(
            self.pending_results.get(c.id) or ContentBlock.tool_result(c.id, f"Error: {reason}", is_error=True)
            for c in calls
        )
        self.messages.append(Message(role=Role.USER, content=results))
        self.pending_results.clear()

    async def _execute(self, call: ToolCall) -> ToolResult:
        if call.name == INVOKE_AGENT:
            return await self._invoke_agent(call)
        return await self.tools.execute(call)

    async def _invoke_agent(self, call: ToolCall) -> ToolResult:
        if self.sub_agent_runner is None:
            return ToolResult(success=False, error="Sub-agents cannot invoke other agents")

        agent_id = call.input.get("agent_id")
        command = call.input.get("command")
        if not agent_id or not command:
            return ToolResult(success=False, error="invoke_agent requires agent_id and command")
        context = call.input.get("context") or {}
        if not isinstance(context, dict):
            return ToolResult(success=False, error="invoke_agent context must be an object")

        remaining = self.ledger.get_remaining_budget()
        request = SubAgentRequest(
            agent_id=str(agent_id),
            command=str(command),
            parent_session_id=self.session_id,
            context=dict(context),
            budget=None if math.isinf(remaining) else remaining,
            files=self.tools.vfs.to_dict(),
        )
        log.info("Invoking sub-agent %s: %s", request.agent_id, request.command)
        result = await self.sub_agent_runner(request)

        if result.status != SessionStatus.COMPLETED:
            log.warning("Sub-agent %s ended %s: %s", agent_id, result.status.value, result.error_message)
            return ToolResult(
                success=False,
                error=f"Agent {agent_id} {result.status.value}: {result.error_message or 'no result'}",
            )

        for document in result.documents:
            self.tools.vfs.write(document.path, document.content)
        self.ledger.add_child_session(
            ChildSessionCost(
                session_id=result.session_id,
                agent=request.agent_id,
                command=request.command,
                total_cost=result.costs.total_cost,
                input_tokens=result.costs.input_tokens,
                output_tokens=result.costs.output_tokens,
                api_calls=result.costs.api_calls,
            )
        )
        paths = ", ".join(d.path for d in result.documents) or "none"
        return ToolResult(
            success=True,
            content=f"{result.final_response or ''}\n\nDocuments: {paths}".strip(),
            metadata={"session_id": result.session_id, "cost": result.costs.total_cost},
        )
