"""Tests for the continuable ConversationalSession executor."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from agentsession.core.llm import ScriptedProvider, ScriptedResponse, tool_call
from agentsession.cost import CostLimitExceededError
from agentsession.session import (
    ConversationalSession,
    ConversationStatus,
    ConversationTimeoutError,
    ConversationTurn,
    Question,
    SessionOptions,
    SessionServices,
    SessionStateError,
)
from agentsession.storage import InMemoryStorageAdapter
from tests.utils import make_services


def slow_down(provider: ScriptedProvider, delay: float) -> None:
    """Make every provider call take ``delay`` seconds."""
    original = provider.send_message

    async def delayed(*args: Any, **kwargs: Any) -> Any:
        await asyncio.sleep(delay)
        return await original(*args, **kwargs)

    provider.send_message = delayed  # type: ignore[method-assign]


class TestTurns:
    """Test sending messages and collecting turns."""

    async def test_send_and_wait(self, services: SessionServices, provider: ScriptedProvider) -> None:
        provider.set_responses([ScriptedResponse("Hello! How can I help?")])
        conversation = ConversationalSession("analyst", services)
        assert conversation.is_idle()

        turn_id = await conversation.send("Hi")
        turn = await conversation.wait_for_completion()

        assert turn.id == turn_id
        assert turn_id.startswith("turn_")
        assert turn.user_message == "Hi"
        assert turn.agent_response == "Hello! How can I help?"
        assert turn.input_tokens == 100
        assert turn.output_tokens == 50
        assert turn.cost == pytest.approx(0.1 * 0.003 + 0.05 * 0.015)
        assert conversation.status == ConversationStatus.IDLE
        assert conversation.get_history() == [turn]

    async def test_conversation_id_format(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        assert conversation.id.startswith("conv_")

    async def test_events(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        events: list[tuple[str, tuple[Any, ...]]] = []
        for name in ("started", "turn-started", "turn-completed"):
            conversation.on(name, lambda *args, _name=name: events.append((_name, args)))

        turn_id = await conversation.send("First")
        await conversation.wait_for_completion()
        await conversation.send("Second")
        await conversation.wait_for_completion()

        names = [name for name, _ in events]
        assert names == [
            "started",
            "turn-started",
            "turn-completed",
            "turn-started",
            "turn-completed",
        ]
        assert events[1][1] == (turn_id, "First")
        assert isinstance(events[2][1][0], ConversationTurn)

    async def test_history_carries_across_turns(
        self, services: SessionServices, provider: ScriptedProvider
    ) -> None:
        provider.set_responses([ScriptedResponse("One"), ScriptedResponse("Two")])
        conversation = ConversationalSession("analyst", services)

        await conversation.send("first")
        await conversation.wait_for_completion()
        await conversation.send("second")
        second = await conversation.wait_for_completion()

        sent = provider.calls[1].messages
        assert [m.text for m in sent] == ["first", "One", "second"]
        assert second.agent_response == "Two"
        assert len(conversation.get_history()) == 2

    async def test_turn_costs_are_per_turn(
        self, services: SessionServices, provider: ScriptedProvider
    ) -> None:
        provider.set_responses(
            [
                ScriptedResponse("Big", input_tokens=1000, output_tokens=500),
                ScriptedResponse("Small", input_tokens=10, output_tokens=5),
            ]
        )
        conversation = ConversationalSession("analyst", services)

        await conversation.send("a")
        await conversation.wait_for_completion()
        await conversation.send("b")
        small = await conversation.wait_for_completion()

        assert (small.input_tokens, small.output_tokens) == (10, 5)
        assert conversation.get_costs().input_tokens == 1010

    async def test_tool_calls_recorded_on_turn(
        self, services: SessionServices, provider: ScriptedProvider
    ) -> None:
        provider.set_responses(
            [
                ScriptedResponse(tool_calls=[tool_call("w", "write_file", file_path="/notes.md", content="n")]),
                ScriptedResponse("Saved your notes"),
            ]
        )
        conversation = ConversationalSession("analyst", services)

        await conversation.send("Save notes")
        turn = await conversation.wait_for_completion()

        assert turn.tool_calls == ["write_file"]
        assert turn.input_tokens == 200
        assert [d.path for d in conversation.get_documents()] == ["/notes.md"]


class TestPreconditions:
    """Test state checks on send, end and answer."""

    @staticmethod
    def script_question(provider: ScriptedProvider) -> None:
        provider.set_responses(
            [
                ScriptedResponse(tool_calls=[tool_call("q", "ask_user", question="Which market?")]),
                ScriptedResponse("Great, focusing on Europe"),
            ]
        )

    async def test_send_while_waiting_for_answer(
        self, services: SessionServices, provider: ScriptedProvider
    ) -> None:
        self.script_question(provider)
        conversation = ConversationalSession("analyst", services)
        asked = asyncio.Event()
        questions: list[Question] = []
        conversation.on("question", lambda q: (questions.append(q), asked.set()))

        await conversation.send("Plan a launch")
        await asyncio.wait_for(asked.wait(), timeout=1)

        assert conversation.status == ConversationStatus.WAITING_FOR_ANSWER
        with pytest.raises(SessionStateError, match="still processing previous message"):
            await conversation.send("another")
        with pytest.raises(SessionStateError, match="Cannot end conversation while processing"):
            await conversation.end()

        conversation.answer("Europe")
        assert conversation.status == ConversationStatus.PROCESSING
        turn = await conversation.wait_for_completion(timeout=1)

        assert questions[0].question == "Which market?"
        assert turn.agent_response == "Great, focusing on Europe"
        assert turn.tool_calls == ["ask_user"]
        assert conversation.is_idle()

    async def test_send_while_processing(self, services: SessionServices, provider: ScriptedProvider) -> None:
        slow_down(provider, 0.05)
        conversation = ConversationalSession("analyst", services)

        await conversation.send("one")
        with pytest.raises(SessionStateError, match="still processing"):
            await conversation.send("two")
        await conversation.wait_for_completion()

    async def test_send_after_end(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        await conversation.end()

        with pytest.raises(SessionStateError, match="Cannot send message to ended conversation"):
            await conversation.send("hello?")

    async def test_answer_without_question(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        with pytest.raises(SessionStateError, match="No pending question to answer"):
            conversation.answer("x")

    async def test_wait_without_turns(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        with pytest.raises(SessionStateError, match="No turns completed yet"):
            await conversation.wait_for_completion()


class TestWaiting:
    """Test wait_for_completion semantics."""

    async def test_timeout_does_not_cancel_turn(
        self, services: SessionServices, provider: ScriptedProvider
    ) -> None:
        slow_down(provider, 0.1)
        conversation = ConversationalSession("analyst", services)
        completed: list[ConversationTurn] = []
        conversation.on("turn-completed", completed.append)

        await conversation.send("Think hard")
        with pytest.raises(ConversationTimeoutError, match="Timeout waiting for completion"):
            await conversation.wait_for_completion(timeout=0.01)
        assert conversation.status == ConversationStatus.PROCESSING

        turn = await conversation.wait_for_completion(timeout=1)
        assert completed == [turn]

    async def test_returns_last_turn_when_idle(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        await conversation.send("hi")
        first = await conversation.wait_for_completion()

        assert await conversation.wait_for_completion() is first


class TestErrors:
    """Test failure handling inside background processing."""

    async def test_cost_limit_surfaces_through_error_and_wait(self, provider: ScriptedProvider) -> None:
        provider.set_responses([ScriptedResponse("pricey", input_tokens=1500, output_tokens=250)])
        conversation = ConversationalSession(
            "analyst", make_services(provider), SessionOptions(cost_limit=0.001)
        )
        errors: list[Exception] = []
        conversation.on("error", errors.append)

        await conversation.send("expensive question")
        with pytest.raises(CostLimitExceededError, match="Cost limit exceeded"):
            await conversation.wait_for_completion()

        assert conversation.status == ConversationStatus.ERROR
        assert len(errors) == 1
        assert isinstance(errors[0], CostLimitExceededError)
        assert conversation.get_history() == []

    async def test_send_allowed_after_error(self, services: SessionServices, provider: ScriptedProvider) -> None:
        original = provider.send_message
        calls = 0

        async def flaky(*args: Any, **kwargs: Any) -> Any:
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConnectionError("network blip")
            return await original(*args, **kwargs)

        provider.send_message = flaky  # type: ignore[method-assign]
        conversation = ConversationalSession("analyst", services)

        await conversation.send("first")
        with pytest.raises(ConnectionError):
            await conversation.wait_for_completion()
        assert conversation.status == ConversationStatus.ERROR

        await conversation.send("retry")
        turn = await conversation.wait_for_completion()
        assert turn.user_message == "retry"
        assert conversation.is_idle()

    async def test_cost_warnings_fire_once(self, provider: ScriptedProvider) -> None:
        conversation = ConversationalSession(
            "analyst", make_services(provider), SessionOptions(cost_limit=0.01)
        )
        percentages: list[float] = []
        conversation.on("cost-warning", lambda w: percentages.append(w.percentage))

        # Each default turn costs 0.00105, so six turns reach 63%.
        for _ in range(6):
            await conversation.send("again")
            await conversation.wait_for_completion()

        assert percentages == [0.5]


class TestEnd:
    """Test closing a conversation."""

    async def test_end_returns_result(self, services: SessionServices, provider: ScriptedProvider) -> None:
        provider.set_responses(
            [
                ScriptedResponse(tool_calls=[tool_call("w", "write_file", file_path="/brief.md", content="brief")]),
                ScriptedResponse("Wrote the brief"),
            ]
        )
        conversation = ConversationalSession("analyst", services)
        ended: list[Any] = []
        conversation.on("ended", ended.append)

        await conversation.send("Write a brief")
        await conversation.wait_for_completion()
        result = await conversation.end()

        assert result.conversation_id == conversation.id
        assert len(result.turns) == 1
        assert [d.path for d in result.documents] == ["/brief.md"]
        assert result.total_tokens == 300
        assert result.total_cost == pytest.approx(conversation.get_costs().total_cost)
        assert conversation.status == ConversationStatus.ENDED
        assert ended == [result]

    async def test_end_saves_documents(
        self, provider: ScriptedProvider, storage: InMemoryStorageAdapter
    ) -> None:
        provider.set_responses(
            [
                ScriptedResponse(tool_calls=[tool_call("w", "write_file", file_path="/brief.md", content="brief")]),
                ScriptedResponse("Done"),
            ]
        )
        conversation = ConversationalSession("analyst", make_services(provider, storage=storage))
        await conversation.send("Write a brief")
        await conversation.wait_for_completion()

        await conversation.end()

        assert (await storage.load("/brief.md")).content == "brief"
        assert (await storage.get_metadata("/brief.md")).session_id == conversation.id

    async def test_end_twice_fails(self, services: SessionServices) -> None:
        conversation = ConversationalSession("analyst", services)
        await conversation.end()
        with pytest.raises(SessionStateError):
            await conversation.end()
