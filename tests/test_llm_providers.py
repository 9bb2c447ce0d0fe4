"""Tests for model providers and the model catalog."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, Mock, patch

import litellm
import pytest

from agentsession.core.llm import (
    ContentBlock,
    LiteLLMProvider,
    LLMProvider,
    Message,
    Role,
    ScriptedProvider,
    ScriptedResponse,
    ScriptedRule,
    StopReason,
    ToolCall,
    ToolDefinition,
    Usage,
    create_provider,
    resolve_model,
    tool_call,
)


def create_mock_response(
    content: str | None = "Hello",
    *,
    tool_calls: list[tuple[str, str, str]] | None = None,
    finish_reason: str = "stop",
    prompt_tokens: int = 10,
    completion_tokens: int = 20,
) -> Mock:
    """Build an object shaped like a litellm ModelResponse."""
    response = Mock()
    message = Mock()
    message.content = content
    message.tool_calls = None
    if tool_calls:
        message.tool_calls = []
        for call_id, name, arguments in tool_calls:
            tc = Mock()
            tc.id = call_id
            tc.function = Mock()
            tc.function.name = name
            tc.function.arguments = arguments
            message.tool_calls.append(tc)
    choice = Mock()
    choice.message = message
    choice.finish_reason = finish_reason
    response.choices = [choice]
    response.usage = Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    return response


WRITE_TOOL = ToolDefinition(
    name="write_file",
    description="Write a file",
    input_schema={"type": "object", "properties": {"file_path": {"type": "string"}}},
)


class TestModelCatalog:
    """Test model lookup by id, alias and provider prefix."""

    def test_resolve_alias(self) -> None:
        spec = resolve_model("sonnet")
        assert spec.id == "claude-sonnet-4-20250514"
        assert spec.input_cost_per_1k == 0.003

    def test_provider_prefix_falls_back(self) -> None:
        assert resolve_model("anthropic/claude-3-5-haiku-20241022").name == "Claude Haiku 3.5"

    def test_unknown_model_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown model: ollama/llama3"):
            resolve_model("ollama/llama3")


class TestLiteLLMProvider:
    """Test message translation and response mapping."""

    def test_protocol(self) -> None:
        assert isinstance(create_provider("gpt-4o"), LLMProvider)
        assert isinstance(ScriptedProvider(), LLMProvider)

    def test_alias_resolves_to_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(litellm, "model_cost", {"ollama/llama3": {"input_cost_per_token": 0.0}})

        assert LiteLLMProvider("opus").model == "claude-opus-4-20250514"
        assert LiteLLMProvider("ollama/llama3").model == "ollama/llama3"

    def test_unlisted_model_priced_from_litellm(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(
            litellm,
            "model_cost",
            {
                "mistral-large-latest": {
                    "input_cost_per_token": 2e-06,
                    "output_cost_per_token": 6e-06,
                    "max_input_tokens": 128000,
                }
            },
        )
        provider = LiteLLMProvider("mistral/mistral-large-latest")

        cost = provider.calculate_cost(Usage(input_tokens=1000, output_tokens=1000))

        assert cost == pytest.approx(0.008)
        assert provider.get_model_info().max_tokens == 128000

    def test_unpriced_model_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(litellm, "model_cost", {})

        with pytest.raises(ValueError, match="Unknown model: acme/secret-model"):
            LiteLLMProvider("acme/secret-model")

    def test_build_kwargs(self) -> None:
        provider = LiteLLMProvider(
            "claude-sonnet-4-20250514",
            api_key="sk-test",
            api_base="http://localhost:8000",
            temperature=0.2,
        )

        kwargs = provider._build_kwargs(
            [Message(role=Role.USER, content="Hello!")],
            [WRITE_TOOL],
            system="You are helpful.",
            max_tokens=1000,
            temperature=None,
        )

        assert kwargs["model"] == "claude-sonnet-4-20250514"
        assert kwargs["max_tokens"] == 1000
        assert kwargs["temperature"] == 0.2
        assert kwargs["api_key"] == "sk-test"
        assert kwargs["api_base"] == "http://localhost:8000"
        assert kwargs["messages"] == [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello!"},
        ]
        assert kwargs["tools"][0]["function"]["name"] == "write_file"
        assert kwargs["tools"][0]["function"]["parameters"] == WRITE_TOOL.input_schema

    def test_build_kwargs_defaults(self) -> None:
        provider = LiteLLMProvider("gpt-4o", max_tokens=512)

        kwargs = provider._build_kwargs(
            [Message(role=Role.USER, content="Hi")], [], system=None, max_tokens=None, temperature=None
        )

        assert kwargs["max_tokens"] == 512
        assert "tools" not in kwargs
        assert "temperature" not in kwargs
        assert "api_key" not in kwargs

    def test_tool_history_translation(self) -> None:
        call = ToolCall("call_1", "write_file", {"file_path": "/a.md"})
        history = [
            Message(role=Role.USER, content="Write it"),
            Message(
                role=Role.ASSISTANT,
                content=(ContentBlock.text_block("On it"), ContentBlock.tool_use(call)),
            ),
            Message(
                role=Role.USER,
                content=(ContentBlock.tool_result("call_1", "File written: /a.md (1 bytes)"),),
            ),
        ]
        provider = LiteLLMProvider("gpt-4o")

        messages = provider._build_kwargs(
            history, [], system=None, max_tokens=None, temperature=None
        )["messages"]

        assert messages[1]["role"] == "assistant"
        assert messages[1]["content"] == "On it"
        assert messages[1]["tool_calls"][0]["id"] == "call_1"
        assert json.loads(messages[1]["tool_calls"][0]["function"]["arguments"]) == {"file_path": "/a.md"}
        assert messages[2] == {
            "role": "tool",
            "tool_call_id": "call_1",
            "content": "File written: /a.md (1 bytes)",
        }

    async def test_send_message_text(self) -> None:
        provider = LiteLLMProvider("claude-sonnet-4-20250514")

        with patch("litellm.acompletion", new_callable=AsyncMock) as mock_acompletion:
            mock_acompletion.return_value = create_mock_response("This is the response!")

            response = await provider.send_message(
                [Message(role=Role.USER, content="Test prompt")], [], max_tokens=100
            )

            mock_acompletion.assert_called_once()
            assert mock_acompletion.call_args.kwargs["max_tokens"] == 100

        assert response.message.text == "This is the response!"
        assert response.stop_reason == StopReason.END_TURN
        assert response.usage == Usage(10, 20)
        assert response.tool_calls == []

    async def test_send_message_tool_calls(self) -> None:
        provider = LiteLLMProvider("gpt-4o")
        mock_response = create_mock_response(
            None,
            tool_calls=[
                ("call_1", "write_file", '{"file_path": "/a.md", "content": "x"}'),
                ("call_2", "list_files", "not json"),
            ],
            finish_reason="tool_calls",
        )

        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=mock_response):
            response = await provider.send_message([Message(role=Role.USER, content="Go")], [WRITE_TOOL])

        assert response.stop_reason == StopReason.TOOL_USE
        assert [c.name for c in response.tool_calls] == ["write_file", "list_files"]
        assert response.tool_calls[0].input == {"file_path": "/a.md", "content": "x"}
        assert response.tool_calls[1].input == {}
        assert [c.id for c in response.message.tool_calls] == ["call_1", "call_2"]
        assert response.message.text == ""

    async def test_send_message_without_usage(self) -> None:
        provider = LiteLLMProvider("gpt-4o")
        mock_response = create_mock_response("Truncated", finish_reason="length")
        mock_response.usage = None

        with patch("litellm.acompletion", new_callable=AsyncMock, return_value=mock_response):
            response = await provider.send_message([Message(role=Role.USER, content="Go")], [])

        assert response.usage == Usage()
        assert response.stop_reason == StopReason.MAX_TOKENS

    def test_calculate_cost(self) -> None:
        provider = LiteLLMProvider("sonnet")

        cost = provider.calculate_cost(Usage(input_tokens=1000, output_tokens=1000))

        assert cost == pytest.approx(0.018)
        assert provider.get_model_info().max_tokens == 200000


class TestScriptedProvider:
    """Test queue, rule and default selection."""

    async def test_default_response(self) -> None:
        provider = ScriptedProvider()

        response = await provider.send_message([Message(role=Role.USER, content="hi")], [])

        assert response.message.text == "Mock response"
        assert provider.calculate_cost(response.usage) == pytest.approx(0.00105)
        assert provider.call_count == 1

    async def test_queue_before_rules(self) -> None:
        provider = ScriptedProvider()
        provider.add_rule(ScriptedRule(ScriptedResponse("from rule"), user_message_contains="hi"))
        provider.set_responses([ScriptedResponse("queued")])
        messages = [Message(role=Role.USER, content="hi")]

        first = await provider.send_message(messages, [])
        second = await provider.send_message(messages, [])

        assert first.message.text == "queued"
        assert second.message.text == "from rule"

    async def test_once_rule(self) -> None:
        provider = ScriptedProvider()
        provider.add_rule(ScriptedRule(ScriptedResponse("first time"), conversation_length=1, once=True))
        messages = [Message(role=Role.USER, content="hi")]

        assert (await provider.send_message(messages, [])).message.text == "first time"
        assert (await provider.send_message(messages, [])).message.text == "Mock response"

    async def test_tool_result_rule(self) -> None:
        provider = ScriptedProvider()
        provider.add_rule(ScriptedRule(ScriptedResponse("saw it"), tool_result_contains="File written"))
        messages = [
            Message(role=Role.USER, content=(ContentBlock.tool_result("t1", "File written: /a.md (1 bytes)"),)),
        ]

        assert (await provider.send_message(messages, [])).message.text == "saw it"

    async def test_tool_calls_set_stop_reason(self) -> None:
        provider = ScriptedProvider()
        provider.set_responses([ScriptedResponse(tool_calls=[tool_call("t1", "ls_files")])])

        response = await provider.send_message([Message(role=Role.USER, content="go")], [WRITE_TOOL])

        assert response.stop_reason == StopReason.TOOL_USE
        assert response.message.tool_calls == [ToolCall("t1", "ls_files", {})]
        assert provider.calls[0].tools == [WRITE_TOOL]

    def test_reset(self) -> None:
        provider = ScriptedProvider()
        provider.set_responses([ScriptedResponse("x")])
        provider.calls.append(Mock())

        provider.reset()

        assert provider.call_count == 0
