"""Tests for the provider-agnostic LLM types (agentrun/llm/base.py).

No SDK is involved; these cover the canonical message shape, usage
arithmetic, stream assembly and the adapter factory.
"""

import json
import pytest
from unittest.mock import MagicMock, patch

from agentrun.errors import ConfigurationError
from agentrun.llm import create_adapter
from agentrun.llm.base import (
    Message,
    ModelAdapter,
    ModelResponse,
    Role,
    StreamChunk,
    ToolCall,
    ToolCallDelta,
    Usage,
    assemble_stream,
)
from agentrun.settings import ModelSettings


# ---------------------------------------------------------------------------
# Data class tests
# ---------------------------------------------------------------------------


class TestToolCall:
    def test_defaults(self):
        tc = ToolCall(id="call_1", name="getWeather")
        assert tc.arguments == "{}"

    def test_to_dict_is_openai_shape(self):
        tc = ToolCall(id="call_1", name="getWeather", arguments='{"city": "Tokyo"}')
        assert tc.to_dict() == {
            "id": "call_1",
            "type": "function",
            "function": {"name": "getWeather", "arguments": '{"city": "Tokyo"}'},
        }

    def test_from_dict_keeps_string_arguments_verbatim(self):
        tc = ToolCall.from_dict({
            "id": "call_1",
            "function": {"name": "f", "arguments": '{"a":1}'},
        })
        assert tc.arguments == '{"a":1}'

    def test_from_dict_serializes_native_arguments(self):
        tc = ToolCall.from_dict({"id": "call_1", "function": {"name": "f", "arguments": {"a": 1}}})
        assert json.loads(tc.arguments) == {"a": 1}

    def test_from_dict_missing_arguments(self):
        tc = ToolCall.from_dict({"id": "call_1", "function": {"name": "f"}})
        assert tc.arguments == "{}"


class TestMessage:
    def test_role_coerced_from_string(self):
        msg = Message(role="user", content="hi")
        assert msg.role is Role.USER

    def test_invalid_role_rejected(self):
        with pytest.raises(ValueError):
            Message(role="narrator", content="hi")

    def test_constructors(self):
        assert Message.system("be nice").role is Role.SYSTEM
        assert Message.user("hi").content == "hi"
        assert Message.assistant(None).tool_calls == []

    def test_tool_message_to_dict(self):
        msg = Message.tool("call_1", "getWeather", "sunny")
        assert msg.to_dict() == {
            "role": "tool",
            "content": "sunny",
            "tool_call_id": "call_1",
            "name": "getWeather",
        }

    def test_assistant_with_tool_calls_to_dict(self):
        msg = Message.assistant(None, [ToolCall(id="call_1", name="f", arguments="{}")])
        data = msg.to_dict()
        assert data["role"] == "assistant"
        assert data["content"] is None
        assert data["tool_calls"][0]["function"]["name"] == "f"
        assert "tool_call_id" not in data

    def test_plain_message_has_no_tool_keys(self):
        data = Message.user("hi").to_dict()
        assert data == {"role": "user", "content": "hi"}

    def test_from_dict_round_trip(self):
        original = Message.assistant("Let me check", [ToolCall(id="call_1", name="f", arguments='{"x": 2}')])
        assert Message.from_dict(original.to_dict()) == original


class TestUsage:
    def test_defaults(self):
        u = Usage()
        assert (u.prompt_tokens, u.completion_tokens, u.total_tokens) == (0, 0, 0)

    def test_addition(self):
        total = Usage(10, 5, 15) + Usage(1, 2, 3)
        assert total == Usage(11, 7, 18)

    def test_from_dict_missing_fields_are_zero(self):
        u = Usage.from_dict({"prompt_tokens": 7})
        assert u == Usage(7, 0, 0)

    def test_from_dict_does_not_derive_total(self):
        u = Usage.from_dict({"prompt_tokens": 7, "completion_tokens": 3})
        assert u.total_tokens == 0

    def test_from_counts_computes_total(self):
        assert Usage.from_counts(100, 50).total_tokens == 150

    def test_from_counts_keeps_reported_total(self):
        assert Usage.from_counts(100, 50, 175).total_tokens == 175

    def test_from_counts_none_values(self):
        assert Usage.from_counts(None, None) == Usage(0, 0, 0)


class TestModelResponse:
    def test_defaults(self):
        r = ModelResponse()
        assert r.message is None
        assert r.usage is None
        assert r.raw is None

    def test_from_completion_dict(self):
        r = ModelResponse.from_completion_dict({
            "choices": [{
                "message": {"role": "assistant", "content": "Hello"},
                "finish_reason": "stop",
            }],
            "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
        })
        assert r.message.content == "Hello"
        assert r.finish_reason == "stop"
        assert r.usage == Usage(3, 1, 4)

    def test_from_completion_dict_without_choices(self):
        r = ModelResponse.from_completion_dict({"choices": []})
        assert r.message is None


# ---------------------------------------------------------------------------
# Stream assembly
# ---------------------------------------------------------------------------


class TestAssembleStream:
    def test_text_only(self):
        chunks = [
            StreamChunk(delta_content="Hel"),
            StreamChunk(delta_content="lo"),
            StreamChunk(finish_reason="stop"),
        ]
        r = assemble_stream(chunks)
        assert r.message.content == "Hello"
        assert r.message.tool_calls == []
        assert r.finish_reason == "stop"

    def test_tool_call_fragments_concatenate_by_index(self):
        chunks = [
            StreamChunk(delta_tool_call=ToolCallDelta(index=0, id="call_1", name="getWeather")),
            StreamChunk(delta_tool_call=ToolCallDelta(index=0, arguments='{"city": ')),
            StreamChunk(delta_tool_call=ToolCallDelta(index=1, id="call_2", name="add", arguments='{"a": 1}')),
            StreamChunk(delta_tool_call=ToolCallDelta(index=0, arguments='"Tokyo"}')),
            StreamChunk(finish_reason="tool_calls"),
        ]
        r = assemble_stream(chunks)
        assert r.message.content is None
        assert [tc.id for tc in r.message.tool_calls] == ["call_1", "call_2"]
        assert json.loads(r.message.tool_calls[0].arguments) == {"city": "Tokyo"}
        assert r.finish_reason == "tool_calls"

    def test_empty_stream(self):
        r = assemble_stream([])
        assert r.message.content == ""
        assert r.finish_reason is None


# ---------------------------------------------------------------------------
# ModelAdapter ABC
# ---------------------------------------------------------------------------


class _StubAdapter(ModelAdapter):
    provider = "stub"

    def invoke(self, messages, options=None):
        return ModelResponse()

    async def invoke_async(self, messages, options=None):
        return ModelResponse()

    def invoke_stream(self, messages, options=None):
        yield StreamChunk()

    async def invoke_stream_async(self, messages, options=None):
        yield StreamChunk()


class TestModelAdapter:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            ModelAdapter()

    def test_merge_options_overlays_call_options(self):
        adapter = _StubAdapter(ModelSettings(model="m1", temperature=0.2))
        merged = adapter.merge_options({"temperature": 0.9, "tools": []})
        assert merged == {"model": "m1", "temperature": 0.9, "tools": []}

    def test_merge_options_call_model_wins(self):
        adapter = _StubAdapter(ModelSettings(model="m1"))
        assert adapter.merge_options({"model": "m2"})["model"] == "m2"

    def test_merge_options_requires_model(self):
        adapter = _StubAdapter()
        with pytest.raises(ConfigurationError, match="No model configured"):
            adapter.merge_options({"temperature": 0.5})


class TestCreateAdapter:
    def test_openai(self):
        with patch("agentrun.llm.openai_adapter.openai") as mock_openai:
            adapter = create_adapter("openai", "test-key")
        assert adapter.provider == "openai"
        mock_openai.OpenAI.assert_called_once()

    def test_anthropic_case_insensitive(self):
        with patch("agentrun.llm.anthropic_adapter.anthropic") as mock_anthropic:
            adapter = create_adapter("Anthropic", "test-key")
        assert adapter.provider == "anthropic"
        mock_anthropic.Anthropic.assert_called_once()

    def test_base_url_forwarded(self):
        with patch("agentrun.llm.openai_adapter.openai") as mock_openai:
            create_adapter("openai", "test-key", base_url="http://localhost:11434/v1")
        kwargs = mock_openai.OpenAI.call_args.kwargs
        assert kwargs["base_url"] == "http://localhost:11434/v1"

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError, match="Unknown LLM provider"):
            create_adapter("gemini", "test-key")
