"""Anthropic adapter: wraps the ``anthropic`` SDK for Claude models.

This is the **only** module that imports the ``anthropic`` package.

Key Anthropic API differences from the canonical (OpenAI) format:
- System prompt is a separate ``system`` parameter, not a message.
- Strict user/assistant alternation required: consecutive same-role messages
  must be merged.
- There is no tool role: tool results are sent inside a ``user`` message as
  ``tool_result`` blocks, and tool calls are ``tool_use`` blocks in the
  assistant content.
- Tool arguments are native JSON objects (``input``), not JSON strings.
- Message content must be non-empty.

The translation is split into pure functions (``to_wire`` / ``from_wire`` and
the response/event parsers) so it can be tested without the SDK.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator
from typing import Any, Optional

import anthropic

from .. import config
from ..errors import ConfigurationError, MessageValidationError, ProviderCallFailed
from ..logging import get_logger, log_error
from ..settings import ModelSettings
from .base import (
    Message,
    ModelAdapter,
    ModelResponse,
    Role,
    StreamChunk,
    ToolCall,
    ToolCallDelta,
    Usage,
)

logger = get_logger()

DEFAULT_MAX_TOKENS = 4096

# Anthropic stop_reason -> canonical finish reason
_STOP_REASONS = {
    "end_turn": "stop",
    "stop_sequence": "stop",
    "tool_use": "tool_calls",
    "max_tokens": "length",
}

# Extra request keys forwarded verbatim; everything else is OpenAI-specific
_PASSTHROUGH_KEYS = ("top_p", "top_k", "stop_sequences", "metadata", "thinking")
_HANDLED_KEYS = {"model", "max_tokens", "temperature", "tools", "tool_choice", *_PASSTHROUGH_KEYS}


# ---------------------------------------------------------------------------
# Canonical -> wire
# ---------------------------------------------------------------------------

def _parse_input(tool_call: ToolCall) -> dict:
    """Decode a canonical JSON argument string into an Anthropic ``input`` object."""
    if not tool_call.arguments:
        return {}
    try:
        value = json.loads(tool_call.arguments)
    except json.JSONDecodeError as exc:
        raise MessageValidationError(
            f"Tool call {tool_call.id} ({tool_call.name}) has invalid JSON arguments: {exc}"
        ) from exc
    if not isinstance(value, dict):
        raise MessageValidationError(
            f"Tool call {tool_call.id} ({tool_call.name}) arguments must be a JSON object"
        )
    return value


def _ensure_alternation(messages: list[dict]) -> list[dict]:
    """Merge consecutive same-role messages to satisfy Anthropic's alternation rule.

    Anthropic requires strict user/assistant alternation. If two consecutive
    messages have the same role, merge their content.
    """
    if not messages:
        return messages

    merged: list[dict] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            prev = merged[-1]
            # Merge content: both could be str or list
            prev_content = prev.get("content", "")
            new_content = msg.get("content", "")

            # Normalize to list form for merging
            if isinstance(prev_content, str):
                prev_list = [{"type": "text", "text": prev_content}] if prev_content else []
            else:
                prev_list = list(prev_content)

            if isinstance(new_content, str):
                new_list = [{"type": "text", "text": new_content}] if new_content else []
            else:
                new_list = list(new_content)

            prev["content"] = prev_list + new_list
        else:
            merged.append(dict(msg))

    return merged


def to_wire(messages: list[Message]) -> tuple[Optional[str], list[dict]]:
    """Translate a canonical transcript into Anthropic ``(system, messages)``.

    Raises:
        MessageValidationError: If no non-empty user message remains after
            the system prompt is extracted. Anthropic requires at least one,
            and no placeholder is invented.
    """
    system_parts: list[str] = []
    wire: list[dict] = []
    has_user = False

    for message in messages:
        if message.role is Role.SYSTEM:
            if message.content:
                system_parts.append(message.content)
        elif message.role is Role.USER:
            if not message.content:
                continue  # empty content is rejected by the API
            has_user = True
            wire.append({"role": "user", "content": message.content})
        elif message.role is Role.ASSISTANT:
            if message.tool_calls:
                blocks: list[dict] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                for tc in message.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.name,
                        "input": _parse_input(tc),
                    })
                wire.append({"role": "assistant", "content": blocks})
            elif message.content:
                wire.append({"role": "assistant", "content": message.content})
        elif message.role is Role.TOOL:
            wire.append({
                "role": "user",
                "content": [{
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content or "",
                }],
            })

    if not has_user:
        raise MessageValidationError(
            "Anthropic requires at least one non-empty user message"
        )

    system = "\n\n".join(system_parts) if system_parts else None
    return system, _ensure_alternation(wire)


def to_wire_tools(declarations: list[dict] | None) -> list[dict] | None:
    """Convert OpenAI-shaped tool declarations to Anthropic tool format."""
    if not declarations:
        return None
    tools = []
    for decl in declarations:
        if decl.get("type", "function") != "function":
            logger.warning(f"[Anthropic] Skipping unsupported tool type: {decl.get('type')}")
            continue
        function = decl["function"]
        tools.append({
            "name": function["name"],
            "description": function.get("description", ""),
            "input_schema": function.get("parameters") or {"type": "object", "properties": {}},
        })
    return tools or None


def to_wire_tool_choice(choice) -> dict | None:
    """Convert an OpenAI ``tool_choice`` value to Anthropic's form."""
    if choice is None:
        return None
    if isinstance(choice, dict):
        if choice.get("type") == "function":
            return {"type": "tool", "name": choice["function"]["name"]}
        return choice
    mapping = {
        "auto": {"type": "auto"},
        "required": {"type": "any"},
        "none": {"type": "none"},
    }
    return mapping.get(choice)


def _build_request(messages: list[Message], options: dict) -> dict:
    """Build ``messages.create`` kwargs from merged request options."""
    system, wire = to_wire(messages)
    kwargs: dict[str, Any] = {
        "model": options["model"],
        "messages": wire,
        "max_tokens": options.get("max_tokens") or DEFAULT_MAX_TOKENS,
    }
    if system:
        kwargs["system"] = system

    temperature = options.get("temperature")
    if temperature is not None:
        if temperature > 1:
            logger.debug(f"[Anthropic] Clamping temperature {temperature} to 1.0")
            temperature = 1.0
        kwargs["temperature"] = temperature

    tools = to_wire_tools(options.get("tools"))
    if tools:
        kwargs["tools"] = tools
        tool_choice = to_wire_tool_choice(options.get("tool_choice"))
        if tool_choice:
            kwargs["tool_choice"] = tool_choice

    for key in _PASSTHROUGH_KEYS:
        if key in options:
            kwargs[key] = options[key]

    dropped = sorted(set(options) - _HANDLED_KEYS)
    if dropped:
        logger.debug(f"[Anthropic] Ignoring unsupported options: {', '.join(dropped)}")
    return kwargs


# ---------------------------------------------------------------------------
# Wire -> canonical
# ---------------------------------------------------------------------------

def from_wire(system: Optional[str], wire_messages: list[dict]) -> list[Message]:
    """Translate Anthropic ``(system, messages)`` back into a canonical transcript.

    ``tool_result`` blocks become ``tool`` messages; their tool name is
    recovered from the matching earlier ``tool_use`` block.
    """
    messages: list[Message] = []
    if system:
        messages.append(Message.system(system))
    tool_names: dict[str, str] = {}

    for wire in wire_messages:
        content = wire.get("content", "")
        if wire["role"] == "assistant":
            if isinstance(content, str):
                messages.append(Message.assistant(content))
                continue
            text_parts = []
            tool_calls = []
            for block in content:
                if block["type"] == "text":
                    text_parts.append(block["text"])
                elif block["type"] == "tool_use":
                    tool_names[block["id"]] = block["name"]
                    tool_calls.append(ToolCall(
                        id=block["id"],
                        name=block["name"],
                        arguments=json.dumps(block.get("input") or {}),
                    ))
            text = "\n".join(text_parts) if text_parts else None
            messages.append(Message.assistant(text, tool_calls))
        else:
            if isinstance(content, str):
                messages.append(Message.user(content))
                continue
            for block in content:
                if block["type"] == "text":
                    messages.append(Message.user(block["text"]))
                elif block["type"] == "tool_result":
                    call_id = block["tool_use_id"]
                    result = block.get("content", "")
                    if isinstance(result, list):
                        result = "\n".join(b.get("text", "") for b in result if b.get("type") == "text")
                    messages.append(Message.tool(call_id, tool_names.get(call_id, ""), result))
    return messages


def _map_stop_reason(reason):
    return _STOP_REASONS.get(reason, reason)


def _parse_response(raw) -> ModelResponse:
    """Parse an Anthropic Messages response into a provider-agnostic ModelResponse."""
    usage = None
    if raw.usage:
        usage = Usage.from_counts(
            getattr(raw.usage, "input_tokens", 0),
            getattr(raw.usage, "output_tokens", 0),
        )

    if not raw.content and not raw.stop_reason:
        return ModelResponse(usage=usage, raw=raw)

    text_parts: list[str] = []
    tool_calls: list[ToolCall] = []
    for block in raw.content or []:
        if block.type == "text":
            text_parts.append(block.text)
        elif block.type == "tool_use":
            tool_calls.append(ToolCall(
                id=block.id,
                name=block.name,
                arguments=json.dumps(block.input if isinstance(block.input, dict) else {}),
            ))

    # Tool-only turns have no content
    if text_parts:
        content = "\n".join(text_parts)
    else:
        content = None if tool_calls else ""

    return ModelResponse(
        message=Message.assistant(content, tool_calls),
        usage=usage,
        finish_reason=_map_stop_reason(raw.stop_reason),
        raw=raw,
    )


def _parse_event(event) -> Optional[StreamChunk]:
    """Convert one streamed event into a canonical chunk (None for bookkeeping events)."""
    if event.type == "content_block_start":
        block = event.content_block
        if block.type == "tool_use":
            return StreamChunk(delta_tool_call=ToolCallDelta(
                index=event.index, id=block.id, name=block.name,
            ))
        if block.type == "text" and getattr(block, "text", ""):
            return StreamChunk(delta_content=block.text)
    elif event.type == "content_block_delta":
        delta = event.delta
        if delta.type == "text_delta":
            return StreamChunk(delta_content=delta.text)
        if delta.type == "input_json_delta":
            return StreamChunk(delta_tool_call=ToolCallDelta(
                index=event.index, arguments=delta.partial_json,
            ))
    elif event.type == "message_delta":
        stop_reason = getattr(event.delta, "stop_reason", None)
        if stop_reason:
            return StreamChunk(finish_reason=_map_stop_reason(stop_reason))
    return None


def _wrap_error(exc: Exception) -> ProviderCallFailed:
    return ProviderCallFailed(
        AnthropicAdapter.provider,
        str(exc),
        status_code=getattr(exc, "status_code", None),
        payload=getattr(exc, "body", None),
    )


# ---------------------------------------------------------------------------
# AnthropicAdapter
# ---------------------------------------------------------------------------

class AnthropicAdapter(ModelAdapter):
    """Adapter that wraps the ``anthropic`` SDK for Claude models."""

    provider = "anthropic"

    def __init__(
        self,
        api_key: str,
        *,
        settings: Optional[ModelSettings] = None,
        base_url: str | None = None,
        timeout_ms: int | None = None,
    ):
        if not api_key:
            raise ConfigurationError("Anthropic API key cannot be empty")
        super().__init__(settings or ModelSettings(model=config.DEFAULT_ANTHROPIC_MODEL))

        kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": (timeout_ms or config.REQUEST_TIMEOUT_MS) / 1000.0,
        }
        if base_url:
            kwargs["base_url"] = base_url
        self._client = anthropic.Anthropic(**kwargs)
        self._async_client = anthropic.AsyncAnthropic(**kwargs)

    def _prepare(self, messages: list[Message], options: Optional[dict]) -> dict:
        kwargs = _build_request(messages, self.merge_options(options))
        logger.debug(
            f"[Anthropic] Sending {len(kwargs['messages'])} message(s) to {kwargs['model']}"
            f" ({len(kwargs.get('tools', []))} tool(s))"
        )
        return kwargs

    def _fail(self, exc: Exception, kwargs: dict) -> ProviderCallFailed:
        log_error("[Anthropic] API call failed", exc, context={"model": kwargs.get("model")})
        return _wrap_error(exc)

    # -- ModelAdapter interface ------------------------------------------------

    def invoke(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        kwargs = self._prepare(messages, options)
        try:
            raw = self._client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise self._fail(exc, kwargs) from exc
        return _parse_response(raw)

    async def invoke_async(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        kwargs = self._prepare(messages, options)
        try:
            raw = await self._async_client.messages.create(**kwargs)
        except anthropic.APIError as exc:
            raise self._fail(exc, kwargs) from exc
        return _parse_response(raw)

    def invoke_stream(self, messages: list[Message], options: Optional[dict] = None) -> Iterator[StreamChunk]:
        kwargs = self._prepare(messages, options)
        kwargs["stream"] = True
        try:
            with self._client.messages.create(**kwargs) as stream:
                for event in stream:
                    if event.type == "message_stop":
                        break
                    chunk = _parse_event(event)
                    if chunk is not None:
                        yield chunk
        except anthropic.APIError as exc:
            raise self._fail(exc, kwargs) from exc

    async def invoke_stream_async(
        self, messages: list[Message], options: Optional[dict] = None
    ) -> AsyncIterator[StreamChunk]:
        kwargs = self._prepare(messages, options)
        kwargs["stream"] = True
        try:
            stream = await self._async_client.messages.create(**kwargs)
            async with stream:
                async for event in stream:
                    if event.type == "message_stop":
                        break
                    chunk = _parse_event(event)
                    if chunk is not None:
                        yield chunk
        except anthropic.APIError as exc:
            raise self._fail(exc, kwargs) from exc

    # -- Convenience properties ------------------------------------------------

    @property
    def client(self):
        """Escape hatch: the underlying ``anthropic.Anthropic`` client."""
        return self._client
