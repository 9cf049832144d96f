"""OpenAI adapter: wraps the ``openai`` SDK for OpenAI and compatible APIs.

Covers OpenAI and any provider exposing an OpenAI-compatible
``/chat/completions`` endpoint (DeepSeek, Groq, Together AI, Ollama, vLLM, ...)
via ``base_url``.

The canonical message format *is* the OpenAI chat-completions shape, so the
request side is a pass-through; only the SDK response objects need unpacking.

This is the **only** module that imports the ``openai`` package.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Iterator
from typing import Any, Optional

import openai

from .. import config
from ..errors import ConfigurationError, ProviderCallFailed
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

# Keyword arguments accepted by ``chat.completions.create``
_CREATE_PARAMS = frozenset({
    "model", "tools", "tool_choice", "temperature", "max_tokens",
    "max_completion_tokens", "top_p", "n", "stop", "stream_options",
    "presence_penalty", "frequency_penalty", "logit_bias", "logprobs",
    "top_logprobs", "user", "seed", "response_format", "parallel_tool_calls",
    "metadata", "store", "reasoning_effort", "service_tier", "modalities",
    "audio", "prediction", "extra_headers", "extra_query", "timeout",
})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _to_wire_message(message: Message) -> dict:
    """Canonical message → OpenAI message dict."""
    data = message.to_dict()
    # The tool name is bookkeeping for other providers; OpenAI correlates by id
    if message.role is Role.TOOL:
        data.pop("name", None)
    return data


def _build_request(messages: list[Message], options: dict) -> dict:
    """Build ``chat.completions.create`` kwargs from merged request options.

    Keys the SDK does not accept as arguments (``top_k``,
    ``repetition_penalty``, ...) go into ``extra_body`` for compatible servers.
    """
    kwargs: dict[str, Any] = {}
    extra_body: dict[str, Any] = dict(options.get("extra_body") or {})
    for key, value in options.items():
        if key == "extra_body":
            continue
        if key in _CREATE_PARAMS:
            kwargs[key] = value
        else:
            extra_body[key] = value
    if extra_body:
        kwargs["extra_body"] = extra_body
    kwargs["messages"] = [_to_wire_message(m) for m in messages]
    if not kwargs.get("tools"):
        kwargs.pop("tools", None)
        kwargs.pop("tool_choice", None)
    return kwargs


def _parse_tool_calls(raw_tool_calls) -> list[ToolCall]:
    """Parse OpenAI tool calls into our ToolCall dataclass."""
    if not raw_tool_calls:
        return []
    result = []
    for tc in raw_tool_calls:
        arguments = tc.function.arguments
        if not isinstance(arguments, str):
            arguments = json.dumps(arguments or {})
        result.append(ToolCall(id=tc.id, name=tc.function.name, arguments=arguments))
    return result


def _parse_usage(raw_usage) -> Optional[Usage]:
    if not raw_usage:
        return None
    return Usage.from_counts(
        getattr(raw_usage, "prompt_tokens", 0),
        getattr(raw_usage, "completion_tokens", 0),
        getattr(raw_usage, "total_tokens", None),
    )


def _parse_response(raw) -> ModelResponse:
    """Parse a raw OpenAI ChatCompletion into a provider-agnostic ModelResponse."""
    usage = _parse_usage(raw.usage)
    if not raw.choices:
        return ModelResponse(usage=usage, raw=raw)

    choice = raw.choices[0]
    message = choice.message
    if message is None:
        return ModelResponse(usage=usage, finish_reason=choice.finish_reason, raw=raw)

    tool_calls = _parse_tool_calls(message.tool_calls)
    content = message.content
    if content is None and not tool_calls:
        content = ""

    return ModelResponse(
        message=Message.assistant(content, tool_calls),
        usage=usage,
        finish_reason=choice.finish_reason,
        raw=raw,
    )


def _parse_chunk(raw_chunk) -> list[StreamChunk]:
    """Convert one streamed ChatCompletionChunk into canonical chunks.

    A delta carrying several tool-call fragments yields one chunk per fragment.
    """
    if not raw_chunk.choices:
        return []
    choice = raw_chunk.choices[0]
    delta = choice.delta
    content = getattr(delta, "content", None) if delta is not None else None
    fragments = []
    for tc in (getattr(delta, "tool_calls", None) or []) if delta is not None else []:
        function = tc.function
        fragments.append(ToolCallDelta(
            index=tc.index or 0,
            id=tc.id,
            name=function.name if function is not None else None,
            arguments=(function.arguments or "") if function is not None else "",
        ))

    chunks = [StreamChunk(
        delta_content=content,
        delta_tool_call=fragments[0] if fragments else None,
        finish_reason=choice.finish_reason,
    )]
    for fragment in fragments[1:]:
        chunks.append(StreamChunk(delta_tool_call=fragment))
    return chunks


def _wrap_error(exc: Exception) -> ProviderCallFailed:
    return ProviderCallFailed(
        OpenAIAdapter.provider,
        str(exc),
        status_code=getattr(exc, "status_code", None),
        payload=getattr(exc, "body", None),
    )


# ---------------------------------------------------------------------------
# OpenAIAdapter
# ---------------------------------------------------------------------------

class OpenAIAdapter(ModelAdapter):
    """Adapter that wraps the ``openai`` SDK for OpenAI and compatible APIs."""

    provider = "openai"

    def __init__(
        self,
        api_key: str,
        *,
        settings: Optional[ModelSettings] = None,
        base_url: str | None = None,
        timeout_ms: int | None = None,
    ):
        if not api_key:
            raise ConfigurationError("OpenAI API key cannot be empty")
        super().__init__(settings or ModelSettings(model=config.DEFAULT_MODEL))

        kwargs: dict[str, Any] = {"api_key": api_key}
        if base_url:
            kwargs["base_url"] = base_url
        kwargs["timeout"] = (timeout_ms or config.REQUEST_TIMEOUT_MS) / 1000.0  # openai SDK uses seconds
        self._client = openai.OpenAI(**kwargs)
        self._async_client = openai.AsyncOpenAI(**kwargs)

    def _prepare(self, messages: list[Message], options: Optional[dict]) -> dict:
        kwargs = _build_request(messages, self.merge_options(options))
        logger.debug(
            f"[OpenAI] Sending {len(kwargs['messages'])} message(s) to {kwargs['model']}"
            f" ({len(kwargs.get('tools', []))} tool(s))"
        )
        return kwargs

    def _fail(self, exc: Exception, kwargs: dict) -> ProviderCallFailed:
        log_error("[OpenAI] API call failed", exc, context={"model": kwargs.get("model")})
        return _wrap_error(exc)

    # -- ModelAdapter interface ------------------------------------------------

    def invoke(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        kwargs = self._prepare(messages, options)
        try:
            raw = self._client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise self._fail(exc, kwargs) from exc
        return _parse_response(raw)

    async def invoke_async(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        kwargs = self._prepare(messages, options)
        try:
            raw = await self._async_client.chat.completions.create(**kwargs)
        except openai.APIError as exc:
            raise self._fail(exc, kwargs) from exc
        return _parse_response(raw)

    def invoke_stream(self, messages: list[Message], options: Optional[dict] = None) -> Iterator[StreamChunk]:
        kwargs = self._prepare(messages, options)
        kwargs["stream"] = True
        try:
            # The SDK consumes the SSE stream and stops at the [DONE] sentinel
            with self._client.chat.completions.create(**kwargs) as stream:
                for raw_chunk in stream:
                    yield from _parse_chunk(raw_chunk)
        except openai.APIError as exc:
            raise self._fail(exc, kwargs) from exc

    async def invoke_stream_async(
        self, messages: list[Message], options: Optional[dict] = None
    ) -> AsyncIterator[StreamChunk]:
        kwargs = self._prepare(messages, options)
        kwargs["stream"] = True
        try:
            stream = await self._async_client.chat.completions.create(**kwargs)
            async with stream:
                async for raw_chunk in stream:
                    for chunk in _parse_chunk(raw_chunk):
                        yield chunk
        except openai.APIError as exc:
            raise self._fail(exc, kwargs) from exc

    # -- Convenience properties ------------------------------------------------

    @property
    def client(self):
        """Escape hatch: the underlying ``openai.OpenAI`` client."""
        return self._client
