"""Deterministic adapter that replays scripted responses (for tests and demos)."""

from __future__ import annotations

import copy
import uuid
from collections.abc import AsyncIterator, Iterator
from typing import Optional

from .base import (
    Message,
    ModelAdapter,
    ModelResponse,
    StreamChunk,
    ToolCall,
    ToolCallDelta,
    Usage,
)

STREAM_CHUNK_SIZE = 5


def text_response(text: Optional[str], usage: Optional[Usage] = None) -> ModelResponse:
    """A scripted final answer."""
    return ModelResponse(
        message=Message.assistant(text),
        usage=usage,
        finish_reason="stop",
    )


def tool_call_response(
    calls: list[ToolCall | tuple],
    content: Optional[str] = None,
    usage: Optional[Usage] = None,
) -> ModelResponse:
    """A scripted tool-call turn.

    ``calls`` holds ``ToolCall`` objects or ``(name, arguments_json)`` /
    ``(id, name, arguments_json)`` tuples; missing ids are generated.
    """
    tool_calls = []
    for call in calls:
        if isinstance(call, ToolCall):
            tool_calls.append(call)
        elif len(call) == 2:
            tool_calls.append(ToolCall(id=f"call_{uuid.uuid4().hex[:24]}", name=call[0], arguments=call[1]))
        else:
            tool_calls.append(ToolCall(id=call[0], name=call[1], arguments=call[2]))
    return ModelResponse(
        message=Message.assistant(content, tool_calls),
        usage=usage,
        finish_reason="tool_calls",
    )


class FakeAdapter(ModelAdapter):
    """Replays a pre-scripted, round-robin sequence of responses.

    Each scripted entry is a ``ModelResponse`` or an OpenAI-shaped chat
    completion dict. Calls are recorded in ``calls`` as
    ``(messages, options)`` snapshots so tests can inspect what was sent.
    """

    provider = "fake"

    def __init__(self, responses: Optional[list] = None):
        super().__init__()
        scripted = [
            ModelResponse.from_completion_dict(r) if isinstance(r, dict) else r
            for r in (responses or [])
        ]
        if not scripted:
            scripted.append(text_response(
                "This is a fake response",
                usage=Usage(prompt_tokens=10, completion_tokens=10, total_tokens=20),
            ))
        self._responses = scripted
        self._position = 0
        self.calls: list[tuple[list[Message], dict]] = []

    def _next(self, messages: list[Message], options: Optional[dict]) -> ModelResponse:
        self.calls.append((copy.deepcopy(list(messages)), dict(options or {})))
        response = self._responses[self._position % len(self._responses)]
        self._position += 1
        return copy.deepcopy(response)

    # -- ModelAdapter interface ------------------------------------------------

    def invoke(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        return self._next(messages, options)

    async def invoke_async(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        return self.invoke(messages, options)

    def invoke_stream(self, messages: list[Message], options: Optional[dict] = None) -> Iterator[StreamChunk]:
        response = self._next(messages, options)
        message = response.message
        finish_reason = response.finish_reason or "stop"
        content = (message.content if message else None) or ""
        tool_calls = message.tool_calls if message else []

        chunks = [
            StreamChunk(delta_content=content[i:i + STREAM_CHUNK_SIZE])
            for i in range(0, len(content), STREAM_CHUNK_SIZE)
        ]
        for index, tc in enumerate(tool_calls):
            chunks.append(StreamChunk(delta_tool_call=ToolCallDelta(
                index=index, id=tc.id, name=tc.name, arguments=tc.arguments,
            )))
        if not chunks:
            chunks.append(StreamChunk())
        chunks[-1].finish_reason = finish_reason
        yield from chunks

    async def invoke_stream_async(
        self, messages: list[Message], options: Optional[dict] = None
    ) -> AsyncIterator[StreamChunk]:
        for chunk in self.invoke_stream(messages, options):
            yield chunk
