"""Provider-agnostic types and abstract base class for LLM adapters.

The canonical message shape is the OpenAI chat-completions shape: every
adapter translates to and from it, and the runner never sees anything else.
All runner code should depend on these types, never on provider-specific SDKs.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..errors import ConfigurationError
from ..settings import ModelSettings


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------

class Role(Enum):
    """Message author roles."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A single tool invocation requested by the model.

    Attributes:
        id: Provider-assigned correlation token (``call_xxxxx`` for OpenAI,
            ``toolu_xxxxx`` for Anthropic).
        name: Tool name.
        arguments: Arguments as a JSON string, exactly as the provider sent
            them (or re-serialized when the provider uses native structures).
    """
    id: str
    name: str
    arguments: str = "{}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ToolCall":
        function = data.get("function") or {}
        arguments = function.get("arguments")
        if arguments is None:
            arguments = "{}"
        elif not isinstance(arguments, str):
            arguments = json.dumps(arguments)
        return cls(id=data.get("id", ""), name=function.get("name", ""), arguments=arguments)


@dataclass
class Message:
    """One conversational turn unit.

    Attributes:
        role: Author role.
        content: Text content; None when an assistant turn is purely a tool
            invocation.
        tool_calls: Tool invocations (assistant messages only).
        tool_call_id: Id of the call this message answers (tool messages only).
        name: Name of the tool that produced this result (tool messages only).
    """
    role: Role
    content: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        self.role = Role(self.role)

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: Optional[str], tool_calls: Optional[list[ToolCall]] = None) -> "Message":
        return cls(role=Role.ASSISTANT, content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, name: str, content: str) -> "Message":
        return cls(role=Role.TOOL, content=content, tool_call_id=tool_call_id, name=name)

    def to_dict(self) -> dict:
        """Convert to the OpenAI chat-completions message dict."""
        result: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.tool_calls:
            result["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.role is Role.TOOL:
            result["tool_call_id"] = self.tool_call_id
            if self.name:
                result["name"] = self.name
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        """Create a Message from an OpenAI chat-completions message dict."""
        return cls(
            role=Role(data["role"]),
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in data.get("tool_calls") or []],
            tool_call_id=data.get("tool_call_id"),
            name=data.get("name"),
        )


@dataclass
class Usage:
    """Normalized token counts for one model invocation."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Usage":
        """Missing fields count as 0; the total is taken as given, never derived."""
        return cls(
            prompt_tokens=data.get("prompt_tokens") or 0,
            completion_tokens=data.get("completion_tokens") or 0,
            total_tokens=data.get("total_tokens") or 0,
        )

    @classmethod
    def from_counts(cls, prompt: Optional[int], completion: Optional[int], total: Optional[int] = None) -> "Usage":
        """Build from provider counters, computing the total when it is absent."""
        prompt = prompt or 0
        completion = completion or 0
        return cls(
            prompt_tokens=prompt,
            completion_tokens=completion,
            total_tokens=total if total else prompt + completion,
        )


@dataclass
class ModelResponse:
    """Provider-agnostic response from one model invocation.

    Attributes:
        message: The assistant message, or None when the provider returned
            nothing usable (the runner treats that as fatal).
        usage: Token usage, if the provider reported it.
        finish_reason: Canonical finish reason (``stop``, ``tool_calls``,
            ``length``, ...).
        raw: The original provider-specific response object.
    """
    message: Optional[Message] = None
    usage: Optional[Usage] = None
    finish_reason: Optional[str] = None
    raw: Any = None

    @classmethod
    def from_completion_dict(cls, data: dict) -> "ModelResponse":
        """Parse an OpenAI-shaped chat completion dict."""
        choices = data.get("choices") or []
        usage_data = data.get("usage")
        usage = Usage.from_dict(usage_data) if usage_data else None
        if not choices or not choices[0].get("message"):
            return cls(usage=usage, raw=data)
        choice = choices[0]
        return cls(
            message=Message.from_dict(choice["message"]),
            usage=usage,
            finish_reason=choice.get("finish_reason"),
            raw=data,
        )


@dataclass
class ToolCallDelta:
    """A fragment of a streamed tool call; fragments sharing ``index`` belong together."""
    index: int = 0
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: str = ""


@dataclass
class StreamChunk:
    """One incremental piece of a streamed response."""
    delta_content: Optional[str] = None
    delta_tool_call: Optional[ToolCallDelta] = None
    finish_reason: Optional[str] = None


def assemble_stream(chunks: Iterable[StreamChunk]) -> ModelResponse:
    """Fold a chunk sequence into a single assistant response."""
    text_parts: list[str] = []
    calls: dict[int, dict] = {}
    finish_reason = None

    for chunk in chunks:
        if chunk.delta_content:
            text_parts.append(chunk.delta_content)
        fragment = chunk.delta_tool_call
        if fragment is not None:
            entry = calls.setdefault(fragment.index, {"id": "", "name": "", "arguments": ""})
            if fragment.id:
                entry["id"] = fragment.id
            if fragment.name:
                entry["name"] = fragment.name
            entry["arguments"] += fragment.arguments or ""
        if chunk.finish_reason:
            finish_reason = chunk.finish_reason

    tool_calls = [
        ToolCall(id=c["id"], name=c["name"], arguments=c["arguments"] or "{}")
        for _, c in sorted(calls.items())
    ]
    content = "".join(text_parts) if text_parts or not tool_calls else None
    return ModelResponse(
        message=Message.assistant(content, tool_calls),
        finish_reason=finish_reason,
    )


# ---------------------------------------------------------------------------
# ModelAdapter ABC
# ---------------------------------------------------------------------------

class ModelAdapter(ABC):
    """Abstract interface that every LLM provider adapter must implement.

    ``options`` is a plain dict of request options: ``model``,
    ``temperature``, ``max_tokens``, ``tools`` (OpenAI-shaped declarations),
    ``tool_choice`` and any provider-specific extras. Adapters merge their
    default settings underneath it.
    """

    provider: str = "base"

    def __init__(self, settings: Optional[ModelSettings] = None):
        self.settings = settings or ModelSettings()

    def merge_options(self, options: Optional[dict]) -> dict:
        """Overlay per-call ``options`` on the adapter's default settings.

        Raises:
            ConfigurationError: If no model identifier can be resolved.
        """
        merged = self.settings.to_dict()
        merged.update(options or {})
        if not merged.get("model"):
            raise ConfigurationError(f"No model configured for the {self.provider} adapter")
        return merged

    @abstractmethod
    def invoke(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        """Send the transcript and return the canonical response."""

    @abstractmethod
    async def invoke_async(self, messages: list[Message], options: Optional[dict] = None) -> ModelResponse:
        """Suspending variant of :meth:`invoke`."""

    @abstractmethod
    def invoke_stream(self, messages: list[Message], options: Optional[dict] = None) -> Iterator[StreamChunk]:
        """Yield incremental chunks until the provider signals completion.

        Each call starts a fresh request; the returned iterator is not
        restartable.
        """

    @abstractmethod
    def invoke_stream_async(
        self, messages: list[Message], options: Optional[dict] = None
    ) -> AsyncIterator[StreamChunk]:
        """Async-iterator variant of :meth:`invoke_stream`."""
