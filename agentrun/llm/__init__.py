"""LLM abstraction layer: provider-agnostic interface for LLM interactions.

Re-exports the public API so consumers can write:
    from agentrun.llm import ModelAdapter, OpenAIAdapter, Message, ...
"""

from typing import Optional

from ..errors import ConfigurationError
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
    assemble_stream,
)
from .fake_adapter import FakeAdapter, text_response, tool_call_response


def create_adapter(
    provider: str,
    api_key: str,
    *,
    settings: Optional[ModelSettings] = None,
    base_url: Optional[str] = None,
) -> ModelAdapter:
    """Build the adapter for ``provider`` (``"openai"`` or ``"anthropic"``).

    SDK modules are imported lazily so only the selected provider's package
    needs to be importable.
    """
    prov = provider.lower()
    if prov == "openai":
        from .openai_adapter import OpenAIAdapter
        return OpenAIAdapter(api_key, settings=settings, base_url=base_url)
    if prov == "anthropic":
        from .anthropic_adapter import AnthropicAdapter
        return AnthropicAdapter(api_key, settings=settings, base_url=base_url)
    raise ConfigurationError(f"Unknown LLM provider: {provider!r}")
