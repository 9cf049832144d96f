"""
Exception hierarchy for agent runs.

Only tool-level failures (``ToolNotFound``, ``ToolExecutionFailed``) are
absorbed by the runner and shown to the model as tool results. Everything
else propagates to the caller of ``run()`` / ``run_async()``.
"""

from typing import Any, Optional


class AgentError(Exception):
    """Base class for all agentrun errors."""


class ConfigurationError(AgentError, ValueError):
    """Missing credentials or invalid settings, raised before any I/O."""


class MessageValidationError(AgentError, ValueError):
    """The transcript cannot be expressed in the provider's message schema."""


class ProviderCallFailed(AgentError):
    """A provider call failed at the transport, HTTP or API level.

    Attributes:
        provider: Adapter provider name (``"openai"``, ``"anthropic"``, ...).
        status_code: HTTP status code if the provider returned one.
        payload: Raw error body from the provider, if any.
    """

    def __init__(
        self,
        provider: str,
        message: str,
        *,
        status_code: Optional[int] = None,
        payload: Any = None,
    ):
        self.provider = provider
        self.status_code = status_code
        self.payload = payload
        prefix = f"[{provider}]"
        if status_code is not None:
            prefix += f" HTTP {status_code}"
        super().__init__(f"{prefix} {message}")


class MalformedProviderResponse(AgentError):
    """The provider answered but the response carries no assistant message."""


class ToolNotFound(AgentError):
    """The model asked for a tool the agent does not have."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found")


class ToolExecutionFailed(AgentError):
    """A tool raised while parsing its arguments or executing."""

    def __init__(self, tool_name: str, cause: BaseException):
        self.tool_name = tool_name
        self.cause = cause
        super().__init__(str(cause))
