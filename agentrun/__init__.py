"""Run tool-using LLM agents against OpenAI-compatible or Anthropic models."""

from .agent import Agent
from .errors import (
    AgentError,
    ConfigurationError,
    MalformedProviderResponse,
    MessageValidationError,
    ProviderCallFailed,
    ToolExecutionFailed,
    ToolNotFound,
)
from .llm import FakeAdapter, Message, ModelAdapter, Usage, create_adapter
from .result import MAX_TURNS_OUTPUT, RunResult, Step, StepAction
from .runner import Runner, run, run_async
from .settings import ModelSettings
from .tools import FunctionTool, Tool, function_tool

__version__ = "0.1.0"
