"""
Agent execution loop.

Drives turns until the model answers without tool calls or the turn budget
runs out:

    build request -> call adapter -> inspect response
        -> tool calls?  execute them in order, append results, next turn
        -> otherwise    final output, done

``run()`` blocks on each adapter call; ``run_async()`` awaits it. Both share
the same turn helpers, so their semantics are identical: turns are strictly
sequential and tool calls within a turn execute one after another in the order
the provider listed them.

All per-run state lives in a ``_RunState`` accumulator created for the run and
passed explicitly through every helper; nothing is shared between runs.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from . import config
from .agent import Agent
from .errors import (
    ConfigurationError,
    MalformedProviderResponse,
    ToolExecutionFailed,
    ToolNotFound,
)
from .llm import ModelAdapter, create_adapter
from .llm.base import Message, ModelResponse, ToolCall, Usage
from .logging import (
    get_logger,
    log_error,
    log_run_end,
    log_token_usage,
    log_tool_call,
    log_tool_result,
)
from .result import MAX_TURNS_OUTPUT, RunResult, Step, StepAction

logger = get_logger()


@dataclass
class _RunState:
    """Accumulator for one run: turn counter, transcript, steps, usage."""
    agent: Agent
    max_turns: int
    turn: int = 0
    messages: list[Message] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)
    usage: list[Usage] = field(default_factory=list)
    cumulative: Usage = field(default_factory=Usage)

    @classmethod
    def start(cls, agent: Agent, input_text: str, max_turns: int) -> "_RunState":
        return cls(
            agent=agent,
            max_turns=max_turns,
            messages=[Message.system(agent.system_prompt), Message.user(input_text)],
        )

    def result(self, final_output: Any, exhausted: bool = False) -> RunResult:
        log_run_end(self.agent.name, self.turn, self.cumulative.to_dict())
        return RunResult(
            final_output=final_output,
            messages=list(self.messages),
            steps=list(self.steps),
            usage=list(self.usage),
            exhausted=exhausted,
        )


# ---------------------------------------------------------------------------
# Adapter resolution
# ---------------------------------------------------------------------------

def resolve_adapter(
    adapter: Optional[ModelAdapter] = None,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
) -> ModelAdapter:
    """Return the adapter for a run, building one from config if needed.

    Raises:
        ConfigurationError: If no adapter is given and no API key can be
            found for the provider. Raised before any network activity.
    """
    if adapter is not None:
        return adapter
    prov = provider or config.LLM_PROVIDER
    key = api_key or config.get_api_key(prov)
    if not key:
        raise ConfigurationError(
            f"No API key for provider '{prov}': pass api_key or set the "
            f"provider's API key environment variable"
        )
    return create_adapter(prov, key, base_url=config.LLM_BASE_URL)


# ---------------------------------------------------------------------------
# Turn helpers (shared by both modes)
# ---------------------------------------------------------------------------

def _begin_turn(state: _RunState) -> Optional[dict]:
    """Advance the turn counter and return request options, or None when exhausted."""
    if state.turn >= state.max_turns:
        logger.warning(
            f"[Runner] {state.agent.name}: reached maximum turns limit ({state.max_turns})"
        )
        return None
    state.turn += 1
    logger.debug(f"[Runner] {state.agent.name}: turn {state.turn}/{state.max_turns}")
    state.steps.append(Step(turn=state.turn, agent=state.agent, action=StepAction.THINKING))
    return state.agent.request_options()


def _record_response(state: _RunState, response: ModelResponse) -> Message:
    """Append the assistant message and its usage to the run state."""
    message = response.message if response is not None else None
    if message is None:
        raise MalformedProviderResponse(
            f"No message in model response (agent '{state.agent.name}', turn {state.turn})"
        )
    state.messages.append(message)

    if response.usage is not None:
        state.usage.append(response.usage)
        state.cumulative = state.cumulative + response.usage
        log_token_usage(
            state.agent.name,
            state.turn,
            response.usage.prompt_tokens,
            response.usage.completion_tokens,
            response.usage.total_tokens,
            state.cumulative.prompt_tokens,
            state.cumulative.completion_tokens,
            state.cumulative.total_tokens,
        )
    return message


def _parse_arguments(tool_call: ToolCall) -> dict:
    # Parse failures surface as tool execution failures
    if not tool_call.arguments:
        return {}
    args = json.loads(tool_call.arguments)
    if not isinstance(args, dict):
        raise TypeError(f"Tool arguments must be a JSON object, got {type(args).__name__}")
    return args


def _serialize_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def _execute_tool_call(state: _RunState, tool_call: ToolCall) -> Message:
    """Execute one tool call and return its tool-result message.

    Missing tools and tool failures are absorbed into the returned message so
    the model sees them on the next turn.
    """
    agent = state.agent
    tool = agent.find_tool(tool_call.name)
    if tool is None:
        error = ToolNotFound(tool_call.name)
        logger.warning(f"[Runner] {agent.name}: {error}")
        return Message.tool(tool_call.id, tool_call.name, f"Error: {error}")

    state.steps.append(Step(
        turn=state.turn,
        agent=agent,
        action=StepAction.TOOL_CALL,
        tool=tool_call.name,
        tool_call_id=tool_call.id,
        arguments=tool_call.arguments,
    ))
    log_tool_call(tool_call.name, tool_call.arguments)

    try:
        result = tool.execute(_parse_arguments(tool_call))
    except Exception as exc:
        error = ToolExecutionFailed(tool_call.name, exc)
        content = f"Error: {error}"
        log_error(
            f"[Runner] Tool execution failed: {tool_call.name}",
            exc,
            context={"agent": agent.name, "turn": state.turn, "arguments": tool_call.arguments},
            level=logging.WARNING,
        )
        log_tool_result(tool_call.name, content, success=False)
        return Message.tool(tool_call.id, tool_call.name, content)

    content = _serialize_result(result)
    log_tool_result(tool_call.name, content, success=True)
    return Message.tool(tool_call.id, tool_call.name, content)


def _finish_turn(state: _RunState, message: Message) -> Optional[RunResult]:
    """Dispatch tool calls (returns None to continue) or finish the run."""
    if message.tool_calls:
        logger.debug(
            f"[Runner] {state.agent.name}: executing {len(message.tool_calls)} tool call(s)"
        )
        tool_messages = [_execute_tool_call(state, tc) for tc in message.tool_calls]
        state.messages.extend(tool_messages)
        return None

    state.steps.append(Step(
        turn=state.turn,
        agent=state.agent,
        action=StepAction.FINAL_OUTPUT,
        output=message.content,
    ))
    logger.info(f"[Runner] {state.agent.name}: completed with final output after {state.turn} turn(s)")
    return state.result(message.content)


def _exhausted(state: _RunState) -> RunResult:
    return state.result(MAX_TURNS_OUTPUT, exhausted=True)


def _budget(max_turns: Optional[int]) -> int:
    return config.DEFAULT_MAX_TURNS if max_turns is None else max_turns


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def run(
    agent: Agent,
    input_text: str,
    *,
    max_turns: Optional[int] = None,
    adapter: Optional[ModelAdapter] = None,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
) -> RunResult:
    """Run ``agent`` on ``input_text`` until it produces a final output.

    Args:
        agent: The agent to run.
        input_text: The user's message.
        max_turns: Turn budget (defaults to ``config.DEFAULT_MAX_TURNS``).
        adapter: Model adapter; built from config when omitted.
        api_key: API key used when no adapter is given.
        provider: Provider used when no adapter is given.

    Returns:
        The RunResult. Hitting the turn budget is not an error: the result's
        final output is the max-turns sentinel.

    Raises:
        ConfigurationError: No adapter and no API key.
        ProviderCallFailed: The provider call failed.
        MalformedProviderResponse: The provider returned no message.
    """
    adapter = resolve_adapter(adapter, api_key, provider)
    state = _RunState.start(agent, input_text, _budget(max_turns))
    logger.debug(f"[Runner] Starting run for {agent.name} via {adapter.provider}")

    while True:
        options = _begin_turn(state)
        if options is None:
            return _exhausted(state)
        response = adapter.invoke(state.messages, options)
        message = _record_response(state, response)
        result = _finish_turn(state, message)
        if result is not None:
            return result


async def run_async(
    agent: Agent,
    input_text: str,
    *,
    max_turns: Optional[int] = None,
    adapter: Optional[ModelAdapter] = None,
    api_key: Optional[str] = None,
    provider: Optional[str] = None,
) -> RunResult:
    """Suspending variant of :func:`run` with identical semantics.

    Only the adapter call is awaited; turns never overlap.
    """
    adapter = resolve_adapter(adapter, api_key, provider)
    state = _RunState.start(agent, input_text, _budget(max_turns))
    logger.debug(f"[Runner] Starting async run for {agent.name} via {adapter.provider}")

    while True:
        options = _begin_turn(state)
        if options is None:
            return _exhausted(state)
        response = await adapter.invoke_async(state.messages, options)
        message = _record_response(state, response)
        result = _finish_turn(state, message)
        if result is not None:
            return result


class Runner:
    """Reusable run configuration: one adapter and turn budget for many runs.

    Example:
        runner = Runner(adapter=OpenAIAdapter(api_key))
        result = runner.run(agent, "What's the weather in Tokyo?")
    """

    def __init__(
        self,
        adapter: Optional[ModelAdapter] = None,
        *,
        max_turns: Optional[int] = None,
        api_key: Optional[str] = None,
        provider: Optional[str] = None,
    ):
        self.adapter = adapter
        self.max_turns = max_turns
        self.api_key = api_key
        self.provider = provider

    def run(self, agent: Agent, input_text: str) -> RunResult:
        return run(
            agent, input_text,
            max_turns=self.max_turns, adapter=self.adapter,
            api_key=self.api_key, provider=self.provider,
        )

    async def run_async(self, agent: Agent, input_text: str) -> RunResult:
        return await run_async(
            agent, input_text,
            max_turns=self.max_turns, adapter=self.adapter,
            api_key=self.api_key, provider=self.provider,
        )
