"""
Agent definition: instructions, tools, handoff targets and model settings.

An Agent is fixed at construction and read-only afterwards, so a single
instance can be shared by any number of concurrent runs.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .errors import ConfigurationError
from .settings import ModelSettings
from .tools import Tool

DEFAULT_TEMPERATURE = 0.7


class Agent:
    """A named persona bundling instructions, tools, handoffs and model settings.

    Args:
        name: Unique name, used as the key for handoff lookup.
        instructions: System prompt for the agent.
        tools: Tools the model may call. Names must be unique.
        handoffs: Other agents this one may hand off to. Handoffs are a
            lookup primitive only; the runner never triggers them.
        model_settings: Model configuration. Defaults to temperature 0.7 with
            the adapter's default model.

    Raises:
        ConfigurationError: If a tool is not a ``Tool``, a handoff is not an
            ``Agent``, or two tools share a name.
    """

    def __init__(
        self,
        name: str,
        instructions: str,
        tools: Optional[Iterable[Tool]] = None,
        handoffs: Optional[Iterable["Agent"]] = None,
        model_settings: Optional[ModelSettings] = None,
    ):
        self._name = name
        self._instructions = instructions
        self._model_settings = model_settings or ModelSettings(temperature=DEFAULT_TEMPERATURE)

        tool_index: dict[str, Tool] = {}
        for tool in tools or ():
            if not isinstance(tool, Tool):
                raise ConfigurationError(
                    f"All tools must implement the Tool interface. Got: {type(tool).__name__}"
                )
            if tool.name in tool_index:
                raise ConfigurationError(f"Duplicate tool name '{tool.name}' in agent '{name}'")
            tool_index[tool.name] = tool
        self._tools = tool_index

        handoff_list = tuple(handoffs or ())
        for handoff in handoff_list:
            if not isinstance(handoff, Agent):
                raise ConfigurationError(
                    f"All handoffs must be Agent instances. Got: {type(handoff).__name__}"
                )
        self._handoffs = handoff_list

    @property
    def name(self) -> str:
        return self._name

    @property
    def instructions(self) -> str:
        return self._instructions

    @property
    def system_prompt(self) -> str:
        return self._instructions

    @property
    def tools(self) -> tuple[Tool, ...]:
        return tuple(self._tools.values())

    @property
    def handoffs(self) -> tuple["Agent", ...]:
        return self._handoffs

    @property
    def model_settings(self) -> ModelSettings:
        return self._model_settings

    def serialize_tools(self) -> list[dict]:
        """Tool declarations in the canonical (OpenAI function) wire shape."""
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": tool.get_parameters(),
                },
            }
            for tool in self._tools.values()
        ]

    def find_tool(self, name: str) -> Optional[Tool]:
        """Exact, case-sensitive lookup; None if the agent has no such tool."""
        return self._tools.get(name)

    def find_handoff(self, name: str) -> Optional["Agent"]:
        """Exact lookup of a handoff agent by name; None if absent."""
        for agent in self._handoffs:
            if agent.name == name:
                return agent
        return None

    def request_options(self) -> dict:
        """Request options for one model call: settings plus tool declarations."""
        options = self._model_settings.to_dict()
        if self._tools:
            options["tools"] = self.serialize_tools()
            options["tool_choice"] = "auto"
        return options

    def __repr__(self) -> str:
        return f"Agent(name={self._name!r}, tools={list(self._tools)})"
