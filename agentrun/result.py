"""
Run results: the step audit log and the final RunResult.

This module provides:
- StepAction: Enum for what happened in a step
- Step: One append-only audit record
- RunResult: Transcript, steps and usage of a finished run
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from .llm.base import Message, Usage

if TYPE_CHECKING:
    from .agent import Agent


MAX_TURNS_OUTPUT = "Maximum number of turns reached without final output"


class StepAction(Enum):
    """What the runner did in a step."""
    THINKING = "thinking"
    TOOL_CALL = "tool_call"
    FINAL_OUTPUT = "final_output"


@dataclass(frozen=True)
class Step:
    """One audit record of a run.

    Attributes:
        turn: 1-based turn number.
        agent: The agent that was running.
        action: What happened.
        tool: Tool name (tool_call steps only).
        tool_call_id: Provider call id (tool_call steps only).
        arguments: Raw JSON arguments as sent by the model (tool_call steps only).
        output: Final output (final_output steps only).
    """
    turn: int
    agent: "Agent"
    action: StepAction
    tool: Optional[str] = None
    tool_call_id: Optional[str] = None
    arguments: Optional[str] = None
    output: Any = None


@dataclass
class RunResult:
    """The outcome of a run.

    Attributes:
        final_output: The agent's final answer, or the max-turns sentinel.
        messages: Full transcript, starting with the system message.
        steps: Audit log.
        usage: One entry per model invocation that reported usage.
        exhausted: True when the run stopped on the turn budget.
    """
    final_output: Any
    messages: list[Message] = field(default_factory=list)
    steps: list[Step] = field(default_factory=list)
    usage: list[Usage] = field(default_factory=list)
    exhausted: bool = False

    def total_usage(self) -> Usage:
        """Sum usage over all model calls; missing fields count as 0."""
        total = Usage()
        for entry in self.usage:
            if isinstance(entry, dict):
                entry = Usage.from_dict(entry)
            total = total + entry
        return total

    @property
    def final_agent(self) -> Optional["Agent"]:
        """The agent of the last step, or None if nothing ran."""
        if not self.steps:
            return None
        return self.steps[-1].agent

    def final_output_as_string(self) -> str:
        """The final output as text: strings as-is, None as "", anything else as JSON."""
        if isinstance(self.final_output, str):
            return self.final_output
        if self.final_output is None:
            return ""
        if isinstance(self.final_output, (dict, list)):
            return json.dumps(self.final_output, indent=4)
        return str(self.final_output)
