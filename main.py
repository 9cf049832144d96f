#!/usr/bin/env python3
"""
agentrun - Interactive demo

Chat with a small demo agent that can look up the weather and do arithmetic.

Usage:
    python main.py                        # Provider from config (default: openai)
    python main.py --provider anthropic   # Use Claude
    python main.py --verbose              # Show turn and tool execution details
    python main.py --max-turns 5          # Tighter turn budget

Commands:
    errors - Show recent errors from logs
    help   - Show help message
    quit   - Exit the program
"""

import argparse
import sys
import uuid
from datetime import datetime

from agentrun import Agent, ModelSettings, function_tool, run
from agentrun import config
from agentrun.errors import AgentError, ConfigurationError
from agentrun.logging import print_recent_errors, set_session_id, setup_logging
from agentrun.runner import resolve_adapter


@function_tool(name="getWeather")
def get_weather(city: str) -> str:
    """Get the current weather for a city."""
    return f"The weather in {city} is sunny."


@function_tool
def add(a: float, b: float) -> float:
    """Add two numbers."""
    return a + b


def build_agent(model: str | None) -> Agent:
    return Agent(
        name="Assistant",
        instructions=(
            "You are a helpful assistant. Use the available tools when they "
            "help answer the question, then reply concisely."
        ),
        tools=[get_weather, add],
        model_settings=ModelSettings(model=model, temperature=0.7),
    )


def print_welcome(provider: str):
    print("=" * 60)
    print("  agentrun demo")
    print("=" * 60)
    print()
    print(f"Provider: {provider}")
    print("Tools: getWeather(city), add(a, b)")
    print()
    print("Commands: quit, errors, help")
    print("-" * 60)
    print()


def main():
    parser = argparse.ArgumentParser(description="Interactive agentrun demo")
    parser.add_argument("--provider", default=config.LLM_PROVIDER,
                        help="LLM provider: openai or anthropic")
    parser.add_argument("--model", default=None, help="Model identifier override")
    parser.add_argument("--max-turns", type=int, default=None,
                        help=f"Turn budget per question (default {config.DEFAULT_MAX_TURNS})")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Show debug output on the console")
    args = parser.parse_args()

    setup_logging(verbose=args.verbose)
    set_session_id(f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}")

    try:
        adapter = resolve_adapter(provider=args.provider)
    except ConfigurationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    agent = build_agent(args.model)
    print_welcome(args.provider)

    while True:
        try:
            user_input = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            break

        if not user_input:
            continue
        command = user_input.lower()
        if command in ("quit", "exit", "q"):
            print("Goodbye!")
            break
        if command == "help":
            print(__doc__)
            continue
        if command == "errors":
            print_recent_errors()
            continue

        try:
            result = run(agent, user_input, max_turns=args.max_turns, adapter=adapter)
        except AgentError as e:
            print(f"Error: {e}")
            print()
            continue

        print(f"Agent: {result.final_output_as_string()}")
        usage = result.total_usage()
        if args.verbose:
            print(f"  ({len(result.steps)} steps, {usage.total_tokens:,} tokens)")
        print()


if __name__ == "__main__":
    main()
