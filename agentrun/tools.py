"""
Tool capability for agents.

A tool is a named, described, JSON-Schema-parameterized unit of execution.
``Tool`` is the abstract capability the runner dispatches to; ``FunctionTool``
wraps a plain Python callable and derives its parameter schema from the
signature.

Example:
    @function_tool
    def get_weather(city: str) -> str:
        \"\"\"Get the current weather for a city.\"\"\"
        return f"The weather in {city} is sunny."
"""

from __future__ import annotations

import inspect
import types
import typing
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from .errors import ConfigurationError

_JSON_TYPES = {
    int: "integer",
    float: "number",
    str: "string",
    bool: "boolean",
    list: "array",
    tuple: "array",
    dict: "object",
}


class Tool(ABC):
    """Abstract tool: name, description, parameter schema and ``execute``."""

    name: str
    description: str

    @abstractmethod
    def get_parameters(self) -> dict:
        """Return the JSON-Schema object describing the tool's arguments."""

    @abstractmethod
    def execute(self, args: dict) -> Any:
        """Run the tool. Strings are sent to the model verbatim; anything else as JSON."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def _type_schema(annotation) -> dict:
    """Map a Python type annotation to a JSON-Schema fragment."""
    if annotation is inspect.Parameter.empty or annotation is Any:
        return {"type": "string"}

    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        members = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(members) < len(typing.get_args(annotation))
        if len(members) == 1:
            schema = _type_schema(members[0])
        else:
            schema = {"oneOf": [_type_schema(m) for m in members]}
        if nullable:
            schema["nullable"] = True
        return schema

    if origin in (list, tuple):
        args = typing.get_args(annotation)
        item = _type_schema(args[0]) if args else {"type": "string"}
        return {"type": "array", "items": item}
    if origin is dict:
        return {"type": "object"}

    if annotation in _JSON_TYPES:
        schema = {"type": _JSON_TYPES[annotation]}
        if annotation in (list, tuple):
            schema["items"] = {"type": "string"}
        return schema
    return {"type": "string"}


def build_parameters_schema(func: Callable) -> dict:
    """Derive a JSON-Schema object from a callable's signature and type hints."""
    signature = inspect.signature(func)
    try:
        hints = typing.get_type_hints(func)
    except (NameError, TypeError):
        hints = {}

    schema: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
    for param in signature.parameters.values():
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        prop = _type_schema(hints.get(param.name, param.annotation))
        if param.default is inspect.Parameter.empty:
            schema["required"].append(param.name)
        else:
            prop["default"] = param.default
        schema["properties"][param.name] = prop
    return schema


def _first_doc_line(func: Callable) -> Optional[str]:
    doc = inspect.getdoc(func)
    if not doc:
        return None
    for line in doc.splitlines():
        if line.strip():
            return line.strip()
    return None


class FunctionTool(Tool):
    """A tool backed by a Python callable.

    Args:
        func: The callable to wrap. Called with the model's arguments as
            keyword arguments.
        name: Tool name (defaults to the function name).
        description: Tool description (defaults to the first docstring line).
        parameters: Explicit JSON-Schema; derived from the signature if omitted.
    """

    def __init__(
        self,
        func: Callable,
        name: Optional[str] = None,
        description: Optional[str] = None,
        parameters: Optional[dict] = None,
    ):
        if not callable(func):
            raise ConfigurationError(f"FunctionTool needs a callable, got {type(func).__name__}")
        self.func = func
        self.name = name or getattr(func, "__name__", type(func).__name__)
        self.description = description or _first_doc_line(func) or "No description available"
        self._parameters = parameters if parameters is not None else build_parameters_schema(func)

    def get_parameters(self) -> dict:
        return self._parameters

    def execute(self, args: dict) -> Any:
        return self.func(**args)


def function_tool(func: Optional[Callable] = None, *, name: Optional[str] = None,
                  description: Optional[str] = None):
    """Decorator turning a function into a ``FunctionTool``.

    Usable bare (``@function_tool``) or with overrides
    (``@function_tool(name="getWeather")``).
    """
    def wrap(f: Callable) -> FunctionTool:
        return FunctionTool(f, name=name, description=description)

    if func is not None:
        return wrap(func)
    return wrap
