"""Tests for tools and schema derivation (agentrun/tools.py)."""

from typing import Optional, Union

import pytest

from agentrun.errors import ConfigurationError
from agentrun.tools import FunctionTool, Tool, build_parameters_schema, function_tool


class TestBuildParametersSchema:
    def test_basic_types_and_required(self):
        def f(city: str, days: int, precise: bool, scale: float = 1.0):
            pass

        schema = build_parameters_schema(f)
        assert schema["type"] == "object"
        assert schema["properties"]["city"] == {"type": "string"}
        assert schema["properties"]["days"] == {"type": "integer"}
        assert schema["properties"]["precise"] == {"type": "boolean"}
        assert schema["properties"]["scale"] == {"type": "number", "default": 1.0}
        assert schema["required"] == ["city", "days", "precise"]

    def test_unannotated_defaults_to_string(self):
        def f(x):
            pass

        assert build_parameters_schema(f)["properties"]["x"] == {"type": "string"}

    def test_optional_is_nullable(self):
        def f(unit: Optional[str] = None):
            pass

        prop = build_parameters_schema(f)["properties"]["unit"]
        assert prop["type"] == "string"
        assert prop["nullable"] is True
        assert prop["default"] is None

    def test_union_becomes_one_of(self):
        def f(value: Union[int, str]):
            pass

        prop = build_parameters_schema(f)["properties"]["value"]
        assert prop == {"oneOf": [{"type": "integer"}, {"type": "string"}]}

    def test_pipe_union(self):
        def f(value: int | None):
            pass

        prop = build_parameters_schema(f)["properties"]["value"]
        assert prop == {"type": "integer", "nullable": True}

    def test_list_items(self):
        def f(cities: list[str], counts: list):
            pass

        props = build_parameters_schema(f)["properties"]
        assert props["cities"] == {"type": "array", "items": {"type": "string"}}
        assert props["counts"] == {"type": "array", "items": {"type": "string"}}

    def test_dict_is_object(self):
        def f(options: dict[str, int]):
            pass

        assert build_parameters_schema(f)["properties"]["options"] == {"type": "object"}

    def test_var_args_skipped(self):
        def f(a: int, *args, **kwargs):
            pass

        assert list(build_parameters_schema(f)["properties"]) == ["a"]


class TestFunctionTool:
    def test_defaults_from_function(self):
        def get_weather(city: str) -> str:
            """Get the current weather for a city.

            Longer explanation that is not part of the description.
            """
            return f"The weather in {city} is sunny."

        tool = FunctionTool(get_weather)
        assert tool.name == "get_weather"
        assert tool.description == "Get the current weather for a city."
        assert tool.get_parameters()["required"] == ["city"]
        assert tool.execute({"city": "Tokyo"}) == "The weather in Tokyo is sunny."

    def test_no_docstring(self):
        tool = FunctionTool(lambda: 1, name="one")
        assert tool.description == "No description available"

    def test_overrides(self):
        schema = {"type": "object", "properties": {}}
        tool = FunctionTool(lambda: None, name="noop", description="Does nothing", parameters=schema)
        assert tool.name == "noop"
        assert tool.description == "Does nothing"
        assert tool.get_parameters() is schema

    def test_not_callable(self):
        with pytest.raises(ConfigurationError):
            FunctionTool("not a function")

    def test_execute_propagates_errors(self):
        def boom():
            raise RuntimeError("kaboom")

        with pytest.raises(RuntimeError, match="kaboom"):
            FunctionTool(boom).execute({})

    def test_is_tool(self):
        assert isinstance(FunctionTool(len), Tool)
        assert repr(FunctionTool(len, name="length")) == "FunctionTool(name='length')"


class TestFunctionToolDecorator:
    def test_bare(self):
        @function_tool
        def add(a: float, b: float) -> float:
            """Add two numbers."""
            return a + b

        assert isinstance(add, FunctionTool)
        assert add.name == "add"
        assert add.execute({"a": 1, "b": 2}) == 3

    def test_with_name(self):
        @function_tool(name="getWeather")
        def get_weather(city: str) -> str:
            """Get the weather."""
            return city

        assert get_weather.name == "getWeather"
        assert get_weather.description == "Get the weather."


class TestCustomTool:
    def test_subclass(self):
        class Echo(Tool):
            name = "echo"
            description = "Echo the input"

            def get_parameters(self):
                return {"type": "object", "properties": {"text": {"type": "string"}}}

            def execute(self, args):
                return args["text"]

        assert Echo().execute({"text": "hi"}) == "hi"

    def test_abstract(self):
        with pytest.raises(TypeError):
            Tool()
