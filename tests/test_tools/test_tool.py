"""Tests for Tool definitions and invocation."""

import threading

import pydantic
import pytest
from pydantic import BaseModel

from parley.tools.tool import EMPTY_SCHEMA, Tool


class CityArgs(BaseModel):
    city: str
    units: str = "metric"


class Forecast(BaseModel):
    city: str
    temp: float


class TestToolDefinition:
    def test_defaults(self):
        tool = Tool(name="noop", on_call=lambda args: None)
        assert tool.input_schema == EMPTY_SCHEMA
        assert tool.description == ""

    def test_invalid_name(self):
        with pytest.raises(pydantic.ValidationError):
            Tool(name="has spaces", on_call=lambda args: None)

    def test_schema_from_input_model(self):
        tool = Tool(name="forecast", input_model=CityArgs, on_call=lambda args: None)
        assert tool.input_schema["properties"]["city"]["type"] == "string"
        assert tool.input_schema["required"] == ["city"]

    def test_to_dict_excludes_callable(self):
        d = Tool(name="noop", description="Does nothing", on_call=lambda args: None).to_dict()
        assert d == {"name": "noop", "description": "Does nothing", "input_schema": EMPTY_SCHEMA}


class TestToolInvoke:
    @pytest.mark.asyncio
    async def test_sync_callable(self):
        tool = Tool(name="add", on_call=lambda args: args["a"] + args["b"])
        assert await tool.invoke({"a": 2, "b": 2}) == 4

    @pytest.mark.asyncio
    async def test_sync_callable_runs_off_the_event_loop_thread(self):
        tool = Tool(name="where", on_call=lambda args: threading.get_ident())
        assert await tool.invoke({}) != threading.get_ident()

    @pytest.mark.asyncio
    async def test_sync_callable_returning_awaitable(self):
        async def later():
            return "awaited"

        tool = Tool(name="later", on_call=lambda args: later())
        assert await tool.invoke({}) == "awaited"

    @pytest.mark.asyncio
    async def test_async_callable(self):
        async def shout(args):
            return args["text"].upper()

        tool = Tool(name="shout", on_call=shout)
        assert await tool.invoke({"text": "hi"}) == "HI"

    @pytest.mark.asyncio
    async def test_input_model_validation_and_model_result(self):
        tool = Tool(
            name="forecast",
            input_model=CityArgs,
            on_call=lambda args: Forecast(city=args.city, temp=21.5),
        )
        assert await tool.invoke({"city": "Oslo"}) == {"city": "Oslo", "temp": 21.5}

    @pytest.mark.asyncio
    async def test_invalid_arguments_raise(self):
        tool = Tool(name="forecast", input_model=CityArgs, on_call=lambda args: None)
        with pytest.raises(pydantic.ValidationError):
            await tool.invoke({"units": "imperial"})
