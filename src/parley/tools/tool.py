"""
Tool definitions: a name, a JSON schema for the arguments, and a callable.

Tools are provider-neutral. Each provider binding translates ``input_schema``
into its own function-declaration format.
"""

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class Tool(BaseModel):
    """
    A caller-owned function the model may invoke.

    Usage:
        def get_weather(args):
            return {"city": args["city"], "temp_c": 18}

        weather = Tool(
            name="get_weather",
            description="Current weather for a city",
            input_schema={"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
            on_call=get_weather,
        )

    ``on_call`` may be sync or async. When ``input_model`` is given, its JSON
    schema becomes ``input_schema`` and arguments are validated into an
    instance of it before the call.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(..., min_length=1, max_length=64, pattern=r"^[A-Za-z0-9_\-]+$")
    description: str = Field(default="", max_length=1024)
    input_schema: dict[str, Any] = Field(default_factory=lambda: dict(EMPTY_SCHEMA))
    on_call: Callable[..., Any] = Field(exclude=True)
    input_model: type[BaseModel] | None = Field(default=None, exclude=True)

    @model_validator(mode="before")
    @classmethod
    def _schema_from_model(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("input_model") is not None and "input_schema" not in data:
            data = {**data, "input_schema": data["input_model"].model_json_schema()}
        return data

    async def invoke(self, arguments: dict[str, Any]) -> Any:
        """
        Call the tool. Validation and call errors propagate to the executor.

        Sync callables run in a worker thread so they never block the event
        loop; a timed-out or cancelled call stops being awaited, but the
        thread itself runs to completion.
        """
        args: Any = self.input_model.model_validate(arguments) if self.input_model else arguments
        if inspect.iscoroutinefunction(self.on_call):
            result = await self.on_call(args)
        else:
            result = await asyncio.to_thread(self.on_call, args)
        if inspect.isawaitable(result):
            result = await result
        if isinstance(result, BaseModel):
            return result.model_dump(mode="json")
        return result

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "input_schema": self.input_schema}
