"""
Typed-output orchestrators for providers that need help producing structured output.

ToolTypedOutputOrchestrator
    For backends without a native JSON-schema response mode. The schema is
    offered as a ``return_result`` tool and the model's call to it becomes the
    answer.

TwoPhaseTypedOutputOrchestrator
    For backends that take tools or a schema, but not both in one request.
    Tools are used first; once the model stops calling them, one more request
    is made with the schema and no tools.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from enum import Enum
from typing import Any

from parley.core.types import ChatMessage, Role, TextPart, ToolPart
from parley.providers.base import ChatModel
from parley.tools.tool import Tool

from .executor import ToolExecutor
from .orchestrator import IterationResult, StreamingOrchestrator
from .state import StreamingState

logger = logging.getLogger("parley.typed_output")

RETURN_RESULT_TOOL_NAME = "return_result"
_WRAPPED_KEY = "result"


def _is_object_schema(schema: dict[str, Any]) -> bool:
    return schema.get("type", "object") == "object"


def return_result_tool(output_schema: dict[str, Any]) -> Tool:
    """The synthetic tool whose arguments are the typed answer."""
    schema = output_schema
    if not _is_object_schema(output_schema):
        # Tool arguments must be an object; scalars and arrays ride in one field.
        schema = {"type": "object", "properties": {_WRAPPED_KEY: output_schema}, "required": [_WRAPPED_KEY]}
    return Tool(
        name=RETURN_RESULT_TOOL_NAME,
        description="Return the final answer. Call this exactly once, with the complete result, when you are done.",
        input_schema=schema,
        on_call=lambda args: args,
    )


def _result_json(output_schema: dict[str, Any] | None, arguments: dict[str, Any]) -> str:
    if output_schema is not None and not _is_object_schema(output_schema):
        return json.dumps(arguments.get(_WRAPPED_KEY))
    return json.dumps(arguments)


def _without_tool_calls(message: ChatMessage) -> ChatMessage:
    parts = tuple(p for p in message.parts if not (isinstance(p, ToolPart) and p.is_call))
    return ChatMessage(message.role, parts, message.metadata)


class ToolTypedOutputOrchestrator(StreamingOrchestrator):
    """
    Structured output through a ``return_result`` tool call.

    Text deltas are not streamed; the caller sees the JSON answer once the
    model has called ``return_result``. Ordinary tool calls are executed as
    usual. A model that answers in plain text instead is taken at its word.
    """

    async def process_iteration(
        self, model: ChatModel, state: StreamingState, *, output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[IterationResult]:
        # The schema travels as the return_result tool, never as a response format.
        async for result in self._stream_model(model, state, tools=state.tools, output_schema=None,
                                               emit_text=False):
            yield result

        message = state.finish_message()
        returned = next((c for c in message.tool_calls if c.name == RETURN_RESULT_TOOL_NAME), None)
        if returned is not None:
            others = [c for c in message.tool_calls if c is not returned]
            if others:
                logger.warning("Ignoring %d tool call(s) made alongside %s: %s", len(others),
                               RETURN_RESULT_TOOL_NAME, ", ".join(c.name for c in others))
            output = _result_json(output_schema, returned.arguments or {})
            kept = [p for p in message.parts if not isinstance(p, (TextPart, ToolPart))]
            final = ChatMessage(Role.MODEL, (TextPart(output), *kept), message.metadata)
            state.commit(final)
            yield IterationResult(output=output)
            yield IterationResult(messages=[final], finish_reason=state.finish_reason)
            yield self._terminal(state)
            return

        if not message.parts:
            yield self._terminal(state)
            return

        state.commit(message)
        calls = state.unmatched_tool_calls(message)
        if calls:
            yield IterationResult(messages=[message], finish_reason=state.finish_reason)
            async for result in self._execute_tools(state, calls):
                yield result
            return

        logger.debug("Model answered without calling %s; using its text as output", RETURN_RESULT_TOOL_NAME)
        if message.text:
            yield IterationResult(output=message.text)
        yield IterationResult(messages=[message], finish_reason=state.finish_reason)
        yield self._terminal(state)


class TypedOutputPhase(Enum):
    TOOLS = "tools"
    TYPED = "typed"


class TwoPhaseTypedOutputOrchestrator(StreamingOrchestrator):
    """
    Tools first, schema second.

    TOOLS: tools offered, no schema, text withheld. When the model answers
    without calling a tool, that free-form answer is dropped and the phase
    moves to TYPED.
    TYPED: schema on, tools withheld, text streamed, turn ends.
    """

    def __init__(self, executor: ToolExecutor | None = None):
        super().__init__(executor)
        self.phase = TypedOutputPhase.TOOLS

    def initialize(self, state: StreamingState) -> None:
        super().initialize(state)
        self.phase = TypedOutputPhase.TOOLS

    async def process_iteration(
        self, model: ChatModel, state: StreamingState, *, output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[IterationResult]:
        if self.phase is TypedOutputPhase.TOOLS:
            async for result in self._tools_phase(model, state):
                yield result
        else:
            async for result in self._typed_phase(model, state, output_schema):
                yield result

    async def _tools_phase(self, model: ChatModel, state: StreamingState) -> AsyncIterator[IterationResult]:
        async for result in self._stream_model(model, state, tools=state.tools, output_schema=None,
                                               emit_text=False):
            yield result

        message = state.finish_message()
        calls = state.unmatched_tool_calls(message)
        if calls:
            state.commit(message)
            yield IterationResult(messages=[message], finish_reason=state.finish_reason)
            async for result in self._execute_tools(state, calls):
                yield result
            return

        logger.debug("Tool phase finished after %d iterations; requesting typed output", state.iterations)
        self.phase = TypedOutputPhase.TYPED

    async def _typed_phase(
        self, model: ChatModel, state: StreamingState, output_schema: dict[str, Any] | None,
    ) -> AsyncIterator[IterationResult]:
        async for result in self._stream_model(model, state, tools=(), output_schema=output_schema):
            yield result

        message = state.finish_message()
        if message.has_tool_calls:
            logger.warning("Model called tools during the typed-output phase; dropping the calls")
            message = _without_tool_calls(message)
        if message.parts:
            state.commit(message)
            yield IterationResult(messages=[message], finish_reason=state.finish_reason)
        yield self._terminal(state)
