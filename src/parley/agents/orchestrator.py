"""Streaming orchestrators drive one turn of model calls and tool execution."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from parley.core.errors import ToolNameConflictError
from parley.core.types import ChatMessage, FinishReason, ProviderCaps, Role, ToolPart, Usage
from parley.providers.base import ChatModel
from parley.tools.tool import Tool

from .executor import ToolExecutor
from .state import StreamingState, TurnPhase

logger = logging.getLogger("parley.orchestrator")


@dataclass
class IterationResult:
    """One chunk produced by an orchestrator, plus whether the turn goes on."""
    output: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    should_continue: bool = True
    finish_reason: FinishReason = FinishReason.UNSPECIFIED
    metadata: dict[str, Any] = field(default_factory=dict)
    thinking: str | None = None
    usage: Usage | None = None


class StreamingOrchestrator(ABC):
    """
    Strategy for one turn.

    The agent calls ``initialize`` once, then ``process_iteration`` until the
    state is done, then ``finalize`` on every exit path. Each
    ``process_iteration`` call makes exactly one model request.
    """

    def __init__(self, executor: ToolExecutor | None = None):
        self.executor = executor or ToolExecutor()

    def initialize(self, state: StreamingState) -> None:
        logger.debug("%s starting turn with %d tools", type(self).__name__, len(state.tool_map))

    @abstractmethod
    def process_iteration(
        self, model: ChatModel, state: StreamingState, *, output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[IterationResult]: ...

    def finalize(self, state: StreamingState) -> None:
        logger.debug("%s finished turn after %d iterations (done=%s)",
                     type(self).__name__, state.iterations, state.done)

    # --- Shared steps ---

    async def _stream_model(
        self,
        model: ChatModel,
        state: StreamingState,
        *,
        tools: Sequence[Tool],
        output_schema: dict[str, Any] | None,
        emit_text: bool = True,
    ) -> AsyncIterator[IterationResult]:
        """Run one model request, folding deltas into ``state.pending_message``."""
        state.reset_for_new_message()
        async for chunk in model.send_stream(list(state.conversation_history), tools=tools,
                                             output_schema=output_schema):
            state.accumulate(chunk)
            state.add_usage(chunk.usage)
            text = chunk.output.text if emit_text else ""
            if text or chunk.thinking or chunk.metadata:
                yield IterationResult(output=text, metadata=dict(chunk.metadata), thinking=chunk.thinking)

    async def _execute_tools(self, state: StreamingState, calls: list[ToolPart]) -> AsyncIterator[IterationResult]:
        """Run every call, then append one result message per call, in call order."""
        state.phase = TurnPhase.TOOL_EXECUTING
        logger.info("Executing %d tool call(s): %s", len(calls), ", ".join(c.name for c in calls))
        results = await self.executor.execute_all(calls, state.tool_map)
        messages = [ChatMessage(Role.USER, (r,)) for r in results]
        for msg in messages:
            state.commit(msg)
        state.phase = TurnPhase.ITERATING
        yield IterationResult(messages=messages, finish_reason=FinishReason.TOOL_CALLS)

    def _terminal(self, state: StreamingState) -> IterationResult:
        """The usage-only chunk that closes a turn."""
        finish = state.finish_reason
        if finish in (FinishReason.UNSPECIFIED, FinishReason.TOOL_CALLS):
            finish = FinishReason.STOP
        state.complete()
        return IterationResult(should_continue=False, finish_reason=finish, usage=state.usage)


class DefaultStreamingOrchestrator(StreamingOrchestrator):
    """Stream text, run tool calls, repeat until the model answers without calling a tool."""

    async def process_iteration(
        self, model: ChatModel, state: StreamingState, *, output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[IterationResult]:
        async for result in self._stream_model(model, state, tools=state.tools, output_schema=output_schema):
            yield result

        message = state.finish_message()
        if not message.parts:
            logger.debug("Model returned an empty message; completing turn")
            yield self._terminal(state)
            return

        state.commit(message)
        yield IterationResult(messages=[message], finish_reason=state.finish_reason)

        calls = state.unmatched_tool_calls(message)
        if calls:
            async for result in self._execute_tools(state, calls):
                yield result
        else:
            yield self._terminal(state)


@dataclass(frozen=True)
class OrchestrationPolicy:
    """
    Picks the orchestrator for a send, from capability flags read once when
    the agent is built.
    """
    typed_output: bool = True
    typed_output_with_tools: bool = True
    executor: ToolExecutor | None = None

    @classmethod
    def from_caps(cls, caps: frozenset[ProviderCaps], executor: ToolExecutor | None = None) -> OrchestrationPolicy:
        return cls(
            typed_output=ProviderCaps.TYPED_OUTPUT in caps,
            typed_output_with_tools=ProviderCaps.TYPED_OUTPUT_WITH_TOOLS in caps,
            executor=executor,
        )

    def resolve(
        self, output_schema: dict[str, Any] | None, tools: Sequence[Tool],
    ) -> tuple[StreamingOrchestrator, list[Tool]]:
        """A fresh orchestrator for one turn and the tools to offer the model."""
        from .typed_output import (
            RETURN_RESULT_TOOL_NAME,
            ToolTypedOutputOrchestrator,
            TwoPhaseTypedOutputOrchestrator,
            return_result_tool,
        )

        tools = list(tools)
        if output_schema is None:
            return DefaultStreamingOrchestrator(self.executor), tools
        if not self.typed_output:
            if any(t.name == RETURN_RESULT_TOOL_NAME for t in tools):
                raise ToolNameConflictError(RETURN_RESULT_TOOL_NAME)
            return ToolTypedOutputOrchestrator(self.executor), [*tools, return_result_tool(output_schema)]
        if tools and not self.typed_output_with_tools:
            return TwoPhaseTypedOutputOrchestrator(self.executor), tools
        return DefaultStreamingOrchestrator(self.executor), tools
