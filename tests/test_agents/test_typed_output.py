"""Tests for the typed-output orchestrators."""

import json

import pytest
from fakes import ScriptedChatModel, calls, stop, text

from parley.agents.state import StreamingState
from parley.agents.typed_output import (
    RETURN_RESULT_TOOL_NAME,
    ToolTypedOutputOrchestrator,
    TwoPhaseTypedOutputOrchestrator,
    TypedOutputPhase,
    return_result_tool,
)
from parley.core.types import ChatMessage, FinishReason, Role, ToolPart

SCHEMA = {
    "type": "object",
    "properties": {"city": {"type": "string"}, "temp_c": {"type": "number"}},
    "required": ["city", "temp_c"],
}


async def _run_turn(orchestrator, model, state, output_schema):
    results = []
    orchestrator.initialize(state)
    try:
        while not state.done:
            async for r in orchestrator.process_iteration(model, state, output_schema=output_schema):
                results.append(r)
    finally:
        orchestrator.finalize(state)
    return results


class TestReturnResultTool:
    def test_object_schema_used_as_is(self):
        assert return_result_tool(SCHEMA).input_schema == SCHEMA

    def test_non_object_schema_wrapped(self):
        tool = return_result_tool({"type": "array", "items": {"type": "string"}})
        assert tool.input_schema["type"] == "object"
        assert tool.input_schema["required"] == ["result"]


class TestToolTypedOutput:
    @pytest.mark.asyncio
    async def test_return_result_becomes_output(self, weather_tool):
        tools = [weather_tool, return_result_tool(SCHEMA)]
        model = ScriptedChatModel([
            [calls(ToolPart.call("c1", "get_weather", {"city": "Paris"}))],
            [text("Here you go"), calls(ToolPart.call("c2", RETURN_RESULT_TOOL_NAME, {"city": "Paris", "temp_c": 18}))],
        ])
        state = StreamingState.create([ChatMessage.user("Weather in Paris as JSON")], tools)
        results = await _run_turn(ToolTypedOutputOrchestrator(), model, state, SCHEMA)

        outputs = [r.output for r in results if r.output]
        assert len(outputs) == 1
        assert json.loads(outputs[0]) == {"city": "Paris", "temp_c": 18}

        final = state.conversation_history[-1]
        assert final.role == Role.MODEL
        assert not final.has_tool_calls
        assert json.loads(final.text) == {"city": "Paris", "temp_c": 18}
        assert results[-1].finish_reason == FinishReason.STOP
        # The schema is only ever offered as a tool
        assert all(req["output_schema"] is None for req in model.requests)
        assert model.requests[0]["tools"] == ["get_weather", RETURN_RESULT_TOOL_NAME]

    @pytest.mark.asyncio
    async def test_text_not_streamed(self):
        model = ScriptedChatModel([
            [text("thinking out loud"), calls(ToolPart.call("c1", RETURN_RESULT_TOOL_NAME, {"city": "Oslo", "temp_c": 2}))],
        ])
        state = StreamingState.create([ChatMessage.user("Oslo?")], [return_result_tool(SCHEMA)])
        results = await _run_turn(ToolTypedOutputOrchestrator(), model, state, SCHEMA)
        assert "thinking out loud" not in "".join(r.output for r in results)

    @pytest.mark.asyncio
    async def test_wrapped_result_unwrapped(self):
        schema = {"type": "array", "items": {"type": "string"}}
        model = ScriptedChatModel([
            [calls(ToolPart.call("c1", RETURN_RESULT_TOOL_NAME, {"result": ["a", "b"]}))],
        ])
        state = StreamingState.create([ChatMessage.user("List")], [return_result_tool(schema)])
        await _run_turn(ToolTypedOutputOrchestrator(), model, state, schema)
        assert json.loads(state.conversation_history[-1].text) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_plain_text_answer_used(self):
        model = ScriptedChatModel([[text('{"city": "Rome", "temp_c": 25}'), stop()]])
        state = StreamingState.create([ChatMessage.user("Rome?")], [return_result_tool(SCHEMA)])
        results = await _run_turn(ToolTypedOutputOrchestrator(), model, state, SCHEMA)
        assert json.loads("".join(r.output for r in results)) == {"city": "Rome", "temp_c": 25}


class TestTwoPhaseTypedOutput:
    @pytest.mark.asyncio
    async def test_tools_then_schema(self, weather_tool):
        model = ScriptedChatModel([
            [calls(ToolPart.call("c1", "get_weather", {"city": "Paris"}))],
            [text("It is 18C and sunny in Paris."), stop()],
            [text('{"city": "Paris", '), text('"temp_c": 18}'), stop()],
        ])
        state = StreamingState.create([ChatMessage.user("Weather in Paris as JSON")], [weather_tool])
        orchestrator = TwoPhaseTypedOutputOrchestrator()
        results = await _run_turn(orchestrator, model, state, SCHEMA)

        assert orchestrator.phase == TypedOutputPhase.TYPED
        tools_phase, typed_phase = model.requests[:2], model.requests[2]
        assert all(r["tools"] == ["get_weather"] and r["output_schema"] is None for r in tools_phase)
        assert typed_phase["tools"] == []
        assert typed_phase["output_schema"] == SCHEMA

        # Phase one yields only tool-call and tool-result messages
        message_chunks = [r for r in results if r.messages]
        first_phase = message_chunks[:2]
        assert first_phase[0].messages[0].has_tool_calls
        assert first_phase[1].messages[0].tool_results

        final = message_chunks[-1].messages[0]
        assert json.loads(final.text) == {"city": "Paris", "temp_c": 18}
        assert not final.has_tool_calls
        assert "".join(r.output for r in results) == '{"city": "Paris", "temp_c": 18}'

        # The free-form answer from phase one never reaches history
        assert all("sunny" not in m.text for m in state.conversation_history)
        assert results[-1].finish_reason == FinishReason.STOP
        assert state.done

    @pytest.mark.asyncio
    async def test_tool_calls_in_typed_phase_dropped(self, weather_tool):
        model = ScriptedChatModel([
            [text("done"), stop()],
            [text('{"city": "Oslo", "temp_c": 1}'), calls(ToolPart.call("c9", "get_weather", {"city": "Oslo"}))],
        ])
        state = StreamingState.create([ChatMessage.user("Oslo")], [weather_tool])
        await _run_turn(TwoPhaseTypedOutputOrchestrator(), model, state, SCHEMA)
        assert not state.conversation_history[-1].has_tool_calls
        assert state.done

    @pytest.mark.asyncio
    async def test_initialize_resets_phase(self):
        orchestrator = TwoPhaseTypedOutputOrchestrator()
        orchestrator.phase = TypedOutputPhase.TYPED
        orchestrator.initialize(StreamingState.create([], []))
        assert orchestrator.phase == TypedOutputPhase.TOOLS
