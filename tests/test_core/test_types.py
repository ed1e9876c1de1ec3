"""Tests for the core message and result types."""

import pytest

from parley.core.types import (
    ChatMessage,
    ChatResult,
    DataPart,
    FinishReason,
    LinkPart,
    Role,
    TextPart,
    ToolPart,
    ToolPartKind,
    Usage,
    part_from_dict,
)


class TestChatMessage:
    def test_user_folds_text_attachments(self):
        msg = ChatMessage.user("Summarize this", parts=[TextPart("file contents"), DataPart(b"\x89PNG", "image/png")])
        assert len(msg.text_parts) == 1
        assert msg.text == "Summarize this\n\nfile contents"
        assert isinstance(msg.parts[1], DataPart)

    def test_user_without_text(self):
        msg = ChatMessage.user(parts=[LinkPart("https://example.com/cat.jpg", "image/jpeg")])
        assert msg.text_parts == []
        assert msg.role == Role.USER

    def test_model_with_tool_calls(self):
        call = ToolPart.call("call_1", "get_weather", {"city": "Paris"})
        msg = ChatMessage.model("Checking", parts=[call])
        assert msg.has_tool_calls
        assert msg.tool_calls == [call]
        assert msg.tool_results == []

    def test_parts_become_tuple(self):
        msg = ChatMessage(Role.MODEL, [TextPart("hi")])
        assert isinstance(msg.parts, tuple)

    def test_immutable(self):
        msg = ChatMessage.system("Be brief")
        with pytest.raises(AttributeError):
            msg.role = Role.USER  # type: ignore[misc]

    def test_round_trip(self):
        msg = ChatMessage.model(
            "done",
            parts=[ToolPart.call("c1", "search", {"q": "x"}), DataPart(b"abc", "text/plain", "a.txt")],
        )
        restored = ChatMessage.from_dict(msg.to_dict())
        assert restored == msg


class TestToolPart:
    def test_error_for(self):
        part = ToolPart.error_for("c1", "search", "boom")
        assert part.kind == ToolPartKind.RESULT
        assert part.is_error
        assert part.result == {"error": "boom"}

    def test_call_defaults_arguments(self):
        assert ToolPart.call("c1", "noop").arguments == {}

    def test_unknown_part_type(self):
        with pytest.raises(ValueError):
            part_from_dict({"type": "video"})


class TestUsage:
    def test_add(self):
        total = Usage(10, 5, 15) + Usage(3, 2, 5, reasoning_tokens=4)
        assert (total.input_tokens, total.output_tokens, total.total_tokens) == (13, 7, 20)
        assert total.reasoning_tokens == 4
        assert total.cache_read_tokens is None


class TestChatResult:
    def test_to_dict(self):
        result = ChatResult(
            output="4", id="r1", finish_reason=FinishReason.STOP, usage=Usage(1, 1, 2), thinking="easy",
        )
        d = result.to_dict()
        assert d["output"] == "4"
        assert d["finish_reason"] == "stop"
        assert d["usage"]["total_tokens"] == 2
        assert d["thinking"] == "easy"

    def test_message_output_serialized(self):
        d = ChatResult(ChatMessage.model("hi")).to_dict()
        assert d["output"]["role"] == "model"
