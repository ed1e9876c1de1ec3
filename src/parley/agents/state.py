"""Per-turn streaming state, owned by exactly one ``send_stream`` call."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from parley.core.types import ChatMessage, ChatResult, FinishReason, Role, TextPart, ToolPart, Usage
from parley.tools.tool import Tool

logger = logging.getLogger("parley.state")


class TurnPhase(Enum):
    PENDING = "pending"
    ITERATING = "iterating"
    TOOL_EXECUTING = "tool_executing"
    COMPLETE = "complete"


def merge_message(current: ChatMessage, delta: ChatMessage) -> ChatMessage:
    """
    Fold a streamed delta into the message being built.

    Text deltas are appended to the single text part (created at the position
    the first text arrived). Tool calls with an id already present are merged
    argument-wise; everything else is appended in arrival order.
    """
    parts = list(current.parts)
    for part in delta.parts:
        if isinstance(part, TextPart):
            if not part.text:
                continue
            idx = next((i for i, p in enumerate(parts) if isinstance(p, TextPart)), None)
            if idx is None:
                parts.append(part)
            else:
                parts[idx] = TextPart(parts[idx].text + part.text)
        elif isinstance(part, ToolPart) and part.is_call and part.id:
            idx = next((i for i, p in enumerate(parts)
                        if isinstance(p, ToolPart) and p.is_call and p.id == part.id), None)
            if idx is None:
                parts.append(part)
            else:
                prev = parts[idx]
                parts[idx] = ToolPart.call(prev.id, part.name or prev.name,
                                           {**(prev.arguments or {}), **(part.arguments or {})})
        else:
            parts.append(part)
    return ChatMessage(current.role, tuple(parts), {**current.metadata, **delta.metadata})


@dataclass
class StreamingState:
    """
    Mutable state of one turn.

    History is append-only and only grows through ``commit``; the message
    under construction lives in ``pending_message`` until the iteration
    finishes, so a re-run iteration starts again from the last committed turn.
    """

    conversation_history: list[ChatMessage]
    tool_map: Mapping[str, Tool] = field(default_factory=dict)
    done: bool = False
    phase: TurnPhase = TurnPhase.PENDING
    last_result: ChatResult[ChatMessage] = field(default_factory=lambda: ChatResult(ChatMessage(Role.MODEL)))
    pending_message: ChatMessage = field(default_factory=lambda: ChatMessage(Role.MODEL))
    finish_reason: FinishReason = FinishReason.UNSPECIFIED
    usage: Usage | None = None
    iterations: int = 0
    _tool_call_counter: int = 0

    def __post_init__(self):
        self.tool_map = MappingProxyType(dict(self.tool_map))

    @classmethod
    def create(cls, history: Sequence[ChatMessage], tools: Sequence[Tool]) -> StreamingState:
        tool_map: dict[str, Tool] = {}
        for tool in tools:
            if tool.name in tool_map:
                raise ValueError(f"Duplicate tool name: {tool.name}")
            tool_map[tool.name] = tool
        return cls(conversation_history=list(history), tool_map=tool_map)

    @property
    def tools(self) -> list[Tool]:
        return list(self.tool_map.values())

    # --- Lifecycle ---

    def complete(self) -> None:
        self.done = True
        self.phase = TurnPhase.COMPLETE

    def reset_for_new_message(self) -> None:
        """Start a model iteration; discards any partial message from an aborted attempt."""
        self.pending_message = ChatMessage(Role.MODEL)
        self.finish_reason = FinishReason.UNSPECIFIED
        self.iterations += 1
        if not self.done:
            self.phase = TurnPhase.ITERATING

    # --- Accumulation ---

    def accumulate(self, chunk: ChatResult[ChatMessage]) -> None:
        self.last_result = chunk
        self.pending_message = merge_message(self.pending_message, chunk.output)
        if chunk.finish_reason != FinishReason.UNSPECIFIED:
            self.finish_reason = chunk.finish_reason

    def add_usage(self, usage: Usage | None) -> None:
        if usage is not None:
            self.usage = usage if self.usage is None else self.usage + usage

    def next_tool_call_id(self) -> str:
        self._tool_call_counter += 1
        return f"call_{self._tool_call_counter}"

    def finish_message(self) -> ChatMessage:
        """The consolidated model message, with ids filled in for calls that lacked one."""
        msg = self.pending_message
        if not any(isinstance(p, ToolPart) and p.is_call and not p.id for p in msg.parts):
            return msg
        parts = []
        for p in msg.parts:
            if isinstance(p, ToolPart) and p.is_call and not p.id:
                p = ToolPart.call(self.next_tool_call_id(), p.name, p.arguments)
                logger.debug("Assigned id %s to tool call %s", p.id, p.name)
            parts.append(p)
        return ChatMessage(msg.role, tuple(parts), msg.metadata)

    def commit(self, message: ChatMessage) -> None:
        self.conversation_history.append(message)

    def unmatched_tool_calls(self, message: ChatMessage) -> list[ToolPart]:
        """Calls in ``message`` with no result yet (server-side tools arrive with theirs)."""
        answered = {p.id for p in message.tool_results}
        return [c for c in message.tool_calls if c.id not in answered]
