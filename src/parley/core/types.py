"""
Conversation types shared by every provider.

Messages are made of parts: text, binary data, links, and tool calls/results.
Providers stream ChatResult chunks whose output is a partial model message;
the orchestration layer folds those chunks into well-formed messages and
hands the caller one uniform stream regardless of who is on the other end.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    MODEL = "model"


class FinishReason(str, Enum):
    UNSPECIFIED = "unspecified"
    STOP = "stop"
    TOOL_CALLS = "tool_calls"
    LENGTH = "length"
    CONTENT_FILTER = "content_filter"
    RECITATION = "recitation"
    ERROR = "error"


class ToolPartKind(str, Enum):
    CALL = "call"
    RESULT = "result"


class ModelKind(str, Enum):
    CHAT = "chat"
    EMBEDDINGS = "embeddings"
    MEDIA = "media"


class ProviderCaps(str, Enum):
    """Capability flags a provider advertises."""
    CHAT = "chat"
    EMBEDDINGS = "embeddings"
    MEDIA_GENERATION = "media_generation"
    MULTI_TOOL_CALLS = "multi_tool_calls"
    TYPED_OUTPUT = "typed_output"
    TYPED_OUTPUT_WITH_TOOLS = "typed_output_with_tools"
    THINKING = "thinking"
    VISION = "vision"


# ---------------------------------------------------------------------------
# Parts
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TextPart:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class DataPart:
    """Inline binary content (images, audio, files)."""
    data: bytes
    mime_type: str
    name: str | None = None

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": "data", "data": self.base64, "mime_type": self.mime_type}
        if self.name:
            d["name"] = self.name
        return d


@dataclass(frozen=True)
class LinkPart:
    uri: str
    mime_type: str | None = None
    name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": "link", "uri": self.uri}
        if self.mime_type:
            d["mime_type"] = self.mime_type
        if self.name:
            d["name"] = self.name
        return d


@dataclass(frozen=True)
class ToolPart:
    """A tool call made by the model, or the result sent back for one."""
    kind: ToolPartKind
    id: str
    name: str
    arguments: dict[str, Any] | None = None
    result: Any = None
    is_error: bool = False

    @classmethod
    def call(cls, id: str, name: str, arguments: dict[str, Any] | None = None) -> ToolPart:
        return cls(ToolPartKind.CALL, id, name, arguments=arguments or {})

    @classmethod
    def result_for(cls, id: str, name: str, result: Any) -> ToolPart:
        return cls(ToolPartKind.RESULT, id, name, result=result)

    @classmethod
    def error_for(cls, id: str, name: str, message: str) -> ToolPart:
        return cls(ToolPartKind.RESULT, id, name, result={"error": message}, is_error=True)

    @property
    def is_call(self) -> bool:
        return self.kind == ToolPartKind.CALL

    @property
    def is_result(self) -> bool:
        return self.kind == ToolPartKind.RESULT

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"type": "tool", "kind": self.kind.value, "id": self.id, "name": self.name}
        if self.is_call:
            d["arguments"] = self.arguments or {}
        else:
            d["result"] = self.result
            if self.is_error:
                d["is_error"] = True
        return d


Part = TextPart | DataPart | LinkPart | ToolPart


def part_from_dict(data: dict[str, Any]) -> Part:
    t = data.get("type")
    if t == "text":
        return TextPart(data.get("text", ""))
    if t == "data":
        return DataPart(base64.b64decode(data["data"]), data["mime_type"], data.get("name"))
    if t == "link":
        return LinkPart(data["uri"], data.get("mime_type"), data.get("name"))
    if t == "tool":
        return ToolPart(
            ToolPartKind(data["kind"]), data["id"], data["name"],
            arguments=data.get("arguments"), result=data.get("result"), is_error=data.get("is_error", False),
        )
    raise ValueError(f"Unknown part type: {t!r}")


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatMessage:
    """One conversation turn. Holds at most one text part."""
    role: Role
    parts: tuple[Part, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.parts, tuple):
            object.__setattr__(self, "parts", tuple(self.parts))

    @classmethod
    def system(cls, text: str) -> ChatMessage:
        return cls(Role.SYSTEM, (TextPart(text),))

    @classmethod
    def user(cls, text: str = "", parts: Iterable[Part] = ()) -> ChatMessage:
        """Build a user turn; text attachments are folded into the prompt's text part."""
        texts = [text] if text else []
        others: list[Part] = []
        for p in parts:
            if isinstance(p, TextPart):
                if p.text:
                    texts.append(p.text)
            else:
                others.append(p)
        merged: list[Part] = [TextPart("\n\n".join(texts))] if texts else []
        return cls(Role.USER, tuple(merged + others))

    @classmethod
    def model(cls, text: str = "", parts: Iterable[Part] = ()) -> ChatMessage:
        head: list[Part] = [TextPart(text)] if text else []
        return cls(Role.MODEL, tuple(head + list(parts)))

    @property
    def text(self) -> str:
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))

    @property
    def text_parts(self) -> list[TextPart]:
        return [p for p in self.parts if isinstance(p, TextPart)]

    @property
    def tool_calls(self) -> list[ToolPart]:
        return [p for p in self.parts if isinstance(p, ToolPart) and p.is_call]

    @property
    def tool_results(self) -> list[ToolPart]:
        return [p for p in self.parts if isinstance(p, ToolPart) and p.is_result]

    @property
    def has_tool_calls(self) -> bool:
        return any(isinstance(p, ToolPart) and p.is_call for p in self.parts)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"role": self.role.value, "parts": [p.to_dict() for p in self.parts]}
        if self.metadata:
            d["metadata"] = self.metadata
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        return cls(
            Role(data["role"]),
            tuple(part_from_dict(p) for p in data.get("parts", [])),
            dict(data.get("metadata", {})),
        )


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Usage:
    """Token usage statistics."""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cache_read_tokens: int | None = None
    reasoning_tokens: int | None = None

    def __add__(self, other: Usage) -> Usage:
        def opt(a: int | None, b: int | None) -> int | None:
            if a is None and b is None:
                return None
            return (a or 0) + (b or 0)

        return Usage(
            self.input_tokens + other.input_tokens,
            self.output_tokens + other.output_tokens,
            self.total_tokens + other.total_tokens,
            opt(self.cache_read_tokens, other.cache_read_tokens),
            opt(self.reasoning_tokens, other.reasoning_tokens),
        )

    def to_dict(self) -> dict[str, Any]:
        d = {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens, "total_tokens": self.total_tokens}
        for k in ("cache_read_tokens", "reasoning_tokens"):
            v = getattr(self, k)
            if v is not None:
                d[k] = v
        return d


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChatResult(Generic[T]):
    """
    One chunk of a chat stream, or the aggregate of a whole stream.

    ``output`` is a text delta for agent streams and a partial model message
    for raw model streams. ``messages`` is empty unless the chunk introduces
    new conversation turns.
    """
    output: T
    id: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.UNSPECIFIED
    metadata: dict[str, Any] = field(default_factory=dict)
    thinking: str | None = None
    usage: Usage | None = None

    def to_dict(self) -> dict[str, Any]:
        output = self.output.to_dict() if isinstance(self.output, ChatMessage) else self.output
        d: dict[str, Any] = {
            "id": self.id,
            "output": output,
            "messages": [m.to_dict() for m in self.messages],
            "finish_reason": self.finish_reason.value,
        }
        if self.metadata:
            d["metadata"] = self.metadata
        if self.thinking:
            d["thinking"] = self.thinking
        if self.usage:
            d["usage"] = self.usage.to_dict()
        return d


@dataclass(frozen=True)
class EmbeddingsResult:
    embeddings: list[float]
    usage: Usage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchEmbeddingsResult:
    embeddings: list[list[float]]
    usage: Usage | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class MediaGenerationResult:
    """A chunk (or the aggregate) of a media generation stream."""
    id: str = ""
    assets: list[DataPart] = field(default_factory=list)
    links: list[LinkPart] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    finish_reason: FinishReason = FinishReason.UNSPECIFIED
    metadata: dict[str, Any] = field(default_factory=dict)
    usage: Usage | None = None
