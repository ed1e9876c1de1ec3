"""Fold a result stream into one aggregate result."""

from __future__ import annotations

from typing import Any

from parley.core.types import (
    ChatMessage,
    ChatResult,
    DataPart,
    FinishReason,
    LinkPart,
    MediaGenerationResult,
    Role,
    Usage,
)


class ResponseAccumulator:
    """
    Collects ``send_stream`` chunks for ``send`` and ``send_for``.

    Output is the concatenated text of every chunk. With ``typed=True`` it is
    instead the text of the last model message, which is where structured
    output ends up whichever orchestrator produced it.
    """

    def __init__(self, typed: bool = False):
        self.typed = typed
        self._output: list[str] = []
        self._messages: list[ChatMessage] = []
        self._thinking: list[str] = []
        self._metadata: dict[str, Any] = {}
        self._id = ""
        self._finish_reason = FinishReason.UNSPECIFIED
        self._usage: Usage | None = None

    def add(self, chunk: ChatResult[str]) -> None:
        if chunk.output:
            self._output.append(chunk.output)
        self._messages.extend(chunk.messages)
        if chunk.thinking:
            self._thinking.append(chunk.thinking)
        self._metadata.update(chunk.metadata)
        if chunk.id and not self._id:
            self._id = chunk.id
        if chunk.finish_reason != FinishReason.UNSPECIFIED:
            self._finish_reason = chunk.finish_reason
        if chunk.usage is not None:
            self._usage = chunk.usage

    def build_final(self) -> ChatResult[str]:
        if self.typed:
            model_messages = [m for m in self._messages if m.role == Role.MODEL]
            output = model_messages[-1].text if model_messages else ""
        else:
            output = "".join(self._output)
        return ChatResult(
            output=output,
            id=self._id,
            messages=list(self._messages),
            finish_reason=self._finish_reason,
            metadata=dict(self._metadata),
            thinking="".join(self._thinking) or None,
            usage=self._usage,
        )


class MediaResponseAccumulator:
    """Collects ``generate_media_stream`` chunks: assets and links are merged, not concatenated."""

    def __init__(self):
        self._assets: list[DataPart] = []
        self._links: list[LinkPart] = []
        self._messages: list[ChatMessage] = []
        self._metadata: dict[str, Any] = {}
        self._id = ""
        self._finish_reason = FinishReason.UNSPECIFIED
        self._usage: Usage | None = None

    def add(self, chunk: MediaGenerationResult) -> None:
        self._assets.extend(chunk.assets)
        self._links.extend(chunk.links)
        self._messages.extend(chunk.messages)
        self._metadata.update(chunk.metadata)
        if chunk.id and not self._id:
            self._id = chunk.id
        if chunk.finish_reason != FinishReason.UNSPECIFIED:
            self._finish_reason = chunk.finish_reason
        if chunk.usage is not None:
            self._usage = chunk.usage

    def build_final(self) -> MediaGenerationResult:
        return MediaGenerationResult(
            id=self._id,
            assets=list(self._assets),
            links=list(self._links),
            messages=list(self._messages),
            finish_reason=self._finish_reason,
            metadata=dict(self._metadata),
            usage=self._usage,
        )
