"""Scripted stand-ins for providers and models."""

from __future__ import annotations

from parley.core.types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    EmbeddingsResult,
    FinishReason,
    MediaGenerationResult,
    ModelKind,
    ProviderCaps,
    ToolPart,
    Usage,
)
from parley.providers.base import BaseProvider, ChatModel, EmbeddingsModel, MediaGenerationModel

ALL_CAPS = frozenset(ProviderCaps)


def text(t: str, id: str = "resp_1") -> ChatResult[ChatMessage]:
    return ChatResult(ChatMessage.model(t), id=id)


def calls(*parts: ToolPart, id: str = "resp_1", usage: Usage | None = None) -> ChatResult[ChatMessage]:
    return ChatResult(ChatMessage.model(parts=parts), id=id, finish_reason=FinishReason.TOOL_CALLS, usage=usage)


def stop(usage: Usage | None = Usage(10, 5, 15), id: str = "resp_1") -> ChatResult[ChatMessage]:
    return ChatResult(ChatMessage.model(), id=id, finish_reason=FinishReason.STOP, usage=usage)


class ScriptedChatModel(ChatModel):
    """Replays one scripted response per ``send_stream`` call and records what it was sent."""

    def __init__(self, script, name: str = "fake-chat", **kwargs):
        super().__init__(name, **kwargs)
        self.script = list(script)
        self.requests: list[dict] = []
        self.closed = False

    async def send_stream(self, messages, *, tools=(), output_schema=None):
        self.requests.append({
            "messages": list(messages),
            "tools": [t.name for t in tools],
            "output_schema": output_schema,
        })
        if not self.script:
            raise AssertionError("model called more times than scripted")
        response = self.script.pop(0)
        if isinstance(response, Exception):
            raise response
        for chunk in response:
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeEmbeddingsModel(EmbeddingsModel):
    def __init__(self, name: str = "fake-embed", **kwargs):
        super().__init__(name, **kwargs)
        self.closed = False

    async def embed_query(self, query):
        return EmbeddingsResult([float(len(query)), 0.0], Usage(len(query), 0, len(query)))

    async def embed_documents(self, texts):
        return BatchEmbeddingsResult([[float(len(t)), 0.0] for t in texts], Usage(sum(map(len, texts)), 0, 0))

    async def aclose(self):
        self.closed = True


class FakeMediaModel(MediaGenerationModel):
    def __init__(self, chunks, name: str = "fake-media", **kwargs):
        super().__init__(name, **kwargs)
        self.chunks = list(chunks)
        self.requests: list[dict] = []
        self.closed = False

    async def generate_media_stream(self, prompt, *, mime_types, history=(), attachments=(), options=None,
                                    output_schema=None):
        self.requests.append({"prompt": prompt, "mime_types": list(mime_types), "options": options})
        for chunk in self.chunks:
            yield chunk

    async def aclose(self):
        self.closed = True


class FakeProvider(BaseProvider):
    """Hands out the same scripted chat model every time, so tests can inspect it afterwards."""

    name = "fake"
    display_name = "Fake Provider"

    def __init__(self, script=(), caps: frozenset[ProviderCaps] = ALL_CAPS,
                 media_chunks: list[MediaGenerationResult] | None = None):
        self.caps = caps
        self.chat_model = ScriptedChatModel(script)
        self.embeddings_model = FakeEmbeddingsModel()
        self.media_model = FakeMediaModel(media_chunks or [])
        self.default_model_names = {ModelKind.CHAT: "fake-chat", ModelKind.EMBEDDINGS: "fake-embed"}
        self.chat_model_kwargs: dict = {}

    def create_chat_model(self, *, name=None, temperature=None, enable_thinking=False, options=None):
        self.chat_model_kwargs = {"name": name, "temperature": temperature, "options": options}
        self.chat_model.closed = False
        return self.chat_model

    def create_embeddings_model(self, *, name=None, options=None):
        self.embeddings_model.closed = False
        return self.embeddings_model

    def create_media_model(self, *, name=None, options=None):
        return self.media_model
