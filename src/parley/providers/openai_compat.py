"""
OpenAI-compatible provider binding.

OpenAI, OpenRouter, Gemini's OpenAI endpoint, xAI, Mistral, Ollama, vLLM,
and llama.cpp all expose ``/chat/completions`` and most expose
``/embeddings``, so one binding covers them. What differs between them is
the capability set in their ProviderConfig, which decides how the agent
orchestrates typed output and tools.
"""

import base64
import json
import logging
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

import httpx

from parley.config import ProviderConfig
from parley.core.errors import UnsupportedCapabilityError
from parley.core.types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    DataPart,
    EmbeddingsResult,
    FinishReason,
    LinkPart,
    ModelKind,
    ProviderCaps,
    Role,
    TextPart,
    ToolPart,
    Usage,
)
from parley.providers.base import (
    BaseProvider,
    ChatModel,
    EmbeddingsModel,
    HttpClientMixin,
    ProviderError,
)
from parley.tools.tool import Tool

logger = logging.getLogger(__name__)

FINISH_MAP = {
    "stop": FinishReason.STOP,
    "tool_calls": FinishReason.TOOL_CALLS,
    "function_call": FinishReason.TOOL_CALLS,
    "length": FinishReason.LENGTH,
    "content_filter": FinishReason.CONTENT_FILTER,
}


# ---------------------------------------------------------------------------
# Format conversion
# ---------------------------------------------------------------------------

def _data_uri(part: DataPart) -> str:
    return f"data:{part.mime_type};base64,{base64.b64encode(part.data).decode('ascii')}"


def _result_text(result: Any) -> str:
    return result if isinstance(result, str) else json.dumps(result, default=str)


def _user_content(msg: ChatMessage) -> str | list[dict[str, Any]] | None:
    parts = [p for p in msg.parts if not isinstance(p, ToolPart)]
    if not parts:
        return None
    if all(isinstance(p, TextPart) for p in parts):
        return msg.text
    blocks: list[dict[str, Any]] = []
    for p in parts:
        if isinstance(p, TextPart):
            blocks.append({"type": "text", "text": p.text})
        elif isinstance(p, DataPart) and p.mime_type.startswith("image/"):
            blocks.append({"type": "image_url", "image_url": {"url": _data_uri(p)}})
        elif isinstance(p, DataPart):
            blocks.append({"type": "file", "file": {"filename": p.name or "attachment", "file_data": _data_uri(p)}})
        elif isinstance(p, LinkPart) and (p.mime_type or "").startswith("image/"):
            blocks.append({"type": "image_url", "image_url": {"url": p.uri}})
        elif isinstance(p, LinkPart):
            blocks.append({"type": "text", "text": f"[{p.name or p.uri}]({p.uri})"})
    return blocks


def convert_messages(messages: Sequence[ChatMessage]) -> list[dict[str, Any]]:
    converted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == Role.SYSTEM:
            converted.append({"role": "system", "content": msg.text})
        elif msg.role == Role.MODEL:
            m: dict[str, Any] = {"role": "assistant", "content": msg.text or None}
            calls = msg.tool_calls
            if calls:
                m["tool_calls"] = [
                    {"id": c.id, "type": "function",
                     "function": {"name": c.name, "arguments": json.dumps(c.arguments or {})}}
                    for c in calls
                ]
            converted.append(m)
        else:
            for r in msg.tool_results:
                converted.append({"role": "tool", "tool_call_id": r.id, "content": _result_text(r.result)})
            content = _user_content(msg)
            if content is not None:
                converted.append({"role": "user", "content": content})
    return converted


def convert_tools(tools: Sequence[Tool]) -> list[dict[str, Any]]:
    return [
        {"type": "function", "function": {"name": t.name, "description": t.description, "parameters": t.input_schema}}
        for t in tools
    ]


def _usage(u: dict[str, Any]) -> Usage:
    details = u.get("completion_tokens_details") or {}
    cached = (u.get("prompt_tokens_details") or {}).get("cached_tokens")
    return Usage(
        u.get("prompt_tokens", 0),
        u.get("completion_tokens", 0),
        u.get("total_tokens", 0),
        cache_read_tokens=cached,
        reasoning_tokens=details.get("reasoning_tokens"),
    )


def _feed_fragment(pending: dict[int, dict[str, str]], fragment: dict[str, Any]) -> None:
    """Tool-call arguments arrive as string fragments keyed by index."""
    index = fragment.get("index", len(pending))
    call = pending.setdefault(index, {"id": "", "name": "", "arguments": ""})
    if fragment.get("id"):
        call["id"] = fragment["id"]
    fn = fragment.get("function") or {}
    if fn.get("name"):
        call["name"] = fn["name"]
    if fn.get("arguments"):
        call["arguments"] += fn["arguments"]


def _finish_calls(pending: dict[int, dict[str, str]]) -> list[ToolPart]:
    calls = []
    for index in sorted(pending):
        raw = pending[index]
        try:
            args = json.loads(raw["arguments"]) if raw["arguments"] else {}
        except json.JSONDecodeError:
            args = {"raw": raw["arguments"]}
        calls.append(ToolPart.call(raw["id"], raw["name"], args))
    return calls


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class OpenAICompatChatModel(HttpClientMixin, ChatModel):
    def __init__(self, config: ProviderConfig, name: str, *, temperature: float | None = None,
                 enable_thinking: bool = False, options: Mapping[str, Any] | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(name, temperature=temperature, enable_thinking=enable_thinking, options=options)
        self.config = config
        self._transport = transport

    def build_body(self, messages: Sequence[ChatMessage], tools: Sequence[Tool],
                   output_schema: dict[str, Any] | None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.name,
            "messages": convert_messages(messages),
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if self.temperature is not None:
            body["temperature"] = self.temperature
        if tools:
            body["tools"] = convert_tools(tools)
        if output_schema is not None:
            body["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": "output", "schema": output_schema},
            }
        if self.enable_thinking:
            body["reasoning_effort"] = "medium"
        body.update(self.options)
        return body

    async def send_stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[Tool] = (),
        output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[ChatResult[ChatMessage]]:
        body = self.build_body(messages, tools, output_schema)
        logger.debug("POST %s/chat/completions model=%s messages=%d tools=%d",
                     self.config.base_url, self.name, len(messages), len(tools))

        pending: dict[int, dict[str, str]] = {}
        finish = FinishReason.UNSPECIFIED
        usage: Usage | None = None
        response_id = ""
        try:
            async with self.client.stream("POST", "/chat/completions", json=body) as resp:
                if resp.status_code >= 400:
                    await resp.aread()
                    self._handle_error(resp)
                async for line in resp.aiter_lines():
                    if not line.startswith("data:"):
                        continue
                    raw = line[5:].strip()
                    if raw == "[DONE]":
                        break
                    try:
                        evt = json.loads(raw)
                    except json.JSONDecodeError:
                        logger.debug("Skipping undecodable stream line from %s", self.config.name)
                        continue
                    response_id = evt.get("id") or response_id
                    if evt.get("usage"):
                        usage = _usage(evt["usage"])
                    for choice in evt.get("choices") or []:
                        delta = choice.get("delta") or {}
                        text = delta.get("content") or ""
                        reasoning = delta.get("reasoning_content") or delta.get("reasoning")
                        if text or reasoning:
                            yield ChatResult(ChatMessage.model(text), id=response_id, thinking=reasoning or None)
                        for fragment in delta.get("tool_calls") or []:
                            _feed_fragment(pending, fragment)
                        if choice.get("finish_reason"):
                            finish = FINISH_MAP.get(choice["finish_reason"], FinishReason.UNSPECIFIED)
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc), self.config.name) from exc

        yield ChatResult(
            ChatMessage.model(parts=_finish_calls(pending)),
            id=response_id,
            finish_reason=finish,
            usage=usage,
        )


class OpenAICompatEmbeddingsModel(HttpClientMixin, EmbeddingsModel):
    def __init__(self, config: ProviderConfig, name: str, *, options: Mapping[str, Any] | None = None,
                 transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(name, options=options)
        self.config = config
        self._transport = transport

    async def embed_documents(self, texts: Sequence[str]) -> BatchEmbeddingsResult:
        payload: dict[str, Any] = {"model": self.name, "input": list(texts), **self.options}
        try:
            resp = await self.client.post("/embeddings", json=payload)
        except httpx.HTTPError as exc:
            raise ProviderError(str(exc), self.config.name) from exc
        if resp.status_code >= 400:
            self._handle_error(resp)

        data = resp.json()
        items = sorted(data.get("data", []), key=lambda item: item.get("index", 0))
        u = data.get("usage") or {}
        return BatchEmbeddingsResult(
            [item["embedding"] for item in items],
            Usage(u.get("prompt_tokens", 0), 0, u.get("total_tokens", 0)),
            {"model": data.get("model", self.name)},
        )

    async def embed_query(self, query: str) -> EmbeddingsResult:
        batch = await self.embed_documents([query])
        return EmbeddingsResult(batch.embeddings[0], batch.usage, batch.metadata)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class OpenAICompatProvider(BaseProvider):
    """Any backend speaking the OpenAI chat-completions protocol."""

    def __init__(self, config: ProviderConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self.name = config.name
        self.display_name = config.display_name or config.name
        self.aliases = config.aliases
        self.caps = config.capabilities
        self.default_model_names = {ModelKind.CHAT: config.default_model}
        if config.embeddings_model:
            self.default_model_names[ModelKind.EMBEDDINGS] = config.embeddings_model
        self._transport = transport

    def create_chat_model(
        self,
        *,
        name: str | None = None,
        temperature: float | None = None,
        enable_thinking: bool = False,
        options: Mapping[str, Any] | None = None,
    ) -> OpenAICompatChatModel:
        if enable_thinking and not self.supports(ProviderCaps.THINKING):
            raise UnsupportedCapabilityError(self.name, "thinking")
        return OpenAICompatChatModel(
            self.config, name or self.config.default_model, temperature=temperature,
            enable_thinking=enable_thinking, options=options, transport=self._transport,
        )

    def create_embeddings_model(
        self, *, name: str | None = None, options: Mapping[str, Any] | None = None,
    ) -> OpenAICompatEmbeddingsModel:
        model_name = name or self.config.embeddings_model
        if not self.supports(ProviderCaps.EMBEDDINGS) or not model_name:
            raise UnsupportedCapabilityError(self.name, "embeddings")
        return OpenAICompatEmbeddingsModel(self.config, model_name, options=options, transport=self._transport)
