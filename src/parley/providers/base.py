"""
Provider and model interfaces.

A provider is a factory for models plus a set of capability flags. Models
are short-lived: the agent creates one per call and closes it when the call
ends, however it ends.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any

import httpx

from parley.config import ProviderConfig
from parley.core.errors import ParleyError, UnsupportedCapabilityError
from parley.core.types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    EmbeddingsResult,
    MediaGenerationResult,
    ModelKind,
    Part,
    ProviderCaps,
)
from parley.tools.tool import Tool

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ProviderError(ParleyError):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class RateLimitError(ProviderError):
    pass


class AuthenticationError(ProviderError):
    pass


class ModelNotFoundError(ProviderError):
    pass


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class ModelResource:
    """Something holding connections; usable as ``async with``."""

    async def aclose(self) -> None:
        return None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class ChatModel(ModelResource, ABC):
    def __init__(self, name: str, *, temperature: float | None = None, enable_thinking: bool = False,
                 options: Mapping[str, Any] | None = None):
        self.name = name
        self.temperature = temperature
        self.enable_thinking = enable_thinking
        self.options = dict(options or {})

    @abstractmethod
    def send_stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: Sequence[Tool] = (),
        output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[ChatResult[ChatMessage]]:
        """
        Stream one completion. Each chunk's ``output`` is a model message
        holding only the parts that arrived with that chunk; text parts are
        deltas, tool calls arrive whole.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"


class EmbeddingsModel(ModelResource, ABC):
    def __init__(self, name: str, *, options: Mapping[str, Any] | None = None):
        self.name = name
        self.options = dict(options or {})

    @abstractmethod
    async def embed_query(self, query: str) -> EmbeddingsResult: ...

    @abstractmethod
    async def embed_documents(self, texts: Sequence[str]) -> BatchEmbeddingsResult: ...


class MediaGenerationModel(ModelResource, ABC):
    def __init__(self, name: str, *, options: Mapping[str, Any] | None = None):
        self.name = name
        self.options = dict(options or {})

    @abstractmethod
    def generate_media_stream(
        self,
        prompt: str,
        *,
        mime_types: Sequence[str],
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
        options: Mapping[str, Any] | None = None,
        output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[MediaGenerationResult]: ...


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------

class HttpClientMixin:
    """Lazily-built httpx client bound to one provider config."""

    config: ProviderConfig
    _transport: httpx.AsyncBaseTransport | None

    _client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                headers=self._get_headers(),
                timeout=httpx.Timeout(self.config.timeout),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "User-Agent": "parley/0.1.0"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    def _handle_error(self, response: httpx.Response) -> None:
        name = self.config.name
        if response.status_code == 401:
            raise AuthenticationError("Authentication failed.", name, 401)
        if response.status_code == 429:
            raise RateLimitError("Rate limit exceeded.", name, 429)
        if response.status_code == 404:
            raise ModelNotFoundError("Model not found.", name, 404)
        if response.status_code >= 400:
            try:
                msg = response.json().get("error", {}).get("message", response.text)
            except Exception:
                msg = response.text
            raise ProviderError(msg, name, response.status_code)


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

class BaseProvider(ABC):
    """
    Factory for chat, embeddings, and media models of one backend.

    ``caps`` tells the agent which orchestration strategy the backend needs;
    ``create_*`` methods for kinds the backend lacks raise
    UnsupportedCapabilityError.
    """

    name: str = "base"
    display_name: str = "Base Provider"
    aliases: tuple[str, ...] = ()
    caps: frozenset[ProviderCaps] = frozenset({ProviderCaps.CHAT})
    default_model_names: dict[ModelKind, str] = {}

    def supports(self, cap: ProviderCaps) -> bool:
        return cap in self.caps

    @abstractmethod
    def create_chat_model(
        self,
        *,
        name: str | None = None,
        temperature: float | None = None,
        enable_thinking: bool = False,
        options: Mapping[str, Any] | None = None,
    ) -> ChatModel: ...

    def create_embeddings_model(
        self, *, name: str | None = None, options: Mapping[str, Any] | None = None,
    ) -> EmbeddingsModel:
        raise UnsupportedCapabilityError(self.name, "embeddings")

    def create_media_model(
        self, *, name: str | None = None, options: Mapping[str, Any] | None = None,
    ) -> MediaGenerationModel:
        raise UnsupportedCapabilityError(self.name, "media generation")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
