"""Parley providers — one interface, every LLM backend."""

from .base import (
    AuthenticationError,
    BaseProvider,
    ChatModel,
    EmbeddingsModel,
    MediaGenerationModel,
    ModelNotFoundError,
    ProviderError,
    RateLimitError,
)
from .openai_compat import OpenAICompatProvider
from .registry import all_providers, get_provider, provider_factories

__all__ = [
    "AuthenticationError",
    "BaseProvider",
    "ChatModel",
    "EmbeddingsModel",
    "MediaGenerationModel",
    "ModelNotFoundError",
    "OpenAICompatProvider",
    "ProviderError",
    "RateLimitError",
    "all_providers",
    "get_provider",
    "provider_factories",
]
