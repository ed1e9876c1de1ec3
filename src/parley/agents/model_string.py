"""
Model strings name a provider and, optionally, the models to use from it.

    "openai"                                   provider defaults
    "openai:gpt-4.1-mini"                      chat model
    "openai/gpt-4.1-mini"                      same
    "openai?chat=gpt-4.1&embeddings=text-embedding-3-small&media=gpt-image-1"
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import parse_qs, urlencode


@dataclass(frozen=True)
class ModelStringParser:
    provider_name: str
    chat_model_name: str | None = None
    embeddings_model_name: str | None = None
    media_model_name: str | None = None

    @classmethod
    def parse(cls, model: str) -> ModelStringParser:
        model = model.strip()
        if not model:
            raise ValueError("Model string is empty")

        if "?" in model:
            provider, query = model.split("?", 1)
            params = {k: v[-1] for k, v in parse_qs(query).items() if v}
            unknown = set(params) - {"chat", "embeddings", "media"}
            if unknown:
                raise ValueError(f"Unknown model kinds in {model!r}: {', '.join(sorted(unknown))}")
            return cls._checked(provider, params.get("chat"), params.get("embeddings"), params.get("media"))

        # The first separator wins, so "ollama/llama3.1:8b" keeps its tag.
        cut = min((i for i in (model.find(":"), model.find("/")) if i >= 0), default=-1)
        if cut >= 0:
            return cls._checked(model[:cut], model[cut + 1:] or None)
        return cls._checked(model)

    @classmethod
    def _checked(cls, provider: str, chat: str | None = None, embeddings: str | None = None,
                 media: str | None = None) -> ModelStringParser:
        if not provider:
            raise ValueError("Model string has no provider name")
        return cls(provider, chat, embeddings, media)

    def __str__(self) -> str:
        if self.embeddings_model_name is None and self.media_model_name is None:
            if self.chat_model_name is None:
                return self.provider_name
            return f"{self.provider_name}:{self.chat_model_name}"
        params = {
            "chat": self.chat_model_name,
            "embeddings": self.embeddings_model_name,
            "media": self.media_model_name,
        }
        return f"{self.provider_name}?{urlencode({k: v for k, v in params.items() if v is not None}, safe='/')}"
