"""
Parley configuration.

Provider settings, model aliases, and agent runtime options.
Reads from ~/.parley/config.toml with environment variable overrides.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from parley.core.types import ProviderCaps

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

PARLEY_HOME = Path(os.getenv("PARLEY_HOME", Path.home() / ".parley"))
CONFIG_PATH = PARLEY_HOME / "config.toml"


# ---------------------------------------------------------------------------
# Environment lookups
# ---------------------------------------------------------------------------

class Environment(dict[str, str]):
    """
    Overrides for environment lookups (API keys, PARLEY_LOG_LEVEL, ...).

    Entries here win over ``os.environ``. With ``use_agent_environment_only``
    set, ``os.environ`` is not consulted at all.
    """

    use_agent_environment_only: bool = False

    def lookup(self, name: str, default: str | None = None) -> str | None:
        if name in self:
            return self[name]
        if self.use_agent_environment_only:
            return default
        return os.getenv(name, default)


environment = Environment()


def get_env(name: str, default: str | None = None) -> str | None:
    return environment.lookup(name, default)


# ---------------------------------------------------------------------------
# Single provider config
# ---------------------------------------------------------------------------

@dataclass
class ProviderConfig:
    """Connection and capability settings for one OpenAI-compatible endpoint."""

    name: str
    base_url: str
    api_key_env: str | None
    default_model: str
    embeddings_model: str | None = None
    display_name: str = ""
    capabilities: frozenset[ProviderCaps] = frozenset({ProviderCaps.CHAT})
    aliases: tuple[str, ...] = ()
    timeout: float = 60.0

    @property
    def api_key(self) -> str | None:
        if self.api_key_env:
            return get_env(self.api_key_env)
        return None

    @property
    def is_available(self) -> bool:
        if self.api_key_env:
            return bool(self.api_key)
        return True  # keyless endpoint


# ---------------------------------------------------------------------------
# Default provider definitions
# ---------------------------------------------------------------------------

_C = ProviderCaps

DEFAULT_PROVIDERS: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        name="openai",
        display_name="OpenAI",
        base_url="https://api.openai.com/v1",
        api_key_env="OPENAI_API_KEY",
        default_model="gpt-4.1",
        embeddings_model="text-embedding-3-small",
        capabilities=frozenset({_C.CHAT, _C.EMBEDDINGS, _C.MULTI_TOOL_CALLS, _C.TYPED_OUTPUT,
                                _C.TYPED_OUTPUT_WITH_TOOLS, _C.VISION}),
    ),
    "openrouter": ProviderConfig(
        name="openrouter",
        display_name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        api_key_env="OPENROUTER_API_KEY",
        default_model="google/gemini-2.5-flash",
        capabilities=frozenset({_C.CHAT, _C.MULTI_TOOL_CALLS, _C.TYPED_OUTPUT, _C.TYPED_OUTPUT_WITH_TOOLS,
                                _C.VISION}),
    ),
    "google": ProviderConfig(
        name="google",
        display_name="Google",
        base_url="https://generativelanguage.googleapis.com/v1beta/openai",
        api_key_env="GEMINI_API_KEY",
        default_model="gemini-2.5-flash",
        embeddings_model="text-embedding-004",
        # Gemini rejects a response schema in the same request as function declarations.
        capabilities=frozenset({_C.CHAT, _C.EMBEDDINGS, _C.MULTI_TOOL_CALLS, _C.TYPED_OUTPUT, _C.THINKING,
                                _C.VISION}),
        aliases=("gemini", "googleai", "google-gla"),
    ),
    "xai": ProviderConfig(
        name="xai",
        display_name="xAI",
        base_url="https://api.x.ai/v1",
        api_key_env="XAI_API_KEY",
        default_model="grok-4-1-fast",
        capabilities=frozenset({_C.CHAT, _C.MULTI_TOOL_CALLS, _C.TYPED_OUTPUT, _C.TYPED_OUTPUT_WITH_TOOLS,
                                _C.THINKING}),
        aliases=("grok",),
    ),
    "mistral": ProviderConfig(
        name="mistral",
        display_name="Mistral",
        base_url="https://api.mistral.ai/v1",
        api_key_env="MISTRAL_API_KEY",
        default_model="mistral-small-latest",
        embeddings_model="mistral-embed",
        capabilities=frozenset({_C.CHAT, _C.EMBEDDINGS, _C.MULTI_TOOL_CALLS, _C.TYPED_OUTPUT,
                                _C.TYPED_OUTPUT_WITH_TOOLS}),
        aliases=("mistralai",),
    ),
    "ollama": ProviderConfig(
        name="ollama",
        display_name="Ollama",
        base_url=os.getenv("OLLAMA_URL", "http://localhost:11434") + "/v1",
        api_key_env=None,
        default_model="llama3.1:8b",
        embeddings_model="nomic-embed-text",
        capabilities=frozenset({_C.CHAT, _C.EMBEDDINGS, _C.TYPED_OUTPUT, _C.TYPED_OUTPUT_WITH_TOOLS}),
    ),
    "vllm": ProviderConfig(
        name="vllm",
        display_name="vLLM",
        base_url=os.getenv("VLLM_URL", "http://localhost:8000") + "/v1",
        api_key_env=None,
        default_model="meta-llama/Llama-3.1-8B-Instruct",
        capabilities=frozenset({_C.CHAT, _C.TYPED_OUTPUT, _C.TYPED_OUTPUT_WITH_TOOLS}),
    ),
    "llamacpp": ProviderConfig(
        name="llamacpp",
        display_name="llama.cpp",
        base_url=os.getenv("LLAMACPP_URL", "http://localhost:8080") + "/v1",
        api_key_env=None,
        default_model="default",
        # No JSON-schema response mode; typed output goes through a tool call.
        capabilities=frozenset({_C.CHAT}),
    ),
}


# ---------------------------------------------------------------------------
# Model aliases — human-friendly names → provider:model
# ---------------------------------------------------------------------------

DEFAULT_MODEL_ALIASES: dict[str, str] = {
    "fast": "google:gemini-2.5-flash",
    "cheap": "google:gemini-2.5-flash-lite",
    "local": "ollama:llama3.1:8b",
    "gpt": "openai:gpt-4.1",
    "gpt-mini": "openai:gpt-4.1-mini",
    "gemini-pro": "google:gemini-2.5-pro",
}


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class ParleyConfig:
    """Top-level parley configuration."""

    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    model_aliases: dict[str, str] = field(default_factory=dict)

    # Agent defaults
    agent_max_iterations: int = 25
    tool_timeout_seconds: float | None = 30.0
    max_concurrent_tools: int = 8

    def resolve_alias(self, model: str) -> str:
        """Expand a model alias ("fast", "local", ...) to its provider:model string."""
        return self.model_aliases.get(model, model)

    def get_provider(self, name: str) -> ProviderConfig | None:
        return self.providers.get(name)

    def get_available_providers(self) -> list[str]:
        return sorted(name for name, cfg in self.providers.items() if cfg.is_available)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _parse_caps(values: list[str]) -> frozenset[ProviderCaps]:
    return frozenset(ProviderCaps(v) for v in values)


def _timeout(value: Any) -> float | None:
    """Zero or a negative value disables the tool timeout."""
    seconds = float(value)
    return seconds if seconds > 0 else None


def _apply_toml(config: ParleyConfig, data: dict[str, Any]) -> None:
    """Overlay TOML data onto a ParleyConfig."""
    for name, overrides in data.get("providers", {}).items():
        cfg = config.providers.get(name)
        if cfg is None:
            # New OpenAI-compatible endpoint declared entirely in TOML
            cfg = ProviderConfig(name=name, base_url=overrides.get("base_url", ""),
                                 api_key_env=overrides.get("api_key_env"),
                                 default_model=overrides.get("default_model", ""))
            config.providers[name] = cfg
        if "base_url" in overrides:
            cfg.base_url = overrides["base_url"]
        if "api_key_env" in overrides:
            cfg.api_key_env = overrides["api_key_env"]
        if "default_model" in overrides:
            cfg.default_model = overrides["default_model"]
        if "embeddings_model" in overrides:
            cfg.embeddings_model = overrides["embeddings_model"]
        if "display_name" in overrides:
            cfg.display_name = overrides["display_name"]
        if "capabilities" in overrides:
            cfg.capabilities = _parse_caps(overrides["capabilities"])
        if "aliases" in overrides:
            cfg.aliases = tuple(overrides["aliases"])
        if "timeout" in overrides:
            cfg.timeout = float(overrides["timeout"])

    for alias, target_model in data.get("aliases", {}).items():
        config.model_aliases[alias] = target_model

    agent = data.get("agent", {})
    if "max_iterations" in agent:
        config.agent_max_iterations = int(agent["max_iterations"])
    if "tool_timeout_seconds" in agent:
        config.tool_timeout_seconds = _timeout(agent["tool_timeout_seconds"])
    if "max_concurrent_tools" in agent:
        config.max_concurrent_tools = int(agent["max_concurrent_tools"])


def load_config(config_path: Path | None = None) -> ParleyConfig:
    """
    Build config from defaults → TOML file → environment variables.

    Precedence (highest wins):
        1. Environment variables
        2. ~/.parley/config.toml
        3. Built-in defaults
    """
    config = ParleyConfig(
        providers={k: replace(v) for k, v in DEFAULT_PROVIDERS.items()},
        model_aliases=dict(DEFAULT_MODEL_ALIASES),
    )

    path = config_path or CONFIG_PATH
    if path.exists():
        with open(path, "rb") as f:
            toml_data = tomllib.load(f)
        _apply_toml(config, toml_data)

    max_iterations = get_env("PARLEY_MAX_ITERATIONS")
    if max_iterations:
        config.agent_max_iterations = int(max_iterations)
    tool_timeout = get_env("PARLEY_TOOL_TIMEOUT")
    if tool_timeout:
        config.tool_timeout_seconds = _timeout(tool_timeout)

    return config


# ---------------------------------------------------------------------------
# Global singleton
# ---------------------------------------------------------------------------

_config: ParleyConfig | None = None


def get_config() -> ParleyConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config
