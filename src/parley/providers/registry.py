"""
Provider registry: names and aliases mapped to provider factories.

Add a custom backend by assigning a factory:

    provider_factories["my-provider"] = lambda config: MyProvider()
    agent = Agent("my-provider:my-model")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from parley.config import DEFAULT_PROVIDERS, ParleyConfig, ProviderConfig, get_config
from parley.core.errors import UnknownProviderError
from parley.providers.base import BaseProvider
from parley.providers.openai_compat import OpenAICompatProvider

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[ParleyConfig], BaseProvider]


def _configured(name: str) -> ProviderFactory:
    def factory(config: ParleyConfig) -> BaseProvider:
        provider_config = config.get_provider(name)
        if provider_config is None:
            raise UnknownProviderError(name, sorted(config.providers))
        return OpenAICompatProvider(provider_config)
    return factory


def _factories_for(providers: Mapping[str, ProviderConfig]) -> dict[str, ProviderFactory]:
    factories: dict[str, ProviderFactory] = {}
    for name, provider_config in providers.items():
        factory = _configured(name)
        factories[name] = factory
        for alias in provider_config.aliases:
            factories[alias] = factory
    return factories


provider_factories: dict[str, ProviderFactory] = _factories_for(DEFAULT_PROVIDERS)


def get_provider(name: str, config: ParleyConfig | None = None) -> BaseProvider:
    """Create a fresh provider by name or alias (case-insensitive)."""
    config = config or get_config()
    key = name.lower()
    factory = provider_factories.get(key)
    if factory is None:
        # Declared only in config.toml
        factory = _factories_for(config.providers).get(key)
    if factory is None:
        raise UnknownProviderError(key, sorted(set(provider_factories) | set(config.providers)))
    logger.debug("Creating provider %s", key)
    return factory(config)


def all_providers(config: ParleyConfig | None = None) -> list[BaseProvider]:
    """One instance per distinct provider; aliases are skipped."""
    config = config or get_config()
    seen: set[str] = set()
    providers: list[BaseProvider] = []
    for key in [*provider_factories, *config.providers]:
        try:
            provider = get_provider(key, config)
        except UnknownProviderError:
            logger.debug("Provider %s is registered but not configured; skipping", key)
            continue
        if provider.name not in seen:
            seen.add(provider.name)
            providers.append(provider)
    return providers
