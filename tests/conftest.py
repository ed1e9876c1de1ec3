"""Shared fixtures for the parley test suite."""

import pytest

from parley.config import ParleyConfig, ProviderConfig, environment
from parley.core.types import ProviderCaps
from parley.tools.tool import Tool


@pytest.fixture
def provider_config():
    """A minimal OpenAI-compatible provider config for testing."""
    return ProviderConfig(
        name="test",
        base_url="http://localhost:9999/v1",
        api_key_env=None,
        default_model="test-model",
        embeddings_model="test-embed",
        capabilities=frozenset({ProviderCaps.CHAT, ProviderCaps.EMBEDDINGS, ProviderCaps.TYPED_OUTPUT,
                                ProviderCaps.TYPED_OUTPUT_WITH_TOOLS}),
        aliases=("tester",),
    )


@pytest.fixture
def parley_config(provider_config):
    """A ParleyConfig with one local provider and no file or env overlay."""
    return ParleyConfig(
        providers={"test": provider_config},
        model_aliases={"quick": "test:quick-model"},
    )


@pytest.fixture
def weather_tool():
    return Tool(
        name="get_weather",
        description="Current weather for a city",
        input_schema={"type": "object", "properties": {"city": {"type": "string"}}, "required": ["city"]},
        on_call=lambda args: {"city": args["city"], "temp_c": 18, "conditions": "sunny"},
    )


@pytest.fixture
def failing_tool():
    def explode(args):
        raise RuntimeError("weather service unavailable")

    return Tool(name="flaky", description="Always fails", on_call=explode)


@pytest.fixture
def agent_environment():
    """The shared environment override map, emptied before and after the test."""
    environment.clear()
    environment.use_agent_environment_only = False
    yield environment
    environment.clear()
    environment.use_agent_environment_only = False
