"""
Parley — one agent API over many LLM providers.

Streams text, runs your tools, and hands back structured output, whichever
backend is on the other end.

Quick start::

    pip install parley

    from parley import Agent, Tool

    weather = Tool(
        name="get_weather",
        description="Current weather for a city",
        input_schema={"type": "object", "properties": {"city": {"type": "string"}}},
        on_call=lambda args: {"city": args["city"], "temp_c": 18},
    )

    agent = Agent("openai:gpt-4.1-mini", tools=[weather])
    result = await agent.send("What's the weather in Paris?")
    print(result.output)
"""

__version__ = "0.1.0"

from parley.agents import Agent, ModelStringParser
from parley.config import Environment, ParleyConfig, ProviderConfig, environment, get_config, load_config
from parley.core.errors import (
    IterationLimitError,
    MessageConsolidationError,
    OutputFormatError,
    ParleyError,
    UnknownProviderError,
    ToolNameConflictError,
    UnsupportedCapabilityError,
)
from parley.core.types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    DataPart,
    EmbeddingsResult,
    FinishReason,
    LinkPart,
    MediaGenerationResult,
    ModelKind,
    ProviderCaps,
    Role,
    TextPart,
    ToolPart,
    Usage,
)
from parley.logs import LoggingOptions, configure_logging
from parley.providers import BaseProvider, ProviderError, provider_factories
from parley.tools import Tool

__all__ = [
    # Agent
    "Agent",
    "ModelStringParser",
    "Tool",
    # Core types
    "BatchEmbeddingsResult",
    "ChatMessage",
    "ChatResult",
    "DataPart",
    "EmbeddingsResult",
    "FinishReason",
    "LinkPart",
    "MediaGenerationResult",
    "ModelKind",
    "ProviderCaps",
    "Role",
    "TextPart",
    "ToolPart",
    "Usage",
    # Errors
    "IterationLimitError",
    "MessageConsolidationError",
    "OutputFormatError",
    "ParleyError",
    "ProviderError",
    "UnknownProviderError",
    "UnsupportedCapabilityError",
    "ToolNameConflictError",
    # Config
    "Environment",
    "environment",
    "load_config",
    "get_config",
    "ParleyConfig",
    "ProviderConfig",
    # Logging
    "LoggingOptions",
    "configure_logging",
    # Providers
    "BaseProvider",
    "provider_factories",
]
