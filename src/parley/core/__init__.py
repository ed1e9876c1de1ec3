"""Parley core types — messages, parts, results, errors."""

from .errors import (
    IterationLimitError,
    MessageConsolidationError,
    OutputFormatError,
    ParleyError,
    UnknownProviderError,
    ToolNameConflictError,
    UnsupportedCapabilityError,
)
from .types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    DataPart,
    EmbeddingsResult,
    FinishReason,
    LinkPart,
    MediaGenerationResult,
    ModelKind,
    Part,
    ProviderCaps,
    Role,
    TextPart,
    ToolPart,
    ToolPartKind,
    Usage,
)

__all__ = [
    "BatchEmbeddingsResult",
    "ChatMessage",
    "ChatResult",
    "DataPart",
    "EmbeddingsResult",
    "FinishReason",
    "IterationLimitError",
    "LinkPart",
    "MediaGenerationResult",
    "MessageConsolidationError",
    "ModelKind",
    "OutputFormatError",
    "ParleyError",
    "Part",
    "ProviderCaps",
    "Role",
    "TextPart",
    "ToolPart",
    "ToolPartKind",
    "UnknownProviderError",
    "UnsupportedCapabilityError",
    "ToolNameConflictError",
    "Usage",
]
