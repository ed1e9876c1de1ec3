"""Parley agents — streaming orchestration over any provider."""

from .accumulator import MediaResponseAccumulator, ResponseAccumulator
from .agent import Agent
from .executor import ToolExecutor
from .model_string import ModelStringParser
from .orchestrator import (
    DefaultStreamingOrchestrator,
    IterationResult,
    OrchestrationPolicy,
    StreamingOrchestrator,
)
from .state import StreamingState, TurnPhase
from .typed_output import (
    RETURN_RESULT_TOOL_NAME,
    ToolTypedOutputOrchestrator,
    TwoPhaseTypedOutputOrchestrator,
    TypedOutputPhase,
)

__all__ = [
    "Agent",
    "DefaultStreamingOrchestrator",
    "IterationResult",
    "MediaResponseAccumulator",
    "ModelStringParser",
    "OrchestrationPolicy",
    "RETURN_RESULT_TOOL_NAME",
    "ResponseAccumulator",
    "StreamingOrchestrator",
    "StreamingState",
    "ToolExecutor",
    "ToolTypedOutputOrchestrator",
    "TurnPhase",
    "TwoPhaseTypedOutputOrchestrator",
    "TypedOutputPhase",
]
