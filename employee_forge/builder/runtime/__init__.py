"""Builder runtime: step loop, branch state machine and the checkpointed engine."""

from .model import Completion, LanguageModel, ModelTurn, ModelUsage, PydanticAILanguageModel, RequestedToolCall
from .step_runner import Stage, StepResult, StepRunner, StepSuspended
from .models import Completed, EngineDeps, ExecutionOutcome, StateUpdate, Suspended
from .engine import EmployeeBuilderEngine

__all__ = [
    "Completed",
    "Completion",
    "EmployeeBuilderEngine",
    "EngineDeps",
    "ExecutionOutcome",
    "LanguageModel",
    "ModelTurn",
    "ModelUsage",
    "PydanticAILanguageModel",
    "RequestedToolCall",
    "Stage",
    "StateUpdate",
    "StepResult",
    "StepRunner",
    "StepSuspended",
    "Suspended",
]
