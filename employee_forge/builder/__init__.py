"""Employee builder.

Turns a job description into an ``AiEmployee``: decompose it into workflows,
match each workflow to catalog capabilities and a trigger in its own branch,
assemble an agent prompt per match, and join the branches. Any stage can stop
to ask the human a question; the thread is checkpointed and continued with
``EmployeeBuilderEngine.resume``.
"""

from .context import ExecutionContext
from .errors import (
    AmbiguousResumeError,
    CheckpointConflictError,
    CheckpointWriteError,
    DecompositionError,
    EmployeeForgeError,
    MatchingError,
    NoPendingInterruptError,
    RecursionLimitExceeded,
)
from .runtime import Completed, EmployeeBuilderEngine, EngineDeps, StateUpdate, Suspended

__all__ = [
    "AmbiguousResumeError",
    "CheckpointConflictError",
    "CheckpointWriteError",
    "Completed",
    "DecompositionError",
    "EmployeeBuilderEngine",
    "EmployeeForgeError",
    "EngineDeps",
    "ExecutionContext",
    "MatchingError",
    "NoPendingInterruptError",
    "RecursionLimitExceeded",
    "StateUpdate",
    "Suspended",
]
