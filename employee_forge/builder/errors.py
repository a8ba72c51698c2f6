"""Error types for the employee builder.

Defines a small hierarchy of exceptions raised by stages, the step runner and
the engine. Stage errors (``DecompositionError``, ``MatchingError``, ``AssemblyError``) are
recovered inside the engine as a fallback or a branch failure, and so is
``RecursionLimitExceeded`` inside a branch. ``RecursionLimitExceeded`` during
decomposition, ``NoPendingInterruptError``, ``AmbiguousResumeError`` and
``CheckpointWriteError`` are surfaced to callers of ``start``/``resume``.
"""

from __future__ import annotations

from typing import List, Optional


class EmployeeForgeError(Exception):
    """Base error for all builder exceptions."""


class StageOutputError(EmployeeForgeError):
    """Raised when a stage's final answer cannot be validated after retries."""


class DecompositionError(StageOutputError):
    """The decomposition output was not a well-formed list of workflows."""


class MatchingError(StageOutputError):
    """Catalog tools were not consulted or the answer used unknown identifiers."""


class AssemblyError(StageOutputError):
    """The agent assembler did not produce a usable behavior prompt."""


class RecursionLimitExceeded(EmployeeForgeError):
    """A stage exceeded its bounded number of model turns."""

    def __init__(self, stage: str, limit: int) -> None:
        super().__init__(f"Stage '{stage}' exceeded the limit of {limit} model turns")
        self.stage = stage
        self.limit = limit


class UnknownToolError(EmployeeForgeError):
    """The model requested a tool outside of the stage's closed tool set."""

    def __init__(self, tool_name: str, allowed: list[str]) -> None:
        super().__init__(f"Unknown tool '{tool_name}'; allowed tools: {', '.join(allowed) or '(none)'}")
        self.tool_name = tool_name


class NoPendingInterruptError(EmployeeForgeError):
    """A resume call targeted a thread without a suspended tool call."""

    def __init__(
        self, thread_id: str, branch_id: Optional[str] = None, tool_call_id: Optional[str] = None
    ) -> None:
        target = f"thread '{thread_id}'" if branch_id is None else f"branch '{branch_id}' of thread '{thread_id}'"
        if tool_call_id is not None:
            target = f"tool call '{tool_call_id}' in {target}"
        super().__init__(f"No pending interrupt for {target}")
        self.thread_id = thread_id
        self.branch_id = branch_id
        self.tool_call_id = tool_call_id


class AmbiguousResumeError(EmployeeForgeError):
    """A resume call did not say which of several pending questions it answers."""

    def __init__(self, thread_id: str, pending: List[str]) -> None:
        super().__init__(
            f"Thread '{thread_id}' has {len(pending)} pending questions; "
            f"pass tool_call_id (one of {', '.join(pending)})"
        )
        self.thread_id = thread_id
        self.pending = pending


class CheckpointWriteError(EmployeeForgeError):
    """The checkpoint store failed to persist a transition atomically."""

    def __init__(self, thread_id: str, message: str) -> None:
        super().__init__(f"Checkpoint write failed for thread '{thread_id}': {message}")
        self.thread_id = thread_id


class CheckpointConflictError(CheckpointWriteError):
    """Another writer advanced the thread's checkpoint first."""

    def __init__(self, thread_id: str, expected_version: Optional[int], actual_version: Optional[int]) -> None:
        super().__init__(
            thread_id,
            f"expected version {expected_version}, found {actual_version}",
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class ThreadNotFoundError(NoPendingInterruptError):
    """No checkpoint exists for the requested thread."""

    def __init__(self, thread_id: str) -> None:
        EmployeeForgeError.__init__(self, f"No checkpoint found for thread '{thread_id}'")
        self.thread_id = thread_id
        self.branch_id = None
        self.tool_call_id = None
