"""Runtime dependency bundle and public result types.

- ``EngineDeps`` collects what ``EmployeeBuilderEngine`` needs.
- ``StateUpdate`` items are streamed while a thread runs.
- ``Completed`` / ``Suspended`` are the two outcomes of ``start``/``resume``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import Field

from ...core.config import EngineConfig
from ..repos.interfaces import CheckpointRepository, EventSink
from ..schemas.base import BaseSchema
from ..schemas.domain import AiEmployee
from ..schemas.state import PendingInterrupt
from ..stages.prompts import PromptRegistry
from .model import LanguageModel


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``EmployeeBuilderEngine``.

    ``checkpoints`` is the only shared mutable resource the engine writes to;
    ``events`` is optional and fire-and-forget.
    """

    model: LanguageModel
    checkpoints: CheckpointRepository
    config: EngineConfig = field(default_factory=EngineConfig)
    events: Optional[EventSink] = None
    prompts: Optional[PromptRegistry] = None


class StateUpdate(BaseSchema):
    """Progress notification emitted while a thread runs.

    Phases: ``workflows`` (decomposition finished), ``branch`` (a branch
    reached a terminal state or suspended), ``interrupt`` (a human question
    is pending) and ``connect`` (branches joined into the employee).
    """

    thread_id: str
    phase: Literal["workflows", "branch", "interrupt", "connect"]
    branch_id: Optional[str] = None
    status: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class Completed(BaseSchema):
    kind: Literal["completed"] = "completed"
    thread_id: str
    employee: AiEmployee


class Suspended(BaseSchema):
    """The thread is waiting for human answers; resume with one of ``interrupts``."""

    kind: Literal["suspended"] = "suspended"
    thread_id: str
    interrupts: List[PendingInterrupt]


ExecutionOutcome = Union[Completed, Suspended]
