from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .base import BaseSchema


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WireSchema(BaseSchema):
    """Schema exchanged with the catalog, the model and API consumers.

    Fields are snake_case in Python and camelCase on the wire
    (``providerId``, ``triggerParams``...). Both spellings validate.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
        alias_generator=to_camel,
    )


class RiskLevel(str, Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"


class WorkflowStep(WireSchema):
    description: str
    requirement: str


class Workflow(WireSchema):
    """A decomposed unit of the job description. Read-only after decomposition."""

    original_description: str
    description: str
    steps: List[WorkflowStep]
    activation: str


class CapabilityRef(WireSchema):
    provider_id: str
    id: str

    def key(self) -> tuple[str, str]:
        return (self.provider_id, self.id)


class TriggerRef(WireSchema):
    provider_id: str
    id: str

    def key(self) -> tuple[str, str]:
        return (self.provider_id, self.id)


class AgentTrigger(TriggerRef):
    trigger_params: Dict[str, Any] = Field(default_factory=dict)


class AgentDraft(WireSchema):
    """Matched capabilities and trigger for a workflow, before the prompt is authored."""

    name: str
    description: str
    capabilities: List[CapabilityRef] = Field(min_length=1)
    trigger: AgentTrigger


class Agent(AgentDraft):
    id: Optional[str] = None
    prompt: str


class UnsatisfiedWorkflow(WireSchema):
    description: str
    explanation: str = Field(min_length=1)


class ConversationEntry(WireSchema):
    """One human question/answer pair. Entries are only ever appended."""

    question: str
    answer: str
    node_context: str
    timestamp: datetime = Field(default_factory=_utc_now)


class BranchFailure(WireSchema):
    """Engine-level failure of a single branch (e.g. turn limit exceeded)."""

    branch_id: str
    workflow_description: str
    error_type: str
    message: str


class AiEmployee(WireSchema):
    name: str
    description: str
    unsatisfied_workflows: List[UnsatisfiedWorkflow] = Field(default_factory=list)
    agents: List[Agent] = Field(default_factory=list)
    conversation: List[ConversationEntry] = Field(default_factory=list)
    failures: List[BranchFailure] = Field(default_factory=list)


class BuilderEventType(str, Enum):
    thread_started = "thread.started"
    thread_resumed = "thread.resumed"
    thread_failed = "thread.failed"
    workflows_decomposed = "workflows.decomposed"
    branch_completed = "branch.completed"
    branch_failed = "branch.failed"
    human_feedback_requested = "human_feedback.requested"
    employee_joined = "employee.joined"
    checkpoint_saved = "checkpoint.saved"
    llm_usage = "llm.usage"


class BuilderEvent(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    thread_id: str
    type: BuilderEventType
    branch_id: Optional[str] = None
    org_id: Optional[str] = None
    created_at: datetime = Field(default_factory=_utc_now)
    payload: Dict[str, Any] = Field(default_factory=dict)


class ApprovalStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class ApprovalRequest(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    agent_name: str
    capability: CapabilityRef
    risk: RiskLevel
    params: Dict[str, Any] = Field(default_factory=dict)
    reason: str

    status: ApprovalStatus = ApprovalStatus.pending
    requested_at: datetime = Field(default_factory=_utc_now)
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None
