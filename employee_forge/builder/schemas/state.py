"""Serializable execution state.

Everything needed to resume a thread lives in ``ExecutionState``: the per
branch message histories, the pending tool call of each suspended branch and
the accumulated outcome lists. The engine never keeps resumable state outside
of this structure, so a thread can be continued by another process from its
latest ``ThreadCheckpoint``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema
from .domain import (
    Agent,
    AgentDraft,
    AiEmployee,
    BranchFailure,
    ConversationEntry,
    UnsatisfiedWorkflow,
    Workflow,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class ToolCall(BaseSchema):
    id: str = Field(default_factory=lambda: f"call_{uuid4().hex[:12]}")
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ChatMessage(BaseSchema):
    """One entry of a branch's message history.

    ``data`` carries the structured tool result so validators can inspect
    catalog responses without re-parsing ``content``.
    """

    role: MessageRole
    content: str = ""
    tool_call: Optional[ToolCall] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None
    stage: Optional[str] = None
    data: Any = None


class PendingToolCall(BaseSchema):
    """A human-input tool call awaiting an answer."""

    tool_call_id: str
    tool_name: str
    stage: str
    request: Dict[str, Any] = Field(default_factory=dict)
    requested_at: datetime = Field(default_factory=_utc_now)

    @property
    def question(self) -> str:
        return str(self.request.get("question") or "")


class BranchStatus(str, Enum):
    start = "START"
    matching = "MATCHING"
    assembling = "ASSEMBLING"
    suspended = "SUSPENDED"
    done_agent = "DONE_AGENT"
    done_unsatisfied = "DONE_UNSATISFIED"
    failed = "FAILED"


TERMINAL_STATUSES = frozenset({BranchStatus.done_agent, BranchStatus.done_unsatisfied, BranchStatus.failed})


class BranchState(BaseSchema):
    """State of one Matcher -> Assembler branch.

    ``status`` is ``SUSPENDED`` while a human-input call is pending; ``phase``
    keeps the state (``MATCHING``/``ASSEMBLING``) that is re-entered on resume.
    ``conversation`` starts as a private copy of the seeded history; entries
    past ``seeded_conversation`` were appended by this branch.
    """

    branch_id: str
    workflow: Workflow
    status: BranchStatus = BranchStatus.start
    phase: BranchStatus = BranchStatus.start
    history: List[ChatMessage] = Field(default_factory=list)
    conversation: List[ConversationEntry] = Field(default_factory=list)
    seeded_conversation: int = 0
    pending_tool_call: Optional[PendingToolCall] = None

    draft: Optional[AgentDraft] = None
    agent: Optional[Agent] = None
    unsatisfied: Optional[UnsatisfiedWorkflow] = None
    failure: Optional[BranchFailure] = None

    @property
    def terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def new_conversation(self) -> List[ConversationEntry]:
        return list(self.conversation[self.seeded_conversation :])


class DecompositionState(BaseSchema):
    history: List[ChatMessage] = Field(default_factory=list)
    pending_tool_call: Optional[PendingToolCall] = None
    fallback_used: bool = False


class ThreadNode(str, Enum):
    decompose = "decompose"
    branches = "branches"
    done = "done"


DECOMPOSER_BRANCH_ID = "decompose"


class PendingInterrupt(BaseSchema):
    """Public view of a suspended tool call."""

    branch_id: str
    tool_call_id: str
    question: str


class ExecutionState(BaseSchema):
    thread_id: str
    job_description: str
    org_id: Optional[str] = None
    node: ThreadNode = ThreadNode.decompose

    employee_name: Optional[str] = None
    employee_description: Optional[str] = None
    decomposition: DecompositionState = Field(default_factory=DecompositionState)
    workflows: List[Workflow] = Field(default_factory=list)
    branches: List[BranchState] = Field(default_factory=list)

    agents: List[Agent] = Field(default_factory=list)
    unsatisfied_workflows: List[UnsatisfiedWorkflow] = Field(default_factory=list)
    conversation: List[ConversationEntry] = Field(default_factory=list)
    failures: List[BranchFailure] = Field(default_factory=list)
    employee: Optional[AiEmployee] = None

    def pending_interrupts(self) -> List[PendingInterrupt]:
        """Return suspended tool calls, decomposer first, then in workflow order."""
        out: List[PendingInterrupt] = []
        pending = self.decomposition.pending_tool_call
        if pending is not None:
            out.append(
                PendingInterrupt(
                    branch_id=DECOMPOSER_BRANCH_ID, tool_call_id=pending.tool_call_id, question=pending.question
                )
            )
        for branch in self.branches:
            if branch.pending_tool_call is not None:
                out.append(
                    PendingInterrupt(
                        branch_id=branch.branch_id,
                        tool_call_id=branch.pending_tool_call.tool_call_id,
                        question=branch.pending_tool_call.question,
                    )
                )
        return out

    def branch(self, branch_id: str) -> Optional[BranchState]:
        for b in self.branches:
            if b.branch_id == branch_id:
                return b
        return None


class ThreadCheckpoint(BaseSchema):
    """Persisted snapshot of a thread. ``version`` increases by one per write."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    thread_id: str
    version: int
    node: str
    state: Dict[str, Any]
    created_at: datetime = Field(default_factory=_utc_now)
