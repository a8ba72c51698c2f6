"""Schemas and DTOs for the employee builder."""

from .domain import (
    Agent,
    AgentDraft,
    AgentTrigger,
    AiEmployee,
    ApprovalRequest,
    ApprovalStatus,
    BranchFailure,
    BuilderEvent,
    BuilderEventType,
    CapabilityRef,
    ConversationEntry,
    RiskLevel,
    TriggerRef,
    UnsatisfiedWorkflow,
    Workflow,
    WorkflowStep,
)
from .state import (
    BranchState,
    BranchStatus,
    ChatMessage,
    ExecutionState,
    MessageRole,
    PendingInterrupt,
    PendingToolCall,
    ThreadCheckpoint,
    ToolCall,
)

__all__ = [
    "Agent",
    "AgentDraft",
    "AgentTrigger",
    "AiEmployee",
    "ApprovalRequest",
    "ApprovalStatus",
    "BranchFailure",
    "BuilderEvent",
    "BuilderEventType",
    "CapabilityRef",
    "ConversationEntry",
    "RiskLevel",
    "TriggerRef",
    "UnsatisfiedWorkflow",
    "Workflow",
    "WorkflowStep",
    "BranchState",
    "BranchStatus",
    "ChatMessage",
    "ExecutionState",
    "MessageRole",
    "PendingInterrupt",
    "PendingToolCall",
    "ThreadCheckpoint",
    "ToolCall",
]
