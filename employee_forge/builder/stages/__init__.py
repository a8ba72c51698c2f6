"""Builder stages: decomposition, matching and assembly."""

from .assembler import AgentAssembler, AssemblyOutput
from .decomposer import DecompositionOutput, WorkflowDecomposer, fallback_workflow
from .matcher import MatchOutput, WorkflowMatcher
from .prompts import PromptRegistry, PromptTemplate

__all__ = [
    "AgentAssembler",
    "AssemblyOutput",
    "DecompositionOutput",
    "MatchOutput",
    "PromptRegistry",
    "PromptTemplate",
    "WorkflowDecomposer",
    "WorkflowMatcher",
    "fallback_workflow",
]
