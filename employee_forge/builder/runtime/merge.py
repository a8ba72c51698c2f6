"""Join of branch results.

Each terminated branch contributes to four accumulators (agents, unsatisfied
workflows, conversation entries, failures). ``join`` concatenates them field by
field. It is pure and, up to ordering within each field, independent of the
order in which contributions arrive; the engine passes them in workflow order
so the final employee lists are deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from ..schemas.domain import Agent, BranchFailure, ConversationEntry, UnsatisfiedWorkflow
from ..schemas.state import BranchState


@dataclass(frozen=True)
class Contribution:
    agents: Tuple[Agent, ...] = ()
    unsatisfied_workflows: Tuple[UnsatisfiedWorkflow, ...] = ()
    conversation: Tuple[ConversationEntry, ...] = ()
    failures: Tuple[BranchFailure, ...] = ()


def contribution_of(branch: BranchState) -> Contribution:
    """What a terminated branch adds to the join. Non-terminal branches add nothing."""
    if not branch.terminal:
        return Contribution()
    return Contribution(
        agents=(branch.agent,) if branch.agent is not None else (),
        unsatisfied_workflows=(branch.unsatisfied,) if branch.unsatisfied is not None else (),
        conversation=tuple(branch.new_conversation()),
        failures=(branch.failure,) if branch.failure is not None else (),
    )


def join(parts: Sequence[Contribution]) -> Contribution:
    return Contribution(
        agents=tuple(a for p in parts for a in p.agents),
        unsatisfied_workflows=tuple(u for p in parts for u in p.unsatisfied_workflows),
        conversation=tuple(c for p in parts for c in p.conversation),
        failures=tuple(f for p in parts for f in p.failures),
    )
