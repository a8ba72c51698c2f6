from __future__ import annotations

from itertools import permutations

from employee_forge.builder.runtime.merge import Contribution, contribution_of, join
from employee_forge.builder.schemas.domain import (
    Agent,
    AgentTrigger,
    BranchFailure,
    CapabilityRef,
    ConversationEntry,
    UnsatisfiedWorkflow,
    Workflow,
    WorkflowStep,
)
from employee_forge.builder.schemas.state import BranchState, BranchStatus


def _workflow(description: str) -> Workflow:
    return Workflow(
        original_description=description,
        description=description,
        steps=[WorkflowStep(description="a", requirement="r"), WorkflowStep(description="b", requirement="r")],
        activation="daily",
    )


def _agent(name: str) -> Agent:
    return Agent(
        name=name,
        description=name,
        capabilities=[CapabilityRef(provider_id="erp", id="inventory.read")],
        trigger=AgentTrigger(provider_id="scheduler", id="cron"),
        prompt=f"You are {name}.",
    )


def _entry(answer: str) -> ConversationEntry:
    return ConversationEntry(question="q", answer=answer, node_context="call")


def _parts():
    return [
        Contribution(agents=(_agent("a"),), conversation=(_entry("1"),)),
        Contribution(unsatisfied_workflows=(UnsatisfiedWorkflow(description="w", explanation="none"),)),
        Contribution(
            failures=(BranchFailure(branch_id="b", workflow_description="x", error_type="E", message="m"),),
            unsatisfied_workflows=(UnsatisfiedWorkflow(description="x", explanation="Branch failed: m"),),
        ),
        Contribution(agents=(_agent("d"),), conversation=(_entry("2"), _entry("3"))),
    ]


def _as_sets(c: Contribution):
    return (
        sorted(a.name for a in c.agents),
        sorted(u.description for u in c.unsatisfied_workflows),
        sorted(e.answer for e in c.conversation),
        sorted(f.branch_id for f in c.failures),
    )


def test_join_is_independent_of_arrival_order():
    expected = _as_sets(join(_parts()))
    for order in permutations(_parts()):
        assert _as_sets(join(list(order))) == expected


def test_join_preserves_given_order_within_each_field():
    joined = join(_parts())

    assert [a.name for a in joined.agents] == ["a", "d"]
    assert [e.answer for e in joined.conversation] == ["1", "2", "3"]


def test_join_of_nothing_is_empty():
    assert join([]) == Contribution()


def test_contribution_skips_seeded_conversation_and_open_branches():
    branch = BranchState(
        branch_id="branch-0",
        workflow=_workflow("w"),
        status=BranchStatus.done_agent,
        agent=_agent("a"),
        conversation=[_entry("seeded"), _entry("own")],
        seeded_conversation=1,
    )

    contribution = contribution_of(branch)

    assert [a.name for a in contribution.agents] == ["a"]
    assert [e.answer for e in contribution.conversation] == ["own"]

    branch.status = BranchStatus.suspended
    assert contribution_of(branch) == Contribution()
