"""Per-workflow branch state machine.

``BranchOrchestrator`` runs one ``BranchState`` through a LangGraph state
machine::

    start --> matching --> assembling --> finish
                 |             |
                 +--> finish   +--> (suspend) END
                 +--> (suspend) END

- ``start`` seeds the matcher on a fresh branch and otherwise routes to the
  phase the branch was in, which is how a resumed branch re-enters the stage
  it was suspended in.
- Any stage may suspend on ``ask_human``: the branch becomes ``SUSPENDED``
  with its ``pending_tool_call`` set and the graph ends.
- A branch that runs out of turns, fails assembly or hits an unexpected
  error is marked ``FAILED``. It still terminates with an explanation, and
  sibling branches are unaffected.

All branch state lives in the ``BranchState`` model so a suspended branch can
be checkpointed and continued elsewhere.
"""

from __future__ import annotations

import logging
from typing import Literal, TypedDict, cast

from langgraph.errors import GraphRecursionError
from langgraph.graph import END, StateGraph

from ..context import ExecutionContext
from ..errors import EmployeeForgeError, RecursionLimitExceeded
from ..schemas.domain import Agent, AgentDraft, BranchFailure, UnsatisfiedWorkflow
from ..schemas.state import BranchState, BranchStatus
from ..stages.assembler import AgentAssembler
from ..stages.matcher import WorkflowMatcher
from .step_runner import StepSuspended

logger = logging.getLogger(__name__)


class _BranchGraphState(TypedDict):
    branch: BranchState
    ctx: ExecutionContext
    thread_id: str


def _route_by_phase(state: _BranchGraphState) -> Literal["matching", "assembling", "finish", "suspend"]:
    branch = state["branch"]
    if branch.status == BranchStatus.suspended:
        return "suspend"
    if branch.terminal:
        return "finish"
    if branch.phase == BranchStatus.assembling:
        return "assembling"
    return "matching"


class BranchOrchestrator:
    def __init__(self, *, matcher: WorkflowMatcher, assembler: AgentAssembler, recursion_limit: int = 50) -> None:
        self._matcher = matcher
        self._assembler = assembler
        self._recursion_limit = recursion_limit
        self._graph = self._build_graph()

    def _build_graph(self):
        g: StateGraph = StateGraph(_BranchGraphState)
        g.add_node("start", self._node_start)
        g.add_node("matching", self._node_matching)
        g.add_node("assembling", self._node_assembling)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("start")
        routes = {"matching": "matching", "assembling": "assembling", "finish": "finish", "suspend": END}
        g.add_conditional_edges("start", _route_by_phase, routes)
        g.add_conditional_edges("matching", _route_by_phase, routes)
        g.add_conditional_edges("assembling", _route_by_phase, routes)
        g.add_edge("finish", END)
        return g.compile()

    async def run(self, branch: BranchState, *, ctx: ExecutionContext, thread_id: str) -> BranchState:
        """Advance ``branch`` until it terminates or suspends.

        ``branch`` is updated in place and also returned.
        """
        state: _BranchGraphState = {"branch": branch, "ctx": ctx, "thread_id": thread_id}
        try:
            await self._graph.ainvoke(state, config={"recursion_limit": self._recursion_limit})
        except GraphRecursionError:
            self._fail(branch, RecursionLimitExceeded("branch", self._recursion_limit))
        except EmployeeForgeError as e:
            logger.warning("Branch %s failed: %s", branch.branch_id, e)
            self._fail(branch, e)
        except Exception as e:
            logger.exception("Branch %s failed", branch.branch_id)
            self._fail(branch, e)
        return branch

    @staticmethod
    def _fail(branch: BranchState, error: Exception) -> None:
        branch.status = BranchStatus.failed
        branch.pending_tool_call = None
        branch.failure = BranchFailure(
            branch_id=branch.branch_id,
            workflow_description=branch.workflow.description,
            error_type=type(error).__name__,
            message=str(error) or type(error).__name__,
        )
        branch.unsatisfied = UnsatisfiedWorkflow(
            description=branch.workflow.description,
            explanation=f"Branch failed: {branch.failure.message}",
        )

    @staticmethod
    def _suspend(branch: BranchState, outcome: StepSuspended) -> None:
        branch.status = BranchStatus.suspended
        branch.pending_tool_call = outcome.pending
        logger.info("Branch %s suspended on %r", branch.branch_id, outcome.pending.question)

    async def _node_start(self, state: _BranchGraphState) -> _BranchGraphState:
        branch = state["branch"]
        if branch.phase == BranchStatus.start:
            self._matcher.seed(branch.history, branch.workflow, branch.conversation)
            branch.phase = BranchStatus.matching
            branch.status = BranchStatus.matching
        return state

    async def _node_matching(self, state: _BranchGraphState) -> _BranchGraphState:
        branch = state["branch"]
        result = await self._matcher.run(
            branch.history,
            workflow=branch.workflow,
            ctx=state["ctx"],
            conversation=branch.conversation,
            thread_id=state["thread_id"],
            branch_id=branch.branch_id,
        )
        if isinstance(result, StepSuspended):
            self._suspend(branch, result)
        elif isinstance(result, AgentDraft):
            branch.draft = result
            branch.phase = BranchStatus.assembling
            branch.status = BranchStatus.assembling
            self._assembler.seed(branch.history, branch.workflow, result, branch.conversation)
        else:
            branch.unsatisfied = result
            branch.status = BranchStatus.done_unsatisfied
        return state

    async def _node_assembling(self, state: _BranchGraphState) -> _BranchGraphState:
        branch = state["branch"]
        draft = cast(AgentDraft, branch.draft)
        result = await self._assembler.run(
            branch.history,
            draft=draft,
            ctx=state["ctx"],
            conversation=branch.conversation,
            thread_id=state["thread_id"],
            branch_id=branch.branch_id,
        )
        if isinstance(result, StepSuspended):
            self._suspend(branch, result)
        else:
            branch.agent = cast(Agent, result)
            branch.status = BranchStatus.done_agent
        return state

    async def _node_finish(self, state: _BranchGraphState) -> _BranchGraphState:
        branch = state["branch"]
        logger.info("Branch %s finished with status %s", branch.branch_id, branch.status.value)
        return state
