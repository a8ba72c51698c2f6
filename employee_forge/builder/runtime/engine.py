"""Checkpointed employee builder engine.

``EmployeeBuilderEngine`` turns a job description into an ``AiEmployee``.

Execution model
---------------

1. **Decompose** the job description into workflows (may suspend on
   ``ask_human``; falls back to one generic workflow on invalid output).
2. **Fan out** one ``BranchState`` per workflow. Every branch starts from a
   private copy of the thread conversation. Branches run concurrently as
   asyncio tasks, or one after another when ``concurrent_branches`` is off.
3. **Join** the terminated branches with ``merge.join`` into the employee.

Suspend/resume
--------------

Whenever a stage asks the human, the thread is checkpointed with the pending
tool call and ``start``/``resume`` return ``Suspended``. Several branches may
be suspended at once; each ``resume`` answers exactly one of them, appends a
``ConversationEntry`` and continues only that part of the thread. Untouched
branches stay suspended until they are answered.

``resume`` names the question it answers by ``tool_call_id`` (taken from
``Suspended.interrupts``) or by ``branch_id``. Without either it is accepted
only while a single question is pending; with several pending it fails with
``AmbiguousResumeError``. A retried resume carrying a ``tool_call_id`` that
was already answered fails with ``NoPendingInterruptError``.

``continue_thread`` picks a thread up from its latest checkpoint when the
process that was driving it went away: runnable branches are run and the
thread is joined, suspended or reported as it stands.

Checkpoints
-----------

Every checkpoint write is a compare-and-swap on the thread's version. Calls
for one thread are serialized in-process by a per-thread ``asyncio.Lock``
(dropped once no call holds or waits for it) and across processes by the
version check: the answer is claimed by writing the next version before any
stage runs, so a second resume of the same suspension observes no pending
call and fails with ``NoPendingInterruptError``. A failed write after the
claim is reported as ``thread.failed`` and raised; the thread is continued
from the last committed checkpoint with ``continue_thread``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Union
from uuid import uuid4

from ..context import ExecutionContext
from ..errors import AmbiguousResumeError, NoPendingInterruptError, ThreadNotFoundError
from ..schemas.domain import AiEmployee, BuilderEventType, ConversationEntry
from ..schemas.state import (
    DECOMPOSER_BRANCH_ID,
    BranchState,
    BranchStatus,
    ExecutionState,
    PendingInterrupt,
    ThreadCheckpoint,
    ThreadNode,
)
from ..stages.assembler import AgentAssembler
from ..stages.decomposer import WorkflowDecomposer
from ..stages.matcher import WorkflowMatcher
from ..stages.prompts import PromptRegistry
from .branch import BranchOrchestrator
from .events import EventPublisher
from .merge import contribution_of, join
from .models import Completed, EngineDeps, ExecutionOutcome, StateUpdate, Suspended
from .step_runner import StepRunner, StepSuspended, answer_message

logger = logging.getLogger(__name__)

StreamItem = Union[StateUpdate, Completed, Suspended]


class EmployeeBuilderEngine:
    """Build AI employees from job descriptions with durable suspension."""

    def __init__(self, deps: EngineDeps) -> None:
        self._deps = deps
        self._config = deps.config
        self._events = EventPublisher(deps.events)
        prompts = deps.prompts or PromptRegistry()
        runner = StepRunner(
            model=deps.model,
            max_turns=self._config.max_turns,
            max_output_retries=self._config.max_output_retries,
            events=self._events,
        )
        self._decomposer = WorkflowDecomposer(runner, prompts)
        self._branches = BranchOrchestrator(
            matcher=WorkflowMatcher(runner, prompts),
            assembler=AgentAssembler(runner, prompts),
            recursion_limit=self._config.recursion_limit,
        )
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @property
    def deps(self) -> EngineDeps:
        return self._deps

    async def start(
        self, job_description: str, context: ExecutionContext, *, thread_id: Optional[str] = None
    ) -> ExecutionOutcome:
        """Run a new thread until it completes or suspends."""
        return await _last(self.astream_start(job_description, context, thread_id=thread_id))

    async def resume(
        self,
        thread_id: str,
        answer: str,
        context: ExecutionContext,
        *,
        branch_id: Optional[str] = None,
        tool_call_id: Optional[str] = None,
    ) -> ExecutionOutcome:
        """Answer a pending human question and continue the thread.

        Raises:
            NoPendingInterruptError: No pending question matches ``branch_id``/``tool_call_id``.
            AmbiguousResumeError: Several questions are pending and none was named.
            CheckpointConflictError: Another resume advanced the thread concurrently.
        """
        return await _last(
            self.astream_resume(thread_id, answer, context, branch_id=branch_id, tool_call_id=tool_call_id)
        )

    async def continue_thread(self, thread_id: str, context: ExecutionContext) -> ExecutionOutcome:
        """Continue a thread from its latest checkpoint without answering anything."""
        return await _last(self.astream_continue(thread_id, context))

    async def astream_start(
        self, job_description: str, context: ExecutionContext, *, thread_id: Optional[str] = None
    ) -> AsyncIterator[StreamItem]:
        """Like ``start``, yielding ``StateUpdate`` items before the final outcome."""
        thread_id = thread_id or uuid4().hex
        state = ExecutionState(thread_id=thread_id, job_description=job_description, org_id=context.org_id)
        async with self._thread_lock(thread_id):
            version = await self._save(state, expected_version=None)
            logger.info("Thread %s started", thread_id)
            await self._publish(state, BuilderEventType.thread_started, payload={"job_description": job_description})
            async for item in self._drive(state, context, version):
                yield item

    async def astream_resume(
        self,
        thread_id: str,
        answer: str,
        context: ExecutionContext,
        *,
        branch_id: Optional[str] = None,
        tool_call_id: Optional[str] = None,
    ) -> AsyncIterator[StreamItem]:
        """Like ``resume``, yielding ``StateUpdate`` items before the final outcome."""
        async with self._thread_lock(thread_id):
            cp = await self._load(thread_id)
            state = ExecutionState.model_validate(cp.state)
            interrupt = _select_interrupt(state, branch_id, tool_call_id)

            self._inject_answer(state, interrupt, answer)
            # Claim the answer before running any stage.
            version = await self._save(state, expected_version=cp.version)
            logger.info("Thread %s resumed at %s", thread_id, interrupt.branch_id)
            await self._publish(
                state,
                BuilderEventType.thread_resumed,
                branch_id=interrupt.branch_id,
                payload={"tool_call_id": interrupt.tool_call_id},
            )
            async for item in self._drive(state, context, version):
                yield item

    async def astream_continue(self, thread_id: str, context: ExecutionContext) -> AsyncIterator[StreamItem]:
        """Like ``continue_thread``, yielding ``StateUpdate`` items before the final outcome."""
        async with self._thread_lock(thread_id):
            cp = await self._load(thread_id)
            state = ExecutionState.model_validate(cp.state)
            if state.node == ThreadNode.done and state.employee is not None:
                yield Completed(thread_id=thread_id, employee=state.employee)
                return
            if not _has_work(state):
                yield Suspended(thread_id=thread_id, interrupts=state.pending_interrupts())
                return

            logger.info("Thread %s continued from checkpoint version %d", thread_id, cp.version)
            await self._publish(state, BuilderEventType.thread_resumed, payload={"continued_from": cp.version})
            async for item in self._drive(state, context, cp.version):
                yield item

    async def latest_state(self, thread_id: str) -> Optional[ExecutionState]:
        cp = await self._deps.checkpoints.latest(thread_id)
        return ExecutionState.model_validate(cp.state) if cp is not None else None

    @asynccontextmanager
    async def _thread_lock(self, thread_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(thread_id, asyncio.Lock())
        self._lock_users[thread_id] = self._lock_users.get(thread_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[thread_id] -= 1
            if not self._lock_users[thread_id]:
                del self._lock_users[thread_id]
                del self._locks[thread_id]

    async def _load(self, thread_id: str) -> ThreadCheckpoint:
        cp = await self._deps.checkpoints.latest(thread_id)
        if cp is None:
            raise ThreadNotFoundError(thread_id)
        return cp

    @staticmethod
    def _inject_answer(state: ExecutionState, interrupt: PendingInterrupt, answer: str) -> None:
        entry = ConversationEntry(question=interrupt.question, answer=answer, node_context=interrupt.tool_call_id)
        if interrupt.branch_id == DECOMPOSER_BRANCH_ID:
            pending = state.decomposition.pending_tool_call
            if pending is None:
                raise NoPendingInterruptError(state.thread_id, interrupt.branch_id, interrupt.tool_call_id)
            state.decomposition.history.append(answer_message(pending, answer))
            state.decomposition.pending_tool_call = None
            state.conversation.append(entry)
            return
        branch = state.branch(interrupt.branch_id)
        if branch is None or branch.pending_tool_call is None:
            raise NoPendingInterruptError(state.thread_id, interrupt.branch_id, interrupt.tool_call_id)
        branch.history.append(answer_message(branch.pending_tool_call, answer))
        branch.pending_tool_call = None
        branch.status = branch.phase
        branch.conversation.append(entry)

    async def _drive(self, state: ExecutionState, ctx: ExecutionContext, version: int) -> AsyncIterator[StreamItem]:
        try:
            if state.node == ThreadNode.decompose:
                result = await self._decomposer.run(
                    state.decomposition,
                    job_description=state.job_description,
                    ctx=ctx,
                    conversation=state.conversation,
                    thread_id=state.thread_id,
                )
                if isinstance(result, StepSuspended):
                    async for item in self._suspend(state, version):
                        yield item
                    return

                state.employee_name = result.name
                state.employee_description = result.description
                state.workflows = list(result.workflows)
                state.branches = [
                    BranchState(
                        branch_id=f"branch-{i}",
                        workflow=wf,
                        conversation=[e.model_copy(deep=True) for e in state.conversation],
                        seeded_conversation=len(state.conversation),
                    )
                    for i, wf in enumerate(state.workflows)
                ]
                state.node = ThreadNode.branches
                version = await self._save(state, expected_version=version)
                payload = {
                    "workflows": [wf.model_dump(mode="json", by_alias=True) for wf in state.workflows],
                    "fallback": state.decomposition.fallback_used,
                }
                await self._publish(state, BuilderEventType.workflows_decomposed, payload=payload)
                yield StateUpdate(thread_id=state.thread_id, phase="workflows", payload=payload)

            runnable = [b for b in state.branches if not b.terminal and b.status != BranchStatus.suspended]
            async for branch in self._run_branches(runnable, ctx, state.thread_id):
                await self._publish_branch(state, branch)
                yield StateUpdate(
                    thread_id=state.thread_id,
                    phase="branch",
                    branch_id=branch.branch_id,
                    status=branch.status.value,
                )

            if any(b.status == BranchStatus.suspended for b in state.branches):
                async for item in self._suspend(state, version):
                    yield item
                return

            employee = self._join(state)
            state.employee = employee
            state.node = ThreadNode.done
            await self._save(state, expected_version=version)
            payload = {"agents": len(employee.agents), "unsatisfied": len(employee.unsatisfied_workflows)}
            await self._publish(state, BuilderEventType.employee_joined, payload=payload)
            logger.info("Thread %s joined: %s", state.thread_id, payload)
            yield StateUpdate(thread_id=state.thread_id, phase="connect", payload=payload)
            yield Completed(thread_id=state.thread_id, employee=employee)
        except Exception as e:
            logger.error("Thread %s failed: %s", state.thread_id, e)
            await self._publish(
                state, BuilderEventType.thread_failed, payload={"error_type": type(e).__name__, "error": str(e)}
            )
            raise

    async def _run_branches(
        self, branches: List[BranchState], ctx: ExecutionContext, thread_id: str
    ) -> AsyncIterator[BranchState]:
        if not branches:
            return
        if not self._config.concurrent_branches:
            for branch in branches:
                yield await self._branches.run(branch, ctx=ctx, thread_id=thread_id)
            return
        tasks = [asyncio.create_task(self._branches.run(b, ctx=ctx, thread_id=thread_id)) for b in branches]
        try:
            for next_done in asyncio.as_completed(tasks):
                yield await next_done
        finally:
            for t in tasks:
                t.cancel()

    async def _suspend(self, state: ExecutionState, version: int) -> AsyncIterator[StreamItem]:
        await self._save(state, expected_version=version)
        interrupts = state.pending_interrupts()
        for interrupt in interrupts:
            await self._publish(
                state,
                BuilderEventType.human_feedback_requested,
                branch_id=interrupt.branch_id,
                payload={"tool_call_id": interrupt.tool_call_id, "question": interrupt.question},
            )
            yield StateUpdate(
                thread_id=state.thread_id,
                phase="interrupt",
                branch_id=interrupt.branch_id,
                payload={"tool_call_id": interrupt.tool_call_id, "question": interrupt.question},
            )
        logger.info("Thread %s suspended with %d pending question(s)", state.thread_id, len(interrupts))
        yield Suspended(thread_id=state.thread_id, interrupts=interrupts)

    @staticmethod
    def _join(state: ExecutionState) -> AiEmployee:
        joined = join([contribution_of(b) for b in state.branches])
        state.agents = list(joined.agents)
        state.unsatisfied_workflows = list(joined.unsatisfied_workflows)
        state.failures = list(joined.failures)
        return AiEmployee(
            name=state.employee_name or "AI Employee",
            description=state.employee_description or state.job_description,
            agents=state.agents,
            unsatisfied_workflows=state.unsatisfied_workflows,
            conversation=[*state.conversation, *joined.conversation],
            failures=state.failures,
        )

    async def _save(self, state: ExecutionState, *, expected_version: Optional[int]) -> int:
        version = (expected_version or 0) + 1
        cp = ThreadCheckpoint(
            thread_id=state.thread_id,
            version=version,
            node=state.node.value,
            state=state.model_dump(mode="json"),
        )
        await self._deps.checkpoints.save(cp, expected_version=expected_version)
        await self._publish(
            state,
            BuilderEventType.checkpoint_saved,
            payload={"checkpoint_id": cp.id, "version": version, "node": cp.node},
        )
        return version

    async def _publish_branch(self, state: ExecutionState, branch: BranchState) -> None:
        if branch.status == BranchStatus.failed:
            failure = branch.failure
            await self._publish(
                state,
                BuilderEventType.branch_failed,
                branch_id=branch.branch_id,
                payload={
                    "error_type": failure.error_type if failure else None,
                    "message": failure.message if failure else None,
                },
            )
        elif branch.terminal:
            await self._publish(
                state,
                BuilderEventType.branch_completed,
                branch_id=branch.branch_id,
                payload={"status": branch.status.value},
            )

    async def _publish(
        self,
        state: ExecutionState,
        type: BuilderEventType,
        *,
        branch_id: Optional[str] = None,
        payload: Optional[dict] = None,
    ) -> None:
        await self._events.publish(
            state.thread_id, type, branch_id=branch_id, org_id=state.org_id, payload=payload
        )


def _select_interrupt(
    state: ExecutionState, branch_id: Optional[str], tool_call_id: Optional[str]
) -> PendingInterrupt:
    candidates = [
        p
        for p in state.pending_interrupts()
        if (branch_id is None or p.branch_id == branch_id) and (tool_call_id is None or p.tool_call_id == tool_call_id)
    ]
    if not candidates:
        raise NoPendingInterruptError(state.thread_id, branch_id, tool_call_id)
    if len(candidates) > 1:
        raise AmbiguousResumeError(state.thread_id, [p.tool_call_id for p in candidates])
    return candidates[0]


def _has_work(state: ExecutionState) -> bool:
    """Whether driving ``state`` would do more than report its pending questions."""
    if state.node == ThreadNode.decompose:
        return state.decomposition.pending_tool_call is None
    runnable = [b for b in state.branches if not b.terminal and b.status != BranchStatus.suspended]
    return bool(runnable) or not state.pending_interrupts()


async def _last(stream: AsyncIterator[StreamItem]) -> ExecutionOutcome:
    outcome: Optional[ExecutionOutcome] = None
    async for item in stream:
        if isinstance(item, (Completed, Suspended)):
            outcome = item
    if outcome is None:
        raise RuntimeError("engine stream ended without an outcome")
    return outcome
