"""Workflow decomposition stage.

Turns a job description into independent workflows. The only tool is
``ask_human``. A final answer is accepted when there is at least one workflow,
every workflow has more than one step and every step names a requirement.

When the model cannot produce such an answer after the output retry, the job
description is covered by a single generic workflow and the thread continues
to matching. Running out of turns is not recovered here:
``RecursionLimitExceeded`` reaches the caller of ``start``/``resume``.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Union, cast

from pydantic import BaseModel, Field

from ..context import ExecutionContext
from ..errors import DecompositionError
from ..runtime.step_runner import Stage, StepRunner, StepSuspended
from ..schemas.domain import ConversationEntry, WireSchema, Workflow, WorkflowStep
from ..schemas.state import ChatMessage, DecompositionState, MessageRole
from ..tools.registry import ASK_HUMAN, build_tool_registry
from .prompts import PromptRegistry

logger = logging.getLogger(__name__)

STAGE_NAME = "decompose"
FALLBACK_EMPLOYEE_NAME = "AI Employee"


class DecompositionOutput(WireSchema):
    name: str = Field(min_length=1)
    description: str
    workflows: List[Workflow]


def validate_decomposition(output: BaseModel, history: Sequence[ChatMessage]) -> Optional[str]:
    output = cast(DecompositionOutput, output)
    if not output.workflows:
        return "at least one workflow is required"
    problems: List[str] = []
    for i, wf in enumerate(output.workflows):
        if len(wf.steps) < 2:
            problems.append(f"workflow {i} ('{wf.description}') must have more than one step")
        for j, step in enumerate(wf.steps):
            if not step.requirement.strip():
                problems.append(f"step {j} of workflow {i} has an empty requirement")
    return "; ".join(problems) or None


def fallback_workflow(job_description: str) -> Workflow:
    """A single workflow covering the whole job description."""
    return Workflow(
        original_description=job_description,
        description=job_description,
        steps=[
            WorkflowStep(
                description="Collect the inputs the job description refers to",
                requirement="Read access to the systems named in the job description",
            ),
            WorkflowStep(
                description="Carry out the work described and report the result",
                requirement="Capabilities that perform the described work",
            ),
        ],
        activation="On demand",
    )


class WorkflowDecomposer:
    def __init__(self, runner: StepRunner, prompts: PromptRegistry) -> None:
        self._runner = runner
        self._prompts = prompts
        self.stage = Stage(
            name=STAGE_NAME,
            instructions=prompts.render("decompose/system"),
            output_type=DecompositionOutput,
            tools=build_tool_registry(ASK_HUMAN),
            error_type=DecompositionError,
            validator=validate_decomposition,
        )

    async def run(
        self,
        state: DecompositionState,
        *,
        job_description: str,
        ctx: ExecutionContext,
        conversation: Sequence[ConversationEntry] = (),
        thread_id: str = "",
    ) -> Union[DecompositionOutput, StepSuspended]:
        """Run (or continue) decomposition on ``state``.

        Returns the accepted (or fallback) output, or ``StepSuspended`` when
        the model asked the human a question.

        Raises:
            RecursionLimitExceeded: The model used up its turns without a final answer.
        """
        if not state.history:
            state.history.append(
                ChatMessage(
                    role=MessageRole.user,
                    stage=STAGE_NAME,
                    content=self._prompts.render("decompose/task", job_description=job_description),
                )
            )
        state.pending_tool_call = None
        try:
            outcome = await self._runner.run(
                stage=self.stage,
                history=state.history,
                ctx=ctx,
                conversation=conversation,
                thread_id=thread_id,
            )
        except DecompositionError as e:
            logger.warning("Decomposition failed, using a single fallback workflow: %s", e)
            state.fallback_used = True
            return DecompositionOutput(
                name=FALLBACK_EMPLOYEE_NAME,
                description=job_description,
                workflows=[fallback_workflow(job_description)],
            )
        if isinstance(outcome, StepSuspended):
            state.pending_tool_call = outcome.pending
            return outcome
        return cast(DecompositionOutput, outcome.output)
