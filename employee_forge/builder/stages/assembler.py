"""Agent assembly stage.

Writes the behavior prompt for a matched ``AgentDraft``. The model may refine
the agent's name and description, but capabilities and trigger are copied
from the draft unchanged.
"""

from __future__ import annotations

import json
from typing import List, Optional, Sequence, Union, cast

from pydantic import Field

from ..context import ExecutionContext
from ..errors import AssemblyError
from ..runtime.step_runner import Stage, StepRunner, StepSuspended
from ..schemas.domain import Agent, AgentDraft, ConversationEntry, WireSchema, Workflow
from ..schemas.state import ChatMessage, MessageRole
from ..tools.registry import ASK_HUMAN, build_tool_registry
from .matcher import render_conversation, render_workflow
from .prompts import PromptRegistry

STAGE_NAME = "assemble"


class AssemblyOutput(WireSchema):
    prompt: str = Field(min_length=1)
    name: Optional[str] = None
    description: Optional[str] = None


def build_agent(draft: AgentDraft, output: AssemblyOutput) -> Agent:
    return Agent(
        name=output.name or draft.name,
        description=output.description or draft.description,
        capabilities=[c.model_copy() for c in draft.capabilities],
        trigger=draft.trigger.model_copy(deep=True),
        prompt=output.prompt,
    )


class AgentAssembler:
    def __init__(self, runner: StepRunner, prompts: PromptRegistry) -> None:
        self._runner = runner
        self._prompts = prompts
        self.stage = Stage(
            name=STAGE_NAME,
            instructions=prompts.render("assemble/system"),
            output_type=AssemblyOutput,
            tools=build_tool_registry(ASK_HUMAN),
            error_type=AssemblyError,
        )

    def seed(
        self,
        history: List[ChatMessage],
        workflow: Workflow,
        draft: AgentDraft,
        conversation: Sequence[ConversationEntry],
    ) -> None:
        history.append(
            ChatMessage(
                role=MessageRole.user,
                stage=STAGE_NAME,
                content=self._prompts.render(
                    "assemble/task",
                    workflow=render_workflow(workflow),
                    agent=json.dumps(draft.model_dump(mode="json", by_alias=True), indent=2),
                    conversation=render_conversation(conversation),
                ),
            )
        )

    async def run(
        self,
        history: List[ChatMessage],
        *,
        draft: AgentDraft,
        ctx: ExecutionContext,
        conversation: Sequence[ConversationEntry],
        thread_id: str = "",
        branch_id: Optional[str] = None,
    ) -> Union[Agent, StepSuspended]:
        """Raises ``AssemblyError`` when no usable prompt is produced."""
        outcome = await self._runner.run(
            stage=self.stage,
            history=history,
            ctx=ctx,
            conversation=conversation,
            thread_id=thread_id,
            branch_id=branch_id,
        )
        if isinstance(outcome, StepSuspended):
            return outcome
        return build_agent(draft, cast(AssemblyOutput, outcome.output))
