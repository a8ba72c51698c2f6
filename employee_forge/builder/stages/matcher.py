"""Workflow matching stage.

Maps one workflow onto catalog capabilities and a trigger, or explains why
it cannot be covered. Identifiers may only be copied from catalog responses:
a final answer is rejected unless both ``fetch_capabilities`` and
``fetch_triggers`` were called in this branch, and any provider, capability or
trigger identifier absent from the most recent listings is reported back to
the model, which has to answer again without it. Once the output retries are
spent, the workflow ends as unsatisfied with the rejection as explanation.
"""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence, Set, Tuple, Union, cast

from pydantic import BaseModel, model_validator

from ..context import ExecutionContext
from ..errors import MatchingError
from ..runtime.step_runner import Stage, StepRunner, StepSuspended
from ..schemas.domain import AgentDraft, ConversationEntry, UnsatisfiedWorkflow, WireSchema, Workflow
from ..schemas.state import ChatMessage, MessageRole
from ..tools.registry import ASK_HUMAN, FETCH_CAPABILITIES, FETCH_TRIGGERS, build_tool_registry
from .prompts import PromptRegistry

logger = logging.getLogger(__name__)

STAGE_NAME = "match"


class MatchOutput(WireSchema):
    agent: Optional[AgentDraft] = None
    unsatisfied_workflow: Optional[UnsatisfiedWorkflow] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "MatchOutput":
        if (self.agent is None) == (self.unsatisfied_workflow is None):
            raise ValueError("exactly one of `agent` or `unsatisfiedWorkflow` must be set")
        return self


def latest_tool_result(history: Sequence[ChatMessage], tool_name: str) -> Optional[Any]:
    for m in reversed(history):
        if m.role == MessageRole.tool and m.name == tool_name and m.stage == STAGE_NAME and m.data is not None:
            return m.data
    return None


def _capability_keys(listing: List[dict]) -> Set[Tuple[str, str]]:
    return {(p["providerId"], c["id"]) for p in listing for c in p.get("capabilities") or []}


def _trigger_keys(listing: List[dict]) -> Set[Tuple[str, str]]:
    return {(t["providerId"], t["id"]) for t in listing}


def validate_match(output: BaseModel, history: Sequence[ChatMessage]) -> Optional[str]:
    output = cast(MatchOutput, output)
    capabilities = latest_tool_result(history, FETCH_CAPABILITIES)
    triggers = latest_tool_result(history, FETCH_TRIGGERS)
    missing = [n for n, r in ((FETCH_CAPABILITIES, capabilities), (FETCH_TRIGGERS, triggers)) if r is None]
    if missing:
        return f"call {' and '.join(missing)} before answering"
    if output.agent is None:
        return None

    known_caps = _capability_keys(capabilities)
    unknown = [
        f"capability {ref.provider_id}/{ref.id}" for ref in output.agent.capabilities if ref.key() not in known_caps
    ]
    trigger = output.agent.trigger
    if trigger.key() not in _trigger_keys(triggers):
        unknown.append(f"trigger {trigger.provider_id}/{trigger.id}")
    if unknown:
        return (
            f"unknown identifiers {', '.join(unknown)}; remove them and use only identifiers "
            "from the latest fetch_capabilities and fetch_triggers results"
        )
    return None


def render_conversation(conversation: Sequence[ConversationEntry]) -> str:
    if not conversation:
        return "(none)"
    return "\n".join(f"- Q: {e.question}\n  A: {e.answer}" for e in conversation)


def render_workflow(workflow: Workflow) -> str:
    return json.dumps(workflow.model_dump(mode="json", by_alias=True), indent=2)


class WorkflowMatcher:
    def __init__(self, runner: StepRunner, prompts: PromptRegistry) -> None:
        self._runner = runner
        self._prompts = prompts
        self.stage = Stage(
            name=STAGE_NAME,
            instructions=prompts.render("match/system"),
            output_type=MatchOutput,
            tools=build_tool_registry(ASK_HUMAN, FETCH_CAPABILITIES, FETCH_TRIGGERS),
            error_type=MatchingError,
            validator=validate_match,
        )

    def seed(self, history: List[ChatMessage], workflow: Workflow, conversation: Sequence[ConversationEntry]) -> None:
        history.append(
            ChatMessage(
                role=MessageRole.user,
                stage=STAGE_NAME,
                content=self._prompts.render(
                    "match/task",
                    workflow=render_workflow(workflow),
                    conversation=render_conversation(conversation),
                ),
            )
        )

    async def run(
        self,
        history: List[ChatMessage],
        *,
        workflow: Workflow,
        ctx: ExecutionContext,
        conversation: Sequence[ConversationEntry],
        thread_id: str = "",
        branch_id: Optional[str] = None,
    ) -> Union[AgentDraft, UnsatisfiedWorkflow, StepSuspended]:
        try:
            outcome = await self._runner.run(
                stage=self.stage,
                history=history,
                ctx=ctx,
                conversation=conversation,
                thread_id=thread_id,
                branch_id=branch_id,
            )
        except MatchingError as e:
            logger.warning("Matching gave up on workflow %r: %s", workflow.description, e)
            return UnsatisfiedWorkflow(description=workflow.description, explanation=str(e))
        if isinstance(outcome, StepSuspended):
            return outcome
        output = cast(MatchOutput, outcome.output)
        if output.agent is not None:
            return output.agent
        return cast(UnsatisfiedWorkflow, output.unsatisfied_workflow)
