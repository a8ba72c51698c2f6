"""Scripted language model and catalog data shared by builder tests."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from employee_forge.builder.runtime import Completion, ModelTurn, RequestedToolCall
from employee_forge.builder.runtime.model import ModelUsage
from employee_forge.builder.schemas.state import ChatMessage, MessageRole
from employee_forge.builder.tools import ASK_HUMAN, FETCH_CAPABILITIES, FETCH_TRIGGERS

INVENTORY_JOB = "Monitor inventory and adjust pricing; notify finance weekly"


@dataclass
class WorkflowPlan:
    """How the scripted model handles one workflow during matching/assembly."""

    capabilities: Sequence[Tuple[str, str]] = ()
    trigger: Tuple[str, str] = ("scheduler", "cron")
    trigger_params: Dict[str, Any] = field(default_factory=dict)
    agent_name: str = "Agent"
    question: Optional[str] = None
    unsatisfied: Optional[str] = None
    fabricate: str = "never"  # "never" | "first" | "always"
    raise_error: Optional[Exception] = None
    loop_forever: bool = False
    delay: float = 0.0


def _stage_of(response_schema: Dict[str, Any]) -> str:
    props = response_schema.get("properties") or {}
    if "workflows" in props:
        return "decompose"
    if "agent" in props:
        return "match"
    return "assemble"


def _stage_messages(messages: Sequence[ChatMessage], stage: str) -> List[ChatMessage]:
    return [m for m in messages if m.stage == stage]


def _tool_results(messages: Sequence[ChatMessage], name: str) -> List[ChatMessage]:
    return [m for m in messages if m.role == MessageRole.tool and m.name == name]


def _rejections(messages: Sequence[ChatMessage]) -> int:
    return sum(1 for m in messages if m.role == MessageRole.user and m.name == "rejection")


def _call(name: str, **args: Any) -> Completion:
    return Completion(
        turn=ModelTurn(tool_call=RequestedToolCall(name=name, args=args)),
        usage=ModelUsage(model="scripted", input_tokens=10, output_tokens=5),
    )


def _final(payload: Dict[str, Any]) -> Completion:
    return Completion(turn=ModelTurn(final=payload), usage=ModelUsage(model="scripted", input_tokens=10, output_tokens=5))


class ScriptedBuilderModel:
    """Deterministic stand-in for the language model.

    The response is a pure function of the stage and its message history, so
    branches can run concurrently and a resumed stage behaves exactly as an
    uninterrupted one.
    """

    def __init__(
        self,
        *,
        employee_name: str,
        workflows: List[Dict[str, Any]],
        plans: Dict[str, WorkflowPlan],
        decompose_question: Optional[str] = None,
        decompose_output: Optional[Dict[str, Any]] = None,
        decompose_loop: bool = False,
    ) -> None:
        self.employee_name = employee_name
        self.workflows = workflows
        self.plans = plans
        self.decompose_question = decompose_question
        self.decompose_output = decompose_output
        self.decompose_loop = decompose_loop
        self.calls: List[str] = []

    def _plan_for(self, messages: Sequence[ChatMessage], stage: str) -> Tuple[str, WorkflowPlan]:
        task = next(m for m in messages if m.stage == stage and m.role == MessageRole.user and m.name is None)
        for description, plan in self.plans.items():
            if json.dumps(description)[1:-1] in task.content:
                return description, plan
        raise AssertionError(f"no plan for task message: {task.content}")

    async def complete(self, *, instructions, messages, tools, response_schema) -> Completion:
        stage = _stage_of(response_schema)
        self.calls.append(stage)
        msgs = _stage_messages(messages, stage)
        if stage == "decompose":
            return self._decompose(msgs)
        description, plan = self._plan_for(messages, stage)
        if plan.delay:
            await asyncio.sleep(plan.delay)
        if stage == "match":
            return self._match(msgs, description, plan)
        return self._assemble(messages, description)

    def _decompose(self, msgs: List[ChatMessage]) -> Completion:
        if self.decompose_loop:
            # not a decompose tool; rejected and the loop goes on
            return _call(FETCH_CAPABILITIES)
        if self.decompose_question and not _tool_results(msgs, ASK_HUMAN):
            return _call(ASK_HUMAN, question=self.decompose_question)
        payload = self.decompose_output or {
            "name": self.employee_name,
            "description": f"{self.employee_name} built from the job description",
            "workflows": self.workflows,
        }
        return _final(payload)

    def _match(self, msgs: List[ChatMessage], description: str, plan: WorkflowPlan) -> Completion:
        if plan.raise_error is not None:
            raise plan.raise_error
        if plan.loop_forever:
            return _call(FETCH_CAPABILITIES)
        if not _tool_results(msgs, FETCH_CAPABILITIES):
            return _call(FETCH_CAPABILITIES)
        if not _tool_results(msgs, FETCH_TRIGGERS):
            return _call(FETCH_TRIGGERS)
        if plan.question and not _tool_results(msgs, ASK_HUMAN):
            return _call(ASK_HUMAN, question=plan.question)
        if plan.unsatisfied is not None:
            return _final({"unsatisfiedWorkflow": {"description": description, "explanation": plan.unsatisfied}})
        capabilities = list(plan.capabilities)
        if plan.fabricate == "always" or (plan.fabricate == "first" and _rejections(msgs) == 0):
            capabilities = capabilities + [("erp", "payroll.run")]
        return _final(
            {
                "agent": {
                    "name": plan.agent_name,
                    "description": description,
                    "capabilities": [{"providerId": p, "id": c} for p, c in capabilities],
                    "trigger": {
                        "providerId": plan.trigger[0],
                        "id": plan.trigger[1],
                        "triggerParams": plan.trigger_params,
                    },
                }
            }
        )

    def _assemble(self, messages: Sequence[ChatMessage], description: str) -> Completion:
        answers = [m.content for m in _tool_results(messages, ASK_HUMAN)]
        prompt = f"Run the '{description}' workflow."
        if answers:
            prompt += " Human decisions: " + "; ".join(answers)
        return _final({"prompt": prompt})


def workflow(description: str, activation: str = "Every Monday at 09:00") -> Dict[str, Any]:
    return {
        "originalDescription": description,
        "description": description,
        "steps": [
            {"description": f"Collect data for: {description}", "requirement": "read access"},
            {"description": f"Act on: {description}", "requirement": "write access"},
        ],
        "activation": activation,
    }


