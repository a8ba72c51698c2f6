"""Language-model boundary.

The runtime talks to the model through ``LanguageModel.complete``: one call
per turn, returning a ``ModelTurn`` that is either a tool call or a final
structured answer. The model never executes anything itself.

``PydanticAILanguageModel`` is the production adapter. It renders the branch
history, the tool specs and the final-answer JSON schema into a single prompt
and asks a Pydantic AI ``Agent`` for a ``ModelTurn``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent

from ..schemas.state import ChatMessage, MessageRole
from ..tools.registry import ToolSpec

logger = logging.getLogger(__name__)


class RequestedToolCall(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    args: Dict[str, Any] = Field(default_factory=dict)


class ModelTurn(BaseModel):
    """One model response: set exactly one of ``tool_call`` or ``final``."""

    model_config = ConfigDict(extra="ignore")

    tool_call: Optional[RequestedToolCall] = None
    final: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class ModelUsage:
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class Completion:
    turn: ModelTurn
    usage: Optional[ModelUsage] = None


class LanguageModel(Protocol):
    async def complete(
        self,
        *,
        instructions: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        response_schema: Dict[str, Any],
    ) -> Completion: ...


def render_transcript(
    messages: Sequence[ChatMessage],
    tools: Sequence[ToolSpec],
    response_schema: Dict[str, Any],
) -> str:
    """Render history, tools and the answer schema as one prompt."""
    lines: List[str] = ["## Available tools"]
    if tools:
        for spec in tools:
            lines.append(f"- {spec.name}: {spec.description} Arguments schema: {json.dumps(spec.parameters)}")
    else:
        lines.append("(none)")
    lines += ["", "## Final answer schema", json.dumps(response_schema), "", "## Conversation"]
    for m in messages:
        if m.role == MessageRole.assistant and m.tool_call is not None:
            lines.append(f"[assistant -> {m.tool_call.name}] {json.dumps(m.tool_call.args)}")
        elif m.role == MessageRole.tool:
            lines.append(f"[tool {m.name or ''} result] {m.content}")
        else:
            lines.append(f"[{m.role.value}] {m.content}")
    lines += [
        "",
        "Respond with either `tool_call` ({name, args}) to call one tool, "
        "or `final` holding an object that matches the final answer schema.",
    ]
    return "\n".join(lines)


class PydanticAILanguageModel:
    """``LanguageModel`` backed by a Pydantic AI model (name or instance)."""

    def __init__(self, model: Any, *, temperature: Optional[float] = None) -> None:
        self._model = model
        self._temperature = temperature

    @property
    def model_name(self) -> Optional[str]:
        if isinstance(self._model, str):
            return self._model
        return getattr(self._model, "model_name", None)

    async def complete(
        self,
        *,
        instructions: str,
        messages: Sequence[ChatMessage],
        tools: Sequence[ToolSpec],
        response_schema: Dict[str, Any],
    ) -> Completion:
        agent: Agent = Agent(self._model, output_type=ModelTurn, system_prompt=instructions)
        settings: Dict[str, Any] = {}
        if self._temperature is not None:
            settings["temperature"] = self._temperature
        result = await agent.run(
            render_transcript(messages, tools, response_schema),
            model_settings=settings or None,
        )
        return Completion(turn=result.output, usage=read_usage(result, self.model_name))


def read_usage(result: Any, model_name: Optional[str] = None) -> ModelUsage:
    """Token usage of a run result.

    ``usage`` is a method on older Pydantic AI run results and a property on
    newer ones; both are accepted.
    """
    usage = getattr(result, "usage", None)
    if callable(usage):
        usage = usage()
    return ModelUsage(
        model=model_name,
        input_tokens=getattr(usage, "input_tokens", None) or 0,
        output_tokens=getattr(usage, "output_tokens", None) or 0,
    )
