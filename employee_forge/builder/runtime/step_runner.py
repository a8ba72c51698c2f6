"""Stage step loop.

``StepRunner.run`` drives one stage (decompose, match or assemble) of one
branch until it produces a validated final answer or has to wait for a human:

1. Call the model with the branch history.
2. Tool call: validate it against the stage's closed tool set.

   - Unknown tool or malformed arguments: the error is appended as the tool
     result and the loop continues.
   - Catalog tool: executed inline, the listing is appended as the tool result.
   - ``ask_human``: answered from the branch conversation when the same
     question was already answered, otherwise the stage is suspended and a
     ``StepSuspended`` is returned. Nothing is executed.

3. Final answer: validated against the stage's output model and validator.
   A rejected answer gets a correction message and another turn, up to
   ``max_output_retries``; after that the stage's error type is raised.

Turn and retry counts are derived from the history itself, so a stage resumed
from a checkpoint keeps the bounds it had before it was suspended.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Type, Union

from pydantic import BaseModel, ValidationError

from ..context import ExecutionContext
from ..errors import RecursionLimitExceeded, StageOutputError, UnknownToolError
from ..schemas.domain import BuilderEventType, ConversationEntry
from ..schemas.state import ChatMessage, MessageRole, PendingToolCall, ToolCall
from ..tools.registry import HumanInputTool, ToolRegistry
from .events import EventPublisher
from .model import LanguageModel

logger = logging.getLogger(__name__)

REJECTION = "rejection"

# Returns a rejection reason, or None when the answer is acceptable.
OutputValidator = Callable[[BaseModel, Sequence[ChatMessage]], Optional[str]]


@dataclass(frozen=True)
class Stage:
    name: str
    instructions: str
    output_type: Type[BaseModel]
    tools: ToolRegistry
    error_type: Type[StageOutputError]
    validator: Optional[OutputValidator] = None


@dataclass(frozen=True)
class StepResult:
    output: BaseModel


@dataclass(frozen=True)
class StepSuspended:
    pending: PendingToolCall


StepOutcome = Union[StepResult, StepSuspended]


def _normalize_question(question: str) -> str:
    return " ".join(question.lower().split()).rstrip("?").strip()


def find_prior_answer(conversation: Sequence[ConversationEntry], question: str) -> Optional[ConversationEntry]:
    """Latest entry that answered the same question, if any."""
    wanted = _normalize_question(question)
    for entry in reversed(conversation):
        if _normalize_question(entry.question) == wanted:
            return entry
    return None


def answer_message(pending: PendingToolCall, answer: str) -> ChatMessage:
    """Tool result message carrying a human answer for ``pending``."""
    return ChatMessage(
        role=MessageRole.tool,
        stage=pending.stage,
        tool_call_id=pending.tool_call_id,
        name=pending.tool_name,
        content=answer,
        data={"answer": answer},
    )


class StepRunner:
    def __init__(
        self,
        *,
        model: LanguageModel,
        max_turns: int = 25,
        max_output_retries: int = 1,
        events: Optional[EventPublisher] = None,
    ) -> None:
        self._model = model
        self._max_turns = max_turns
        self._max_output_retries = max_output_retries
        self._events = events or EventPublisher()

    @staticmethod
    def _count(history: Sequence[ChatMessage], stage: str, role: MessageRole, name: Optional[str] = None) -> int:
        return sum(1 for m in history if m.stage == stage and m.role == role and (name is None or m.name == name))

    async def run(
        self,
        *,
        stage: Stage,
        history: List[ChatMessage],
        ctx: ExecutionContext,
        conversation: Sequence[ConversationEntry] = (),
        thread_id: str = "",
        branch_id: Optional[str] = None,
    ) -> StepOutcome:
        """Run ``stage`` on ``history`` (mutated in place).

        Raises:
            RecursionLimitExceeded: After ``max_turns`` model turns in this stage.
            StageOutputError: The stage's error type, once output retries are exhausted.
        """
        tools = stage.tools.specs()
        schema = stage.output_type.model_json_schema(by_alias=True)
        while True:
            if self._count(history, stage.name, MessageRole.assistant) >= self._max_turns:
                raise RecursionLimitExceeded(stage.name, self._max_turns)

            completion = await self._model.complete(
                instructions=stage.instructions,
                messages=history,
                tools=tools,
                response_schema=schema,
            )
            if completion.usage is not None:
                await self._events.publish(
                    thread_id,
                    BuilderEventType.llm_usage,
                    branch_id=branch_id,
                    org_id=ctx.org_id,
                    payload={
                        "stage": stage.name,
                        "model": completion.usage.model,
                        "input_tokens": completion.usage.input_tokens,
                        "output_tokens": completion.usage.output_tokens,
                        "total_tokens": completion.usage.total_tokens,
                    },
                )
            turn = completion.turn

            if turn.tool_call is not None:
                call = ToolCall(name=turn.tool_call.name, args=dict(turn.tool_call.args))
                history.append(ChatMessage(role=MessageRole.assistant, stage=stage.name, tool_call=call))
                suspended = await self._handle_tool_call(stage, call, history, ctx, conversation)
                if suspended is not None:
                    return suspended
                continue

            if turn.final is None:
                history.append(ChatMessage(role=MessageRole.assistant, stage=stage.name))
                reason = "the response contained neither a tool call nor a final answer"
            else:
                history.append(
                    ChatMessage(
                        role=MessageRole.assistant,
                        stage=stage.name,
                        content=json.dumps(turn.final, default=str),
                        data=turn.final,
                    )
                )
                reason = None
                try:
                    output = stage.output_type.model_validate(turn.final)
                except ValidationError as e:
                    reason = f"the final answer does not match the schema: {e}"
                else:
                    if stage.validator is not None:
                        reason = stage.validator(output, history)
                if reason is None:
                    return StepResult(output=output)

            rejections = self._count(history, stage.name, MessageRole.user, REJECTION)
            if rejections >= self._max_output_retries:
                raise stage.error_type(f"{stage.name} output rejected: {reason}")
            logger.warning("Rejected %s answer (attempt %d): %s", stage.name, rejections + 1, reason)
            history.append(
                ChatMessage(
                    role=MessageRole.user,
                    stage=stage.name,
                    name=REJECTION,
                    content=f"Your final answer was rejected: {reason}. Fix it and answer again.",
                )
            )

    async def _handle_tool_call(
        self,
        stage: Stage,
        call: ToolCall,
        history: List[ChatMessage],
        ctx: ExecutionContext,
        conversation: Sequence[ConversationEntry],
    ) -> Optional[StepSuspended]:
        try:
            tool = stage.tools.validate_request(call.name, call.args)
        except (UnknownToolError, ValidationError) as e:
            logger.warning("Invalid tool call %s in %s: %s", call.name, stage.name, e)
            history.append(
                ChatMessage(
                    role=MessageRole.tool,
                    stage=stage.name,
                    tool_call_id=call.id,
                    name=call.name,
                    content=f"Error: {e}",
                )
            )
            return None

        if isinstance(tool, HumanInputTool):
            request = tool.parse(call.args)
            pending = PendingToolCall(
                tool_call_id=call.id,
                tool_name=tool.name,
                stage=stage.name,
                request=request.model_dump(),
            )
            prior = find_prior_answer(conversation, request.question)
            if prior is not None:
                logger.debug("Answering %r from conversation history", request.question)
                history.append(answer_message(pending, prior.answer))
                return None
            return StepSuspended(pending=pending)

        logger.debug("Calling catalog tool %s for org %s", tool.name, ctx.org_id)
        result = await tool.invoke(ctx)
        history.append(
            ChatMessage(
                role=MessageRole.tool,
                stage=stage.name,
                tool_call_id=call.id,
                name=tool.name,
                content=json.dumps(result),
                data=result,
            )
        )
        return None
