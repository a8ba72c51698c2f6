from __future__ import annotations

from typing import List

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, ToolCallPart, UserPromptPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from employee_forge.builder.runtime import PydanticAILanguageModel
from employee_forge.builder.runtime.model import read_usage, render_transcript
from employee_forge.builder.schemas.state import ChatMessage, MessageRole, ToolCall
from employee_forge.builder.tools import ASK_HUMAN, FETCH_CAPABILITIES, build_tool_registry


def _prompt_text(messages: List[ModelMessage]) -> str:
    parts = [p.content for m in messages for p in getattr(m, "parts", []) if isinstance(p, UserPromptPart)]
    return "\n".join(str(p) for p in parts)


@pytest.mark.asyncio
async def test_adapter_returns_tool_call_turn_and_usage():
    prompts: List[str] = []

    def respond(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
        prompts.append(_prompt_text(messages))
        output_tool = info.output_tools[0].name
        return ModelResponse(
            parts=[ToolCallPart(output_tool, {"tool_call": {"name": FETCH_CAPABILITIES, "args": {}}})]
        )

    adapter = PydanticAILanguageModel(FunctionModel(respond))
    tools = build_tool_registry(FETCH_CAPABILITIES, ASK_HUMAN).specs()

    completion = await adapter.complete(
        instructions="Match the workflow.",
        messages=[ChatMessage(role=MessageRole.user, content="Workflow: notify finance")],
        tools=tools,
        response_schema={"type": "object", "properties": {"agent": {}}},
    )

    assert completion.turn.tool_call is not None
    assert completion.turn.tool_call.name == FETCH_CAPABILITIES
    assert completion.turn.final is None
    assert completion.usage is not None
    assert completion.usage.total_tokens == completion.usage.input_tokens + completion.usage.output_tokens
    assert "fetch_capabilities" in prompts[0]
    assert "Workflow: notify finance" in prompts[0]


@pytest.mark.asyncio
async def test_adapter_returns_final_answer_turn():
    def respond(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
        return ModelResponse(parts=[ToolCallPart(info.output_tools[0].name, {"final": {"prompt": "Do the job."}})])

    completion = await PydanticAILanguageModel(FunctionModel(respond)).complete(
        instructions="Write a prompt.", messages=[], tools=[], response_schema={}
    )

    assert completion.turn.final == {"prompt": "Do the job."}


class _Usage:
    input_tokens = 12
    output_tokens = 3


class _ResultWithUsageMethod:
    def usage(self) -> _Usage:
        return _Usage()


class _ResultWithUsageProperty:
    usage = _Usage()


@pytest.mark.parametrize("result", [_ResultWithUsageMethod(), _ResultWithUsageProperty()])
def test_usage_is_read_as_method_or_property(result):
    usage = read_usage(result, "openai:gpt-4o")

    assert (usage.model, usage.input_tokens, usage.output_tokens) == ("openai:gpt-4o", 12, 3)
    assert usage.total_tokens == 15


def test_missing_usage_counts_as_zero():
    assert read_usage(object()).total_tokens == 0

def test_transcript_renders_tool_calls_and_results():
    call = ToolCall(name=FETCH_CAPABILITIES)
    messages = [
        ChatMessage(role=MessageRole.user, content="Find capabilities"),
        ChatMessage(role=MessageRole.assistant, tool_call=call),
        ChatMessage(role=MessageRole.tool, name=FETCH_CAPABILITIES, tool_call_id=call.id, content="[]"),
    ]

    text = render_transcript(messages, [], {"type": "object"})

    assert "(none)" in text
    assert "[user] Find capabilities" in text
    assert "[assistant -> fetch_capabilities] {}" in text
    assert "[tool fetch_capabilities result] []" in text
