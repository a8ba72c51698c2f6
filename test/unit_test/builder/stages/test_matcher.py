from __future__ import annotations

import json
from typing import Any, List

import pytest
from pydantic import ValidationError

from employee_forge.builder.schemas.state import ChatMessage, MessageRole
from employee_forge.builder.stages.matcher import MatchOutput, render_conversation, validate_match
from employee_forge.builder.tools import FETCH_CAPABILITIES, FETCH_TRIGGERS

CAPABILITIES = [
    {"providerId": "erp", "capabilities": [{"id": "inventory.read"}, {"id": "pricing.update"}]},
]
TRIGGERS = [{"providerId": "scheduler", "id": "cron"}]


def _result(name: str, data: Any) -> ChatMessage:
    return ChatMessage(role=MessageRole.tool, stage="match", name=name, content=json.dumps(data), data=data)


def _agent(capability: str = "inventory.read", trigger: str = "cron") -> MatchOutput:
    return MatchOutput.model_validate(
        {
            "agent": {
                "name": "Pricing",
                "description": "Adjust prices",
                "capabilities": [{"providerId": "erp", "id": capability}],
                "trigger": {"providerId": "scheduler", "id": trigger},
            }
        }
    )


@pytest.fixture
def history() -> List[ChatMessage]:
    return [_result(FETCH_CAPABILITIES, CAPABILITIES), _result(FETCH_TRIGGERS, TRIGGERS)]


def test_known_identifiers_are_accepted(history):
    assert validate_match(_agent(), history) is None


def test_answer_without_catalog_lookups_is_rejected():
    reason = validate_match(_agent(), [_result(FETCH_CAPABILITIES, CAPABILITIES)])

    assert reason == "call fetch_triggers before answering"


def test_unsatisfied_answer_also_requires_lookups(history):
    output = MatchOutput.model_validate({"unsatisfiedWorkflow": {"description": "Tax", "explanation": "No tax tool"}})

    assert validate_match(output, []) is not None
    assert validate_match(output, history) is None


def test_unknown_identifiers_are_named(history):
    reason = validate_match(_agent(capability="payroll.run", trigger="webhook"), history)

    assert "capability erp/payroll.run" in reason
    assert "trigger scheduler/webhook" in reason


def test_only_the_latest_listing_counts(history):
    history.append(_result(FETCH_CAPABILITIES, [{"providerId": "erp", "capabilities": [{"id": "finance.notify"}]}]))

    assert "erp/inventory.read" in validate_match(_agent(), history)


def test_results_from_other_stages_are_ignored(history):
    for m in history:
        m.stage = "assemble"

    assert validate_match(_agent(), history) is not None


def test_match_output_needs_exactly_one_outcome():
    with pytest.raises(ValidationError):
        MatchOutput.model_validate({})


def test_render_conversation():
    assert render_conversation([]) == "(none)"
