"""Versioned prompt templates for the builder stages.

Each prompt id (``"decompose/system"``, ``"match/task"``...) can have several
registered versions; one of them is active. Templates use ``{{name}}``
placeholders, all of which must be supplied when rendering.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..schemas.base import BaseSchema

_PLACEHOLDER = re.compile(r"{{\s*([A-Za-z_][A-Za-z0-9_]*)\s*}}")


class PromptTemplate(BaseSchema):
    id: str
    version: str
    content: str
    description: str = ""
    variables: List[str] = Field(default_factory=list)

    def render(self, variables: Dict[str, Any]) -> str:
        missing = [v for v in self.variables if v not in variables]
        if missing:
            raise KeyError(f"prompt {self.id}@{self.version} is missing variables: {', '.join(missing)}")
        return _PLACEHOLDER.sub(lambda m: str(variables.get(m.group(1), m.group(0))), self.content)


class PromptRegistry:
    """In-memory prompt registry with an active version per prompt id.

    Without an explicit active version, the most recently registered one is used.
    """

    def __init__(self, templates: Optional[List[PromptTemplate]] = None) -> None:
        self._templates: Dict[str, List[PromptTemplate]] = {}
        self._active: Dict[str, str] = {}
        for t in templates if templates is not None else _BUILTIN_TEMPLATES:
            self.register(t)

    def register(self, template: PromptTemplate) -> None:
        declared = set(_PLACEHOLDER.findall(template.content))
        if declared != set(template.variables):
            raise ValueError(
                f"prompt {template.id}@{template.version} declares {sorted(template.variables)} "
                f"but uses {sorted(declared)}"
            )
        versions = self._templates.setdefault(template.id, [])
        versions[:] = [v for v in versions if v.version != template.version]
        versions.append(template)

    def versions(self, prompt_id: str) -> List[str]:
        return [t.version for t in self._templates.get(prompt_id, [])]

    def set_active_version(self, prompt_id: str, version: str) -> None:
        if version not in self.versions(prompt_id):
            raise KeyError(f"prompt not found: {prompt_id}@{version}")
        self._active[prompt_id] = version

    def active_version(self, prompt_id: str) -> Optional[str]:
        if prompt_id in self._active:
            return self._active[prompt_id]
        versions = self.versions(prompt_id)
        return versions[-1] if versions else None

    def get(self, prompt_id: str, version: Optional[str] = None) -> PromptTemplate:
        wanted = version or self.active_version(prompt_id)
        for t in self._templates.get(prompt_id, []):
            if t.version == wanted:
                return t
        raise KeyError(f"prompt not found: {prompt_id}@{wanted}")

    def render(self, prompt_id: str, version: Optional[str] = None, **variables: Any) -> str:
        return self.get(prompt_id, version).render(variables)


_BUILTIN_TEMPLATES: List[PromptTemplate] = [
    PromptTemplate(
        id="decompose/system",
        version="v1",
        content=(
            "You are an expert at breaking job descriptions down into independent workflows that "
            "autonomous AI agents can run. A workflow is started by one activation event and is a "
            "sequence of at least two concrete steps. Every step states the requirement (the "
            "capability or data it needs). Ask the human only when the job description is "
            "ambiguous in a way that changes the workflows."
        ),
    ),
    PromptTemplate(
        id="decompose/task",
        version="v1",
        content=(
            "Job description:\n{{job_description}}\n\n"
            "Return the employee name, a one sentence description, and the list of workflows."
        ),
        variables=["job_description"],
    ),
    PromptTemplate(
        id="match/system",
        version="v1",
        content=(
            "You map one workflow onto the capabilities and triggers an organization has available. "
            "Always call fetch_capabilities and fetch_triggers before answering, and only use "
            "provider and capability/trigger identifiers exactly as they appear in those listings. "
            "If the workflow cannot be covered by the listed capabilities and triggers, answer with "
            "an unsatisfied workflow and explain what is missing instead of guessing."
        ),
    ),
    PromptTemplate(
        id="match/task",
        version="v1",
        content=(
            "Workflow:\n{{workflow}}\n\n"
            "Known answers from the human so far:\n{{conversation}}\n\n"
            "Answer with either `agent` (name, description, capabilities, trigger with "
            "triggerParams) or `unsatisfiedWorkflow` (description, explanation)."
        ),
        variables=["workflow", "conversation"],
    ),
    PromptTemplate(
        id="assemble/system",
        version="v1",
        content=(
            "You write the behavior prompt an autonomous agent follows every time its trigger fires. "
            "The prompt must describe the workflow steps, how to use each assigned capability, and "
            "the decisions the human has already made. Do not add capabilities."
        ),
    ),
    PromptTemplate(
        id="assemble/task",
        version="v1",
        content=(
            "Workflow:\n{{workflow}}\n\n"
            "Agent:\n{{agent}}\n\n"
            "Known answers from the human so far:\n{{conversation}}\n\n"
            "Return the agent prompt, and optionally a refined name and description."
        ),
        variables=["workflow", "agent", "conversation"],
    ),
]
