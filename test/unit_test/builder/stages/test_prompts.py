from __future__ import annotations

import pytest

from employee_forge.builder.stages.prompts import PromptRegistry, PromptTemplate


def test_builtin_prompts_render_with_their_variables():
    registry = PromptRegistry()

    text = registry.render("decompose/task", job_description="Monitor inventory")

    assert "Monitor inventory" in text
    assert "{{" not in text
    assert registry.active_version("match/task") == "v1"


def test_missing_variable_raises():
    with pytest.raises(KeyError, match="missing variables: workflow"):
        PromptRegistry().render("match/task", conversation="(none)")


def test_template_must_declare_its_placeholders():
    registry = PromptRegistry(templates=[])

    with pytest.raises(ValueError):
        registry.register(PromptTemplate(id="x", version="v1", content="Hello {{ name }}"))


def test_latest_version_is_active_until_pinned():
    registry = PromptRegistry(templates=[])
    registry.register(PromptTemplate(id="greet", version="v1", content="Hi {{name}}", variables=["name"]))
    registry.register(PromptTemplate(id="greet", version="v2", content="Hello {{name}}", variables=["name"]))

    assert registry.render("greet", name="Ada") == "Hello Ada"
    registry.set_active_version("greet", "v1")
    assert registry.render("greet", name="Ada") == "Hi Ada"
    assert registry.render("greet", version="v2", name="Ada") == "Hello Ada"


def test_re_registering_a_version_replaces_it():
    registry = PromptRegistry(templates=[])
    registry.register(PromptTemplate(id="greet", version="v1", content="Hi"))
    registry.register(PromptTemplate(id="greet", version="v1", content="Hey"))

    assert registry.versions("greet") == ["v1"]
    assert registry.render("greet") == "Hey"


def test_unknown_prompt_or_version_raises():
    registry = PromptRegistry()

    with pytest.raises(KeyError):
        registry.get("nope")
    with pytest.raises(KeyError):
        registry.set_active_version("match/task", "v9")
