from __future__ import annotations

import pytest

from employee_forge.core.config import Settings

ENV_NAMES = [
    "EMPLOYEE_FORGE_MODEL",
    "EMPLOYEE_FORGE_MODEL_TEMPERATURE",
    "CATALOG_API_URL",
    "CATALOG_API_TOKEN",
    "ENGINE_MAX_TURNS",
    "ENGINE_MAX_OUTPUT_RETRIES",
    "ENGINE_CONCURRENT_BRANCHES",
    "ENGINE_RECURSION_LIMIT",
]


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    s = Settings(_env_file=None)

    assert s.llm.model == "openai:gpt-4o"
    assert s.engine.max_turns == 25
    assert s.engine.max_output_retries == 1
    assert s.engine.concurrent_branches is True
    assert s.catalog.auth_token is None


def test_grouped_configs_follow_environment(clean_env):
    clean_env.setenv("EMPLOYEE_FORGE_MODEL", "test")
    clean_env.setenv("CATALOG_API_URL", "http://mock-catalog")
    clean_env.setenv("CATALOG_API_TOKEN", "secret")
    clean_env.setenv("ENGINE_MAX_TURNS", "7")
    clean_env.setenv("ENGINE_CONCURRENT_BRANCHES", "false")

    s = Settings(_env_file=None)

    assert s.llm.model == "test"
    assert s.catalog.base_url == "http://mock-catalog"
    assert s.catalog.auth_token == "secret"
    assert s.engine.max_turns == 7
    assert s.engine.concurrent_branches is False


def test_engine_bounds_are_validated(clean_env):
    clean_env.setenv("ENGINE_MAX_TURNS", "0")

    with pytest.raises(ValueError):
        Settings(_env_file=None).engine
