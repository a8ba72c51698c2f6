from __future__ import annotations

import pytest

from employee_forge.builder.catalog import CatalogApiClient, StaticCatalog
from employee_forge.builder.factory import build_catalog_client, build_context, build_engine, build_language_model
from employee_forge.builder.repos import InMemoryCheckpointRepository
from employee_forge.builder.runtime import Completed
from employee_forge.core.config import Settings
from unit_test.builder.fakes import INVENTORY_JOB


@pytest.fixture
def settings(monkeypatch) -> Settings:
    monkeypatch.setenv("EMPLOYEE_FORGE_MODEL", "test")
    monkeypatch.setenv("CATALOG_API_URL", "http://mock-catalog/")
    monkeypatch.setenv("CATALOG_API_TOKEN", "secret")
    monkeypatch.setenv("ENGINE_MAX_TURNS", "9")
    return Settings(_env_file=None)


def test_language_model_and_catalog_client_follow_settings(settings):
    model = build_language_model(settings)
    client = build_catalog_client(settings)

    assert model.model_name == "test"
    assert isinstance(client, CatalogApiClient)
    assert client.base_url == "http://mock-catalog"
    assert client.auth_token == "secret"


def test_context_uses_given_catalog(settings):
    catalog = StaticCatalog()

    ctx = build_context(org_id="org-1", user_id="user-1", catalog=catalog, settings=settings)

    assert ctx.catalog is catalog
    assert ctx.org_id == "org-1"


@pytest.mark.asyncio
async def test_engine_with_overrides_runs_a_job(settings, inventory_model, context):
    checkpoints = InMemoryCheckpointRepository()
    engine = build_engine(settings=settings, model=inventory_model, checkpoints=checkpoints)

    outcome = await engine.start(INVENTORY_JOB, context, thread_id="t-f")

    assert isinstance(outcome, Completed)
    assert engine.deps.config.max_turns == 9
    assert (await checkpoints.latest("t-f")).node == "done"
