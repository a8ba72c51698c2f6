"""Convenience factories for wiring the builder from ``Settings``.

Tests and embedding applications can pass their own model, repositories or
catalog; anything left out is built from configuration:

- language model: ``PydanticAILanguageModel`` on ``EMPLOYEE_FORGE_MODEL``;
- checkpoints and events: SQL repositories on ``EMPLOYEE_FORGE_DATABASE_URL``;
- catalog: ``CatalogApiClient`` on ``CATALOG_API_URL``.
"""

from __future__ import annotations

from typing import Optional

from ..core.config import Settings, settings as default_settings
from .catalog.base import CatalogQuery
from .catalog.client import CatalogApiClient
from .context import ExecutionContext
from .repos.interfaces import CheckpointRepository, EventSink
from .repos.sql import build_sql_repos, create_engine, create_sessionmaker
from .runtime.engine import EmployeeBuilderEngine
from .runtime.model import LanguageModel, PydanticAILanguageModel
from .runtime.models import EngineDeps
from .stages.prompts import PromptRegistry


def build_language_model(settings: Optional[Settings] = None) -> PydanticAILanguageModel:
    cfg = (settings or default_settings).llm
    return PydanticAILanguageModel(cfg.model, temperature=cfg.temperature)


def build_catalog_client(settings: Optional[Settings] = None) -> CatalogApiClient:
    cfg = (settings or default_settings).catalog
    return CatalogApiClient(cfg.base_url, auth_token=cfg.auth_token, timeout=cfg.timeout)


def build_context(
    *,
    org_id: Optional[str] = None,
    user_id: Optional[str] = None,
    catalog: Optional[CatalogQuery] = None,
    settings: Optional[Settings] = None,
) -> ExecutionContext:
    return ExecutionContext(catalog=catalog or build_catalog_client(settings), org_id=org_id, user_id=user_id)


def build_engine(
    *,
    settings: Optional[Settings] = None,
    model: Optional[LanguageModel] = None,
    checkpoints: Optional[CheckpointRepository] = None,
    events: Optional[EventSink] = None,
    prompts: Optional[PromptRegistry] = None,
) -> EmployeeBuilderEngine:
    """Construct an ``EmployeeBuilderEngine`` from config and optional overrides."""
    cfg = settings or default_settings
    if checkpoints is None:
        repos = build_sql_repos(session_factory=create_sessionmaker(create_engine(cfg.database_url)))
        checkpoints = repos.checkpoints
        events = events if events is not None else repos.events
    deps = EngineDeps(
        model=model or build_language_model(cfg),
        checkpoints=checkpoints,
        config=cfg.engine,
        events=events,
        prompts=prompts,
    )
    return EmployeeBuilderEngine(deps)
