from __future__ import annotations

from typing import Any

import pytest

from employee_forge.builder.catalog import CatalogCapability, CatalogTrigger, ProviderCapabilities, StaticCatalog
from employee_forge.builder.context import ExecutionContext
from employee_forge.builder.repos import InMemoryCheckpointRepository, InMemoryEventRepository
from employee_forge.builder.runtime import EmployeeBuilderEngine, EngineDeps
from employee_forge.core.config import EngineConfig
from unit_test.builder.fakes import ScriptedBuilderModel, WorkflowPlan, workflow


@pytest.fixture
def inventory_catalog() -> StaticCatalog:
    return StaticCatalog(
        providers=[
            ProviderCapabilities(
                provider_id="erp",
                capabilities=[
                    CatalogCapability(id="inventory.read", description="Read stock levels"),
                    CatalogCapability(id="pricing.update", description="Change product prices", risk="MEDIUM"),
                    CatalogCapability(id="finance.notify", description="Notify the finance team", risk="LOW"),
                ],
            )
        ],
        trigger_list=[CatalogTrigger(id="cron", provider_id="scheduler", description="Time based schedule")],
    )


@pytest.fixture
def context(inventory_catalog: StaticCatalog) -> ExecutionContext:
    return ExecutionContext(catalog=inventory_catalog, org_id="org-1", user_id="user-1")


@pytest.fixture
def inventory_model() -> ScriptedBuilderModel:
    return ScriptedBuilderModel(
        employee_name="Inventory Manager",
        workflows=[
            workflow("Monitor inventory and adjust pricing"),
            workflow("Notify finance weekly"),
        ],
        plans={
            "Monitor inventory and adjust pricing": WorkflowPlan(
                capabilities=[("erp", "inventory.read"), ("erp", "pricing.update")],
                trigger_params={"cron": "0 * * * *"},
                agent_name="Pricing Agent",
            ),
            "Notify finance weekly": WorkflowPlan(
                capabilities=[("erp", "finance.notify")],
                trigger_params={"cron": "0 9 * * 1"},
                agent_name="Finance Notifier",
            ),
        },
    )


@pytest.fixture
def checkpoints() -> InMemoryCheckpointRepository:
    return InMemoryCheckpointRepository()


@pytest.fixture
def events() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@pytest.fixture
def make_engine(checkpoints: InMemoryCheckpointRepository, events: InMemoryEventRepository):
    def _make(model, **config: Any) -> EmployeeBuilderEngine:
        return EmployeeBuilderEngine(
            EngineDeps(model=model, checkpoints=checkpoints, events=events, config=EngineConfig(**config))
        )

    return _make
