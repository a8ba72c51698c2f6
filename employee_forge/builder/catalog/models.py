"""Catalog DTOs.

Typed views of the capability/trigger catalog responses:

- ``GET /capabilities`` -> ``List[ProviderCapabilities]``
- ``GET /triggers`` -> ``List[CatalogTrigger]``

Unknown fields in catalog payloads are ignored so that the catalog service can
evolve without breaking the builder.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..schemas.domain import CapabilityRef, RiskLevel, TriggerRef


class CatalogModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", alias_generator=to_camel)


class CatalogCapability(CatalogModel):
    id: str
    description: str = ""
    params_schema: Any = None
    risk: Optional[RiskLevel] = None


class ProviderCapabilities(CatalogModel):
    # Provider listings name the provider slug `id`.
    provider_id: str = Field(
        validation_alias=AliasChoices("providerId", "provider_id", "id"),
        serialization_alias="providerId",
    )
    capabilities: List[CatalogCapability] = Field(default_factory=list)

    def refs(self) -> List[CapabilityRef]:
        return [CapabilityRef(provider_id=self.provider_id, id=c.id) for c in self.capabilities]


class CatalogTrigger(CatalogModel):
    id: str
    provider_id: str
    description: str = ""

    def ref(self) -> TriggerRef:
        return TriggerRef(provider_id=self.provider_id, id=self.id)
