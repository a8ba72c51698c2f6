"""In-memory catalog.

Serves a fixed catalog, optionally per organization. Used for tests, local
development and fixtures. Returned lists are deep copies so callers cannot
mutate the catalog.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .models import CatalogTrigger, ProviderCapabilities


@dataclass
class StaticCatalog:
    """``CatalogQuery`` backed by in-memory listings.

    Lookup order: organization override (if ``org_id`` is known), then the
    default listings.
    """

    providers: List[ProviderCapabilities] = field(default_factory=list)
    trigger_list: List[CatalogTrigger] = field(default_factory=list)
    by_org: Dict[str, "StaticCatalog"] = field(default_factory=dict)
    calls: List[str] = field(default_factory=list)

    def _scoped(self, org_id: Optional[str]) -> "StaticCatalog":
        if org_id and org_id in self.by_org:
            return self.by_org[org_id]
        return self

    async def capabilities(self, *, org_id: Optional[str] = None) -> List[ProviderCapabilities]:
        self.calls.append("capabilities")
        return [p.model_copy(deep=True) for p in self._scoped(org_id).providers]

    async def triggers(self, *, org_id: Optional[str] = None) -> List[CatalogTrigger]:
        self.calls.append("triggers")
        return [t.model_copy(deep=True) for t in self._scoped(org_id).trigger_list]
