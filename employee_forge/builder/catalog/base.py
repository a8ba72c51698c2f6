"""Catalog query protocol.

The engine only depends on this read-only interface. Organization scoping is
an explicit parameter so that branches can be tested with fakes and no
ambient tenant state is needed.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from .models import CatalogTrigger, ProviderCapabilities


class CatalogQuery(Protocol):
    """Read-only access to the capability and trigger catalog."""

    async def capabilities(self, *, org_id: Optional[str] = None) -> List[ProviderCapabilities]:
        """
        List capabilities grouped by provider.

        Args:
            org_id: Organization whose connections scope the catalog.

        Returns:
            The provider capability listings.
        """
        ...

    async def triggers(self, *, org_id: Optional[str] = None) -> List[CatalogTrigger]:
        """
        List activation triggers.

        Args:
            org_id: Organization whose connections scope the catalog.

        Returns:
            The trigger listings.
        """
        ...
