"""Per-call execution context.

Carries the organization scope and the catalog query implementation into the
engine explicitly, instead of relying on module-level clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .catalog.base import CatalogQuery


@dataclass(frozen=True)
class ExecutionContext:
    """Caller-supplied context for ``start``/``resume``.

    Attributes
    ----------
    catalog:
        Catalog query implementation used by the catalog tools.
    org_id:
        Organization scope forwarded to every catalog query.
    user_id:
        The human who answers questions for this thread (event metadata only).
    """

    catalog: CatalogQuery
    org_id: Optional[str] = None
    user_id: Optional[str] = None
