"""Capability/trigger catalog access.

The catalog is an external, read-only service listing the capabilities
(invocable actions grouped by provider) and triggers (activation events) an
organization can use. The builder reaches it only through the
``CatalogQuery`` protocol, passed in explicitly with the execution context.

Implementations:

- ``CatalogApiClient``: httpx client for the catalog HTTP API.
- ``StaticCatalog``: in-memory listings for tests and fixtures.
"""

from .base import CatalogQuery
from .client import CatalogApiClient
from .errors import CatalogApiError
from .models import CatalogCapability, CatalogTrigger, ProviderCapabilities
from .static import StaticCatalog

__all__ = [
    "CatalogQuery",
    "CatalogApiClient",
    "CatalogApiError",
    "CatalogCapability",
    "CatalogTrigger",
    "ProviderCapabilities",
    "StaticCatalog",
]
