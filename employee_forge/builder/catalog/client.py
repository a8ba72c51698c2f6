"""Catalog API client

Overview
--------
Thin async HTTP client for the capability/trigger catalog service. The
builder only reads from the catalog; it never registers triggers or invokes
capabilities through this client.

Endpoints
---------
- ``GET /capabilities`` -> list of providers with their capabilities
- ``GET /triggers`` -> list of triggers

Authentication and scoping
--------------------------
- ``auth_token`` is sent as ``Authorization: Bearer <token>`` when provided.
- ``org_id`` is sent as the ``X-Org-Id`` header so that the catalog can scope
  its listing to the organization's connections.

Errors
------
Non-2xx responses and undecodable payloads are raised as ``CatalogApiError``
with the status code and response body where available.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import CatalogApiError
from .models import CatalogTrigger, ProviderCapabilities

logger = logging.getLogger(__name__)

_CAPABILITIES = TypeAdapter(List[ProviderCapabilities])
_TRIGGERS = TypeAdapter(List[CatalogTrigger])


class CatalogApiClient:
    """Async HTTP implementation of ``CatalogQuery``."""

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: Optional[str] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        """Create a catalog API client.

        Args:
            base_url: Base URL of the catalog service (e.g., ``http://localhost:3000``).
            auth_token: Bearer token value without the ``Bearer`` prefix.
            timeout: Default HTTP timeout for the internal client.
            client: Optional preconfigured ``httpx.AsyncClient`` to use.
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    def _headers(self, org_id: Optional[str]) -> Dict[str, str]:
        headers: Dict[str, str] = {"Accept": "application/json"}
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        if org_id:
            headers["X-Org-Id"] = org_id
        return headers

    async def _get(self, path: str, *, org_id: Optional[str]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            r = await self._client.get(url, headers=self._headers(org_id))
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise CatalogApiError(
                f"Catalog request {path} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise CatalogApiError(f"Catalog request {path} failed: {e}") from e
        try:
            return r.json()
        except ValueError as e:
            raise CatalogApiError(f"Catalog response for {path} is not JSON", details=r.text) from e

    async def capabilities(self, *, org_id: Optional[str] = None) -> List[ProviderCapabilities]:
        """List capabilities grouped by provider.

        API
        ---
        - Method/Path: ``GET /capabilities``

        Returns:
            ``List[ProviderCapabilities]`` parsed from the response.
        """
        payload = await self._get("/capabilities", org_id=org_id)
        try:
            providers = _CAPABILITIES.validate_python(payload)
        except ValidationError as e:
            raise CatalogApiError("Malformed capabilities payload", details=str(e)) from e
        logger.debug("Fetched %d capability providers", len(providers))
        return providers

    async def triggers(self, *, org_id: Optional[str] = None) -> List[CatalogTrigger]:
        """List activation triggers.

        API
        ---
        - Method/Path: ``GET /triggers``

        Returns:
            ``List[CatalogTrigger]`` parsed from the response.
        """
        payload = await self._get("/triggers", org_id=org_id)
        try:
            triggers = _TRIGGERS.validate_python(payload)
        except ValidationError as e:
            raise CatalogApiError("Malformed triggers payload", details=str(e)) from e
        logger.debug("Fetched %d triggers", len(triggers))
        return triggers

    async def aclose(self) -> None:
        await self._client.aclose()
