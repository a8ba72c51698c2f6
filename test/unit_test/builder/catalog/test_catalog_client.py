from __future__ import annotations

from typing import List

import httpx
import pytest

from employee_forge.builder.catalog import CatalogApiClient, CatalogApiError, StaticCatalog
from employee_forge.builder.catalog.models import CatalogCapability, CatalogTrigger, ProviderCapabilities
from employee_forge.builder.schemas.domain import RiskLevel

BASE_URL = "http://mock-catalog"


def _client(handler, **kwargs) -> CatalogApiClient:
    transport = httpx.MockTransport(handler)
    return CatalogApiClient(BASE_URL, client=httpx.AsyncClient(transport=transport), **kwargs)


@pytest.mark.asyncio
async def test_capabilities_are_parsed_and_scoped_to_the_org():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {
                    "id": "erp",
                    "capabilities": [
                        {"id": "inventory.read", "description": "Read stock", "paramsSchema": {"type": "object"}},
                        {"id": "pricing.update", "risk": "HIGH", "unknownField": True},
                    ],
                }
            ],
        )

    client = _client(handler, auth_token="secret")
    [provider] = await client.capabilities(org_id="org-1")

    assert provider.provider_id == "erp"
    assert [c.id for c in provider.capabilities] == ["inventory.read", "pricing.update"]
    assert provider.capabilities[0].params_schema == {"type": "object"}
    assert provider.capabilities[1].risk == RiskLevel.high
    request = seen[0]
    assert request.url.path == "/capabilities"
    assert request.headers["Authorization"] == "Bearer secret"
    assert request.headers["X-Org-Id"] == "org-1"
    await client.aclose()


@pytest.mark.asyncio
async def test_triggers_are_parsed_without_auth_header():
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "cron", "providerId": "scheduler", "description": "Schedule"}])

    [trigger] = await _client(handler).triggers()

    assert trigger.ref().key() == ("scheduler", "cron")
    assert "Authorization" not in seen[0].headers
    assert "X-Org-Id" not in seen[0].headers


@pytest.mark.asyncio
async def test_http_error_status_is_raised_with_details():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="catalog down")

    with pytest.raises(CatalogApiError) as exc:
        await _client(handler).capabilities()

    assert exc.value.status_code == 503
    assert exc.value.details == "catalog down"


@pytest.mark.asyncio
async def test_non_json_payload_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>")

    with pytest.raises(CatalogApiError, match="not JSON"):
        await _client(handler).triggers()


@pytest.mark.asyncio
async def test_malformed_payload_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"description": "no ids"}])

    with pytest.raises(CatalogApiError, match="Malformed triggers payload"):
        await _client(handler).triggers()


@pytest.mark.asyncio
async def test_transport_error_is_raised():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(CatalogApiError) as exc:
        await _client(handler).capabilities()

    assert exc.value.status_code is None


@pytest.mark.asyncio
async def test_static_catalog_prefers_org_listing_and_returns_copies():
    default = ProviderCapabilities(provider_id="erp")
    scoped = StaticCatalog(trigger_list=[CatalogTrigger(id="webhook", provider_id="http")])
    catalog = StaticCatalog(providers=[default], by_org={"org-2": scoped})

    assert await catalog.triggers(org_id="org-2") == scoped.trigger_list
    assert await catalog.capabilities(org_id="org-2") == []
    [copy] = await catalog.capabilities(org_id="org-1")
    copy.capabilities.append(CatalogCapability(id="inventory.read"))
    assert default.capabilities == []


def test_provider_listing_serializes_with_camel_case_id():
    provider = ProviderCapabilities.model_validate({"provider_id": "erp"})

    assert provider.model_dump(by_alias=True) == {"providerId": "erp", "capabilities": []}
