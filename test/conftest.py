from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from dotenv import load_dotenv

TEST_ROOT = Path(__file__).resolve().parent
for env_file in (".env", ".env.example"):
    load_dotenv(TEST_ROOT / env_file, override=False)

LOCAL_HOSTS = frozenset({"localhost", "127.0.0.1"})


def _is_offline_host(host: str) -> bool:
    # MockTransport tests use hosts like "mock-catalog"
    return host in LOCAL_HOSTS or host.startswith("mock")


@pytest.fixture(autouse=True)
def _block_external_http(monkeypatch: pytest.MonkeyPatch):
    """Fail any test that would reach a real network host through httpx."""
    real_send = httpx.AsyncClient.send
    real_sync_send = httpx.Client.send

    async def guarded_send(self, request: httpx.Request, *args, **kwargs):
        if not _is_offline_host(request.url.host):
            raise RuntimeError(f"network access blocked in tests: {request.url}")
        return await real_send(self, request, *args, **kwargs)

    def guarded_sync_send(self, request: httpx.Request, *args, **kwargs):
        if not _is_offline_host(request.url.host):
            raise RuntimeError(f"network access blocked in tests: {request.url}")
        return real_sync_send(self, request, *args, **kwargs)

    monkeypatch.setattr(httpx.AsyncClient, "send", guarded_send)
    monkeypatch.setattr(httpx.Client, "send", guarded_sync_send)
