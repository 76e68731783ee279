"""
tests.test_smoke

Boot the app in test mode and hit the health endpoints.
"""

from __future__ import annotations

import httpx
import pytest

from truleado.api.app import create_app
from truleado.settings import Settings


@pytest.mark.asyncio
async def test_health_endpoints(tmp_path) -> None:
    app = create_app(
        settings=Settings(env="test", database_url=f"sqlite+aiosqlite:///{tmp_path / 'smoke.db'}")
    )

    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            r = await client.get("/healthz")
            assert r.status_code == 200
            assert r.json()["status"] == "ok"

            r = await client.get("/readyz")
            assert r.status_code == 200
            assert r.json()["status"] == "ready"

            r = await client.get("/healthz", headers={"x-request-id": "req-1"})
            assert r.headers["x-request-id"] == "req-1"
    finally:
        await app.router.shutdown()


@pytest.mark.asyncio
async def test_unauthenticated_requests_are_rejected(api: httpx.AsyncClient) -> None:
    r = await api.get("/v1/me")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "UNAUTHENTICATED"

    r = await api.get("/v1/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_dev_token_disabled_in_prod(tmp_path) -> None:
    app = create_app(
        settings=Settings(env="prod", database_url=f"sqlite+aiosqlite:///{tmp_path / 'p.db'}")
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        r = await client.post("/v1/dev/token", json={"subject": "someone"})
    assert r.status_code == 404
