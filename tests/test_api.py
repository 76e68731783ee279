from __future__ import annotations

from collections.abc import Callable

import httpx
import pytest
from conftest import Tenant, swap_http
from fastapi import FastAPI

from truleado.integrations.payments import sign_payment


@pytest.mark.asyncio
async def test_signup_to_first_campaign(api: httpx.AsyncClient) -> None:
    r = await api.post(
        "/v1/dev/token",
        json={"subject": "sub-founder", "email": "founder@example.com", "name": "Fay Founder"},
    )
    assert r.status_code == 200
    h = {"Authorization": f"Bearer {r.json()['access_token']}"}

    # A valid token without a linked user is still unauthenticated.
    r = await api.get("/v1/me", headers=h)
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthenticated"

    r = await api.post("/v1/users", headers=h, json={})
    assert r.status_code == 201
    user = r.json()
    assert user["email"] == "founder@example.com"
    assert user["full_name"] == "Fay Founder"

    r = await api.post("/v1/agencies", headers=h, json={"name": "Northwind Talent"})
    assert r.status_code == 201
    agency = r.json()
    assert agency["token_balance"] == 0

    r = await api.get("/v1/me", headers=h)
    assert r.json()["memberships"] == [
        {"agency_id": agency["id"], "role": "agency_admin", "is_active": True}
    ]

    r = await api.post(
        f"/v1/agencies/{agency['id']}/clients",
        headers=h,
        json={"name": "Glow Cosmetics", "account_manager_id": user["id"]},
    )
    assert r.status_code == 201
    client = r.json()

    r = await api.post(
        f"/v1/clients/{client['id']}/projects", headers=h, json={"name": "Summer Drop"}
    )
    assert r.status_code == 201
    project = r.json()

    r = await api.post(
        f"/v1/projects/{project['id']}/campaigns",
        headers=h,
        json={"name": "Summer Reels", "approver_user_ids": [user["id"]]},
    )
    assert r.status_code == 201
    campaign = r.json()
    assert (campaign["status"], campaign["status_label"]) == ("draft", "Draft")

    r = await api.post(f"/v1/campaigns/{campaign['id']}/transitions/activate", headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "active"

    r = await api.post(f"/v1/campaigns/{campaign['id']}/transitions/complete", headers=h)
    assert r.status_code == 409
    err = r.json()["error"]
    assert err["code"] == "invalid_state"
    assert err["details"]["current_state"] == "active"


@pytest.mark.asyncio
async def test_error_envelope(
    api: httpx.AsyncClient, tenant: Tenant, bearer: Callable[..., dict[str, str]]
) -> None:
    campaign_id = tenant.campaign.id

    r = await api.get(f"/v1/campaigns/{campaign_id}", headers=bearer("sub-operator"))
    assert r.status_code == 200
    assert r.json()["status_label"] == "Active"

    r = await api.get(f"/v1/campaigns/{campaign_id}", headers=bearer("sub-outsider"))
    assert r.status_code == 403
    assert r.json()["error"] == {
        "code": "forbidden",
        "message": "Not a member of this agency",
        "details": {"campaign_id": str(campaign_id), "permission": "view_campaign"},
    }

    r = await api.get(
        "/v1/campaigns/00000000-0000-0000-0000-000000000000", headers=bearer("sub-admin")
    )
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"

    r = await api.post("/v1/agencies", headers=bearer("sub-outsider"), json={"name": "x"})
    assert r.status_code == 422
    assert r.json()["error"]["details"]["field"] == "name"


@pytest.mark.asyncio
async def test_token_purchase_over_http(
    app: FastAPI,
    api: httpx.AsyncClient,
    tenant: Tenant,
    bearer: Callable[..., dict[str, str]],
) -> None:
    def gateway(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "pay.test"
        return httpx.Response(200, json={"id": "order_abc", "amount": 300, "currency": "INR"})

    await swap_http(app, gateway)
    agency_id = tenant.agency.id
    admin = bearer("sub-admin")

    purchases = f"/v1/agencies/{agency_id}/token-purchases"
    r = await api.post(purchases, headers=admin, json={"tokens": 3})
    assert r.status_code == 201
    assert r.json()["order_id"] == "order_abc"
    assert r.json()["key_id"] == "key_test"

    r = await api.post(
        purchases,
        headers=bearer("sub-operator"),
        json={"tokens": 3},
    )
    assert r.status_code == 403

    signature = sign_payment(secret="pay-secret", order_id="order_abc", payment_id="pay_9")
    r = await api.post(
        "/v1/token-purchases/verify",
        headers=admin,
        json={"order_id": "order_abc", "payment_id": "pay_9", "signature": signature},
    )
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    r = await api.get(f"/v1/agencies/{agency_id}/tokens", headers=admin)
    assert r.json()["token_balance"] == 8


@pytest.mark.asyncio
async def test_agency_settings_over_http(
    api: httpx.AsyncClient, tenant: Tenant, bearer: Callable[..., dict[str, str]]
) -> None:
    base = f"/v1/agencies/{tenant.agency.id}"
    admin = bearer("sub-admin")

    r = await api.patch(
        f"{base}/locale", headers=admin, json={"currency_code": "eur", "timezone": "Europe/Paris"}
    )
    assert r.status_code == 200
    body = r.json()
    assert (body["currency_code"], body["timezone"], body["language_code"]) == (
        "EUR",
        "Europe/Paris",
        "en",
    )
    r = await api.patch(f"{base}/locale", headers=bearer("sub-manager"), json={"timezone": "UTC"})
    assert r.status_code == 403

    r = await api.get(f"{base}/email-config", headers=admin)
    assert r.status_code == 200
    assert r.json() is None

    r = await api.put(
        f"{base}/email-config",
        headers=admin,
        json={
            "smtp_host": "smtp.northwind.test",
            "smtp_password": "s3cret",
            "from_email": "hello@northwind.test",
        },
    )
    assert r.status_code == 200
    config = r.json()
    assert config["has_password"] is True
    assert config["smtp_port"] == 587
    assert "smtp_password" not in config

    r = await api.delete(f"{base}/email-config", headers=admin)
    assert r.status_code == 204

    # JSON booleans are not token counts.
    r = await api.post(f"{base}/token-purchases", headers=admin, json={"tokens": True})
    assert r.status_code == 422
