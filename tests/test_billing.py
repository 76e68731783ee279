from __future__ import annotations

import json

import httpx
import pytest
from conftest import Tenant
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import TokenPurchaseStatus
from truleado.db.repositories.agencies import AgencyRepo
from truleado.errors import ForbiddenError, InvalidStateError, ValidationFailed
from truleado.integrations.payments import PaymentGateway, sign_payment
from truleado.services.billing_service import BillingService
from truleado.settings import Settings


def _gateway_handler(orders: list[dict]):  # type: ignore[no-untyped-def]
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/orders"
        body = json.loads(request.content)
        orders.append(body)
        return httpx.Response(
            200,
            json={"id": f"order_{len(orders)}", "amount": body["amount"], "currency": "INR"},
        )

    return handler


def _service(session: AsyncSession, settings: Settings, orders: list[dict]) -> BillingService:
    http = httpx.AsyncClient(transport=httpx.MockTransport(_gateway_handler(orders)))
    return BillingService(
        session, settings=settings, gateway=PaymentGateway(settings=settings, http=http)
    )


@pytest.mark.asyncio
async def test_purchase_and_verify_credits_once(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    orders: list[dict] = []
    svc = _service(session, settings, orders)

    checkout = await svc.create_token_purchase(tenant.admin, tenant.agency.id, tokens=20)
    assert checkout.order_id == "order_1"
    assert checkout.amount_minor == 2000
    assert checkout.key_id == "key_test"
    assert orders[0]["notes"] == {"agency_id": str(tenant.agency.id), "tokens": "20"}
    assert checkout.purchase.status is TokenPurchaseStatus.pending

    signature = sign_payment(secret="pay-secret", order_id="order_1", payment_id="pay_1")
    purchase = await svc.verify_token_purchase(
        tenant.admin, order_id="order_1", payment_id="pay_1", signature=signature
    )
    assert purchase.status is TokenPurchaseStatus.completed
    assert purchase.completed_at is not None
    assert await AgencyRepo(session).token_balance(tenant.agency.id) == 25

    with pytest.raises(InvalidStateError, match="already processed"):
        await svc.verify_token_purchase(
            tenant.admin, order_id="order_1", payment_id="pay_1", signature=signature
        )
    assert await AgencyRepo(session).token_balance(tenant.agency.id) == 25


@pytest.mark.asyncio
async def test_bad_signature_fails_purchase(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    svc = _service(session, settings, [])
    await svc.create_token_purchase(tenant.admin, tenant.agency.id, tokens=5)

    with pytest.raises(ValidationFailed, match="Invalid payment signature"):
        await svc.verify_token_purchase(
            tenant.admin, order_id="order_1", payment_id="pay_1", signature="forged"
        )
    [purchase] = await svc.list_purchases(tenant.admin, tenant.agency.id)
    assert purchase.status is TokenPurchaseStatus.failed
    assert await svc.token_balance(tenant.operator, tenant.agency.id) == 5


@pytest.mark.asyncio
async def test_purchase_rules(session: AsyncSession, settings: Settings, tenant: Tenant) -> None:
    orders: list[dict] = []
    svc = _service(session, settings, orders)

    with pytest.raises(ForbiddenError):
        await svc.create_token_purchase(tenant.manager, tenant.agency.id, tokens=5)
    with pytest.raises(ValidationFailed, match="between 1 and"):
        await svc.create_token_purchase(tenant.admin, tenant.agency.id, tokens=0)
    with pytest.raises(ValidationFailed, match="between 1 and"):
        await svc.create_token_purchase(tenant.admin, tenant.agency.id, tokens=True)
    with pytest.raises(ValidationFailed, match="between 1 and"):
        await svc.create_token_purchase(tenant.admin, tenant.agency.id, tokens=2.0)
    with pytest.raises(ForbiddenError):
        await svc.token_balance(tenant.outsider, tenant.agency.id)
    assert orders == []
