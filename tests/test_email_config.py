from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from conftest import Tenant
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.repositories.activity import ActivityRepo
from truleado.errors import ExternalServiceError, ForbiddenError, NotFoundError, ValidationFailed
from truleado.integrations.notify import NotificationDelivery
from truleado.services.email_config_service import EmailConfigService
from truleado.services.notification_service import NotificationService
from truleado.settings import Settings

SMTP = {
    "smtp_host": " smtp.northwind.test ",
    "smtp_port": 465,
    "smtp_secure": True,
    "smtp_username": "mailer",
    "smtp_password": "s3cret",
    "from_email": "hello@northwind.test",
    "from_name": "Northwind Talent",
}


def _delivery(
    settings: Settings, handler: Callable[[httpx.Request], httpx.Response]
) -> NotificationDelivery:
    configured = settings.model_copy(update={"notify_api_key": "notify-key"})
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotificationDelivery(settings=configured, http=http)


@pytest.mark.asyncio
async def test_save_without_delivery_keeps_settings_only(
    session: AsyncSession, tenant: Tenant
) -> None:
    svc = EmailConfigService(session)
    agency_id = tenant.agency.id
    assert await svc.get_config(tenant.operator, agency_id) is None

    config = await svc.save_config(tenant.admin, agency_id, **SMTP)
    assert config.smtp_host == "smtp.northwind.test"
    assert config.has_password
    assert config.integration_identifier is None

    # Resubmitting without a password keeps the stored one.
    config = await svc.save_config(
        tenant.admin, agency_id, **{**SMTP, "smtp_password": "", "from_name": "NW"}
    )
    assert config.smtp_password == "s3cret"
    assert config.from_name == "NW"

    seen = await svc.get_config(tenant.operator, agency_id)
    assert seen is not None and seen.id == config.id

    log = await ActivityRepo(session).list_for_entity("agency_email_config", config.id)
    assert [e.action for e in log] == ["saved", "saved"]
    assert all("smtp_password" not in (e.after_state or {}) for e in log)


@pytest.mark.asyncio
async def test_save_rules_and_access(session: AsyncSession, tenant: Tenant) -> None:
    svc = EmailConfigService(session)
    agency_id = tenant.agency.id

    with pytest.raises(ForbiddenError):
        await svc.save_config(tenant.manager, agency_id, **SMTP)
    with pytest.raises(ForbiddenError):
        await svc.get_config(tenant.outsider, agency_id)
    with pytest.raises(ValidationFailed, match="SMTP host"):
        await svc.save_config(tenant.admin, agency_id, **{**SMTP, "smtp_host": "  "})
    with pytest.raises(ValidationFailed, match="between 1 and 65535"):
        await svc.save_config(tenant.admin, agency_id, **{**SMTP, "smtp_port": 70000})
    with pytest.raises(ValidationFailed, match="From email"):
        await svc.save_config(tenant.admin, agency_id, **{**SMTP, "from_email": "nobody"})
    with pytest.raises(NotFoundError):
        await svc.delete_config(tenant.admin, agency_id)

    await svc.save_config(tenant.admin, agency_id, **SMTP)
    with pytest.raises(ForbiddenError):
        await svc.delete_config(tenant.operator, agency_id)
    await svc.delete_config(tenant.admin, agency_id)
    assert await svc.get_config(tenant.admin, agency_id) is None


@pytest.mark.asyncio
async def test_save_registers_integration_and_routes_email(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    calls: list[tuple[str, str, dict]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else {}
        calls.append((request.method, request.url.path, body))
        if request.url.path == "/integrations" and request.method == "POST":
            return httpx.Response(201, json={"data": {"_id": "int_1"}})
        return httpx.Response(201, json={"acknowledged": True})

    delivery = _delivery(settings, handler)
    agency_id = tenant.agency.id
    config = await EmailConfigService(session, delivery=delivery).save_config(
        tenant.admin, agency_id, **SMTP
    )
    assert config.integration_identifier == f"agency-{agency_id}"

    method, path, body = calls[0]
    assert (method, path) == ("POST", "/integrations")
    assert body["identifier"] == f"agency-{agency_id}"
    assert body["credentials"]["host"] == "smtp.northwind.test"
    assert body["credentials"]["port"] == "465"
    assert body["credentials"]["from"] == "hello@northwind.test"

    notifications = NotificationService(session, delivery=delivery)
    await notifications.notify(
        agency_id=agency_id,
        user_ids=[tenant.operator.user_id],
        notification_type="campaign_activated",
        title="Campaign activated",
        message="Spring Launch is live",
    )
    await session.commit()
    assert await notifications.dispatch() == 1

    method, path, body = calls[-1]
    assert (method, path) == ("POST", "/events/trigger")
    assert body["overrides"] == {"email": {"integrationIdentifier": f"agency-{agency_id}"}}


@pytest.mark.asyncio
async def test_existing_integration_is_updated(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    agency_id = tenant.agency.id
    calls: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        if request.method == "POST":
            return httpx.Response(409, json={"message": "duplicate identifier"})
        if request.method == "GET":
            return httpx.Response(
                200, json={"data": [{"_id": "int_7", "identifier": f"agency-{agency_id}"}]}
            )
        return httpx.Response(200, json={"data": {"_id": "int_7"}})

    svc = EmailConfigService(session, delivery=_delivery(settings, handler))
    config = await svc.save_config(tenant.admin, agency_id, **SMTP)
    assert config.integration_identifier == f"agency-{agency_id}"
    assert calls == [
        ("POST", "/integrations"),
        ("GET", "/integrations"),
        ("PUT", "/integrations/int_7"),
    ]


@pytest.mark.asyncio
async def test_provider_failure_saves_nothing(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    agency_id = tenant.agency.id
    svc = EmailConfigService(
        session, delivery=_delivery(settings, lambda request: httpx.Response(500))
    )
    with pytest.raises(ExternalServiceError):
        await svc.save_config(tenant.admin, agency_id, **SMTP)
    assert await svc.get_config(tenant.admin, agency_id) is None
