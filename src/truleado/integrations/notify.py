"""
truleado.integrations.notify

Notification delivery through a workflow-trigger HTTP API, plus per-agency SMTP integrations.
"""

from __future__ import annotations

from typing import Any

import httpx

from truleado.observability.logging import get_logger
from truleado.settings import Settings

log = get_logger(__name__)


class NotificationDelivery:
    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    @property
    def enabled(self) -> bool:
        return bool(self._settings.notify_api_key)

    async def trigger(
        self,
        *,
        workflow_id: str,
        subscriber_id: str,
        payload: dict[str, Any],
        email: str | None = None,
        tenant: str | None = None,
        integration_identifier: str | None = None,
    ) -> bool:
        """Trigger a delivery workflow. Returns False when delivery is not configured."""

        if not self.enabled:
            log.debug("notification_delivery_disabled", workflow_id=workflow_id)
            return False

        to: dict[str, Any] = {"subscriberId": subscriber_id}
        if email:
            to["email"] = email
        body: dict[str, Any] = {"name": workflow_id, "to": to, "payload": payload}
        if tenant:
            body["tenant"] = tenant
        if integration_identifier:
            # Route email through the agency's own SMTP integration.
            body["overrides"] = {"email": {"integrationIdentifier": integration_identifier}}

        r = await self._http.post(
            f"{self._settings.notify_api_url.rstrip('/')}/events/trigger",
            headers={"Authorization": f"ApiKey {self._settings.notify_api_key}"},
            json=body,
        )
        r.raise_for_status()
        return True

    async def upsert_smtp_integration(self, *, agency_id: str, credentials: dict[str, Any]) -> str:
        """Create or update the agency's custom SMTP integration. Returns its identifier."""

        identifier = smtp_integration_identifier(agency_id)
        base = self._settings.notify_api_url.rstrip("/")
        headers = {"Authorization": f"ApiKey {self._settings.notify_api_key}"}
        body = {
            "providerId": "nodemailer",
            "channel": "email",
            "name": f"Agency SMTP ({agency_id[:8]})",
            "identifier": identifier,
            "credentials": credentials,
            "active": True,
            "check": False,
        }

        r = await self._http.post(f"{base}/integrations", headers=headers, json=body)
        if r.status_code != 409:
            r.raise_for_status()
            return identifier

        # Already registered: find it by identifier and update it in place.
        listing = await self._http.get(f"{base}/integrations", headers=headers)
        listing.raise_for_status()
        data = listing.json()
        items = data.get("data", []) if isinstance(data, dict) else data
        existing = next((i for i in items if i.get("identifier") == identifier), None)
        if existing is None:
            raise httpx.HTTPStatusError(
                "SMTP integration conflict but no matching integration found",
                request=r.request,
                response=r,
            )
        r = await self._http.put(
            f"{base}/integrations/{existing['_id']}",
            headers=headers,
            json={"credentials": credentials, "active": True},
        )
        r.raise_for_status()
        log.info("smtp_integration_updated", identifier=identifier)
        return identifier


def smtp_integration_identifier(agency_id: str) -> str:
    return f"agency-{agency_id}"
