"""
truleado.services.email_config_service

Per-agency SMTP settings for outbound notification email.

Saving a configuration registers (or updates) a custom SMTP integration with the
delivery provider and stores its identifier; `NotificationService.dispatch` then
routes the agency's email through it. When delivery is not configured the settings
are stored without an integration and email keeps using the provider default.
"""

from __future__ import annotations

import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import AgencyEmailConfig
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.errors import ExternalServiceError, NotFoundError, ValidationFailed
from truleado.integrations.notify import NotificationDelivery
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import Permission
from truleado.services.activity_service import snapshot

log = get_logger(__name__)

# The password never leaves the service, not even into the activity log.
_FIELDS = (
    "smtp_host",
    "smtp_port",
    "smtp_secure",
    "smtp_username",
    "from_email",
    "from_name",
    "is_enabled",
)


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class EmailConfigService:
    def __init__(
        self, session: AsyncSession, *, delivery: NotificationDelivery | None = None
    ) -> None:
        self._session = session
        self._delivery = delivery
        self._agencies = AgencyRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    async def get_config(self, actor: Actor, agency_id: uuid.UUID) -> AgencyEmailConfig | None:
        await self._rbac.require_agency_membership(actor, agency_id)
        return await self._agencies.email_config(agency_id)

    async def save_config(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        *,
        smtp_host: str,
        smtp_port: int = 587,
        smtp_secure: bool = False,
        smtp_username: str | None = None,
        smtp_password: str | None = None,
        from_email: str,
        from_name: str | None = None,
        is_enabled: bool = True,
    ) -> AgencyEmailConfig:
        """
        Create or replace the agency's SMTP settings.

        An empty `smtp_password` keeps the stored one, so clients can resubmit the form
        without echoing the secret back.
        """

        await self._rbac.require_agency_permission(actor, agency_id, Permission.manage_agency)

        host = _clean(smtp_host)
        if host is None:
            raise ValidationFailed("SMTP host is required", field="smtp_host")
        if isinstance(smtp_port, bool) or not 1 <= smtp_port <= 65535:
            raise ValidationFailed("SMTP port must be between 1 and 65535", field="smtp_port")
        sender = _clean(from_email)
        if sender is None or "@" not in sender:
            raise ValidationFailed("From email must be a valid email address", field="from_email")

        config = await self._agencies.email_config(agency_id)
        password = smtp_password or (config.smtp_password if config is not None else None)
        values = {
            "smtp_host": host,
            "smtp_port": smtp_port,
            "smtp_secure": bool(smtp_secure),
            "smtp_username": _clean(smtp_username),
            "smtp_password": password,
            "from_email": sender,
            "from_name": _clean(from_name),
            "is_enabled": bool(is_enabled),
        }
        identifier = await self._register(agency_id, values)

        before = snapshot(config, *_FIELDS) if config is not None else None
        if config is None:
            config = await self._agencies.add_email_config(
                AgencyEmailConfig(agency_id=agency_id, integration_identifier=identifier, **values)
            )
        else:
            for key, value in values.items():
                setattr(config, key, value)
            config.integration_identifier = identifier

        await self._activity.add(
            agency_id=agency_id,
            entity_type="agency_email_config",
            entity_id=config.id,
            action="saved",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(config, *_FIELDS),
        )
        await self._session.commit()
        log.info("agency_email_config_saved", agency_id=agency_id, registered=bool(identifier))
        return config

    async def delete_config(self, actor: Actor, agency_id: uuid.UUID) -> None:
        await self._rbac.require_agency_permission(actor, agency_id, Permission.manage_agency)
        config = await self._agencies.email_config(agency_id)
        if config is None:
            raise NotFoundError("AgencyEmailConfig", agency_id)

        before = snapshot(config, *_FIELDS)
        config_id = config.id
        await self._agencies.delete_email_config(config)
        await self._activity.add(
            agency_id=agency_id,
            entity_type="agency_email_config",
            entity_id=config_id,
            action="deleted",
            actor_id=actor.user_id,
            before_state=before,
        )
        await self._session.commit()

    async def _register(self, agency_id: uuid.UUID, values: dict) -> str | None:
        if self._delivery is None or not self._delivery.enabled:
            log.info("smtp_integration_skipped", agency_id=agency_id)
            return None

        credentials = {
            "host": values["smtp_host"],
            "port": str(values["smtp_port"]),
            "secure": values["smtp_secure"],
            "user": values["smtp_username"],
            "password": values["smtp_password"],
            "from": values["from_email"],
            "senderName": values["from_name"],
        }
        try:
            return await self._delivery.upsert_smtp_integration(
                agency_id=str(agency_id),
                credentials={k: v for k, v in credentials.items() if v is not None},
            )
        except httpx.HTTPError as e:
            log.warning("smtp_integration_failed", agency_id=agency_id, error=str(e))
            raise ExternalServiceError("email provider") from e
