"""
truleado.services.notification_service

In-app notifications and outbound delivery.

Responsibilities:
- Persist one notification per recipient inside the caller's transaction.
- Dispatch queued notifications after commit; delivery failures are logged only.
- Per-user listing and read-state updates.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import Notification, utcnow
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.notifications import NotificationRepo
from truleado.db.repositories.users import UserRepo
from truleado.errors import ForbiddenError, NotFoundError
from truleado.integrations.notify import NotificationDelivery
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver

log = get_logger(__name__)


class NotificationService:
    def __init__(
        self, session: AsyncSession, *, delivery: NotificationDelivery | None = None
    ) -> None:
        self._session = session
        self._repo = NotificationRepo(session)
        self._delivery = delivery
        self._outbox: list[Notification] = []

    async def notify(
        self,
        *,
        agency_id: uuid.UUID,
        user_ids: Iterable[uuid.UUID],
        notification_type: str,
        title: str,
        message: str,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
        exclude: uuid.UUID | None = None,
    ) -> list[Notification]:
        recipients = [u for u in dict.fromkeys(user_ids) if u != exclude]
        rows = [
            Notification(
                agency_id=agency_id,
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            )
            for user_id in recipients
        ]
        if rows:
            await self._repo.add_all(rows)
            self._outbox.extend(rows)
        return rows

    async def dispatch(self) -> int:
        """Send queued notifications. Call after the owning transaction committed."""

        pending, self._outbox = self._outbox, []
        if self._delivery is None or not self._delivery.enabled or not pending:
            return 0

        users = UserRepo(self._session)
        agencies = AgencyRepo(self._session)
        senders: dict[uuid.UUID, str | None] = {}
        sent = 0
        for n in pending:
            user = await users.get(n.user_id)
            if n.agency_id not in senders:
                config = await agencies.email_config(n.agency_id)
                enabled = config is not None and config.is_enabled
                senders[n.agency_id] = config.integration_identifier if enabled else None
            try:
                delivered = await self._delivery.trigger(
                    workflow_id=n.notification_type,
                    subscriber_id=str(n.user_id),
                    email=user.email if user is not None else None,
                    tenant=str(n.agency_id),
                    integration_identifier=senders[n.agency_id],
                    payload={
                        "title": n.title,
                        "message": n.message,
                        "entityType": n.entity_type,
                        "entityId": str(n.entity_id) if n.entity_id else None,
                    },
                )
            except httpx.HTTPError as e:
                log.warning(
                    "notification_delivery_failed",
                    notification_id=n.id,
                    notification_type=n.notification_type,
                    error=str(e),
                )
                continue
            sent += int(delivered)
        return sent

    # --- read side ----------------------------------------------------------

    async def list_notifications(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        return await self._repo.list_for_user(
            actor.user_id, agency_id, unread_only=unread_only, limit=limit
        )

    async def mark_read(self, actor: Actor, notification_id: uuid.UUID) -> Notification:
        n = await self._repo.get(notification_id)
        if n is None:
            raise NotFoundError("Notification", notification_id)
        if n.user_id != actor.user_id:
            raise ForbiddenError("You can only mark your own notifications as read")
        if not n.is_read:
            n.is_read = True
            n.read_at = utcnow()
            await self._session.commit()
        return n

    async def mark_all_read(self, actor: Actor, agency_id: uuid.UUID) -> int:
        await AccessResolver(self._session).require_agency_membership(actor, agency_id)
        count = await self._repo.mark_all_read(actor.user_id, agency_id, utcnow())
        await self._session.commit()
        log.info("notifications_marked_read", agency_id=agency_id, count=count)
        return count
