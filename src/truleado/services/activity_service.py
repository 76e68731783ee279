"""
truleado.services.activity_service

Read side of the activity log plus the snapshot helper services use when
recording before/after state.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import ActivityLog
from truleado.db.repositories.activity import ActivityRepo
from truleado.errors import ValidationFailed
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import Permission

ENTITY_TYPES = (
    "agency",
    "client",
    "contact",
    "project",
    "campaign",
    "deliverable",
    "creator",
    "campaign_creator",
    "project_approver",
    "project_user",
    "payment",
    "creator_analytics_snapshot",
    "token_purchase",
)


def snapshot(obj: Any, *fields: str) -> dict[str, Any]:
    """JSON-safe dict of the named attributes, for activity before/after state."""

    out: dict[str, Any] = {}
    for name in fields:
        value = getattr(obj, name)
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, uuid.UUID | Decimal):
            value = str(value)
        elif isinstance(value, datetime | date):
            value = value.isoformat()
        out[name] = value
    return out


class ActivityService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._repo = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    async def for_entity(
        self, actor: Actor, *, entity_type: str, entity_id: uuid.UUID, limit: int = 200
    ) -> list[ActivityLog]:
        if entity_type not in ENTITY_TYPES:
            raise ValidationFailed(f"Unknown entity type: {entity_type}", field="entity_type")
        if entity_type == "campaign":
            await self._rbac.require_campaign_access(
                actor, entity_id, Permission.view_activity_logs
            )
            return await self._repo.list_for_entity(entity_type, entity_id, limit=limit)

        entries = await self._repo.list_for_entity(entity_type, entity_id, limit=limit)
        if entries:
            await self._rbac.require_agency_permission(
                actor, entries[0].agency_id, Permission.view_activity_logs
            )
        return entries

    async def for_agency(
        self, actor: Actor, agency_id: uuid.UUID, *, limit: int = 200
    ) -> list[ActivityLog]:
        await self._rbac.require_agency_permission(actor, agency_id, Permission.view_activity_logs)
        return await self._repo.list_for_agency(agency_id, limit=limit)
