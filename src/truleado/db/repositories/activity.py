"""
truleado.db.repositories.activity

Repository for `ActivityLog` entries.

Responsibilities:
- Append activity entries for every domain mutation.
- Query the trail by entity or by agency, newest first.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import ActivityLog, ActorType


class ActivityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(
        self,
        *,
        agency_id: uuid.UUID,
        entity_type: str,
        entity_id: uuid.UUID,
        action: str,
        actor_id: uuid.UUID | None,
        actor_type: ActorType = ActorType.user,
        before_state: dict[str, Any] | None = None,
        after_state: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ActivityLog:
        # Append-only: there is no update or delete path.
        entry = ActivityLog(
            agency_id=agency_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            actor_type=actor_type,
            before_state=before_state,
            after_state=after_state,
            meta=metadata,
        )
        self._session.add(entry)
        await self._session.flush()
        return entry

    async def list_for_entity(
        self, entity_type: str, entity_id: uuid.UUID, *, limit: int = 200
    ) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.entity_type == entity_type, ActivityLog.entity_id == entity_id)
            .order_by(desc(ActivityLog.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def list_for_agency(self, agency_id: uuid.UUID, *, limit: int = 200) -> list[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.agency_id == agency_id)
            .order_by(desc(ActivityLog.created_at))
            .limit(limit)
        )
        return list((await self._session.execute(stmt)).scalars().all())
