from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import Notification


class NotificationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, notification_id: uuid.UUID) -> Notification | None:
        return await self._session.get(Notification, notification_id)

    async def add_all(self, rows: list[Notification]) -> list[Notification]:
        self._session.add_all(rows)
        await self._session.flush()
        return rows

    async def list_for_user(
        self,
        user_id: uuid.UUID,
        agency_id: uuid.UUID,
        *,
        unread_only: bool = False,
        limit: int = 50,
    ) -> list[Notification]:
        stmt = select(Notification).where(
            Notification.user_id == user_id, Notification.agency_id == agency_id
        )
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(desc(Notification.created_at)).limit(limit)
        return list((await self._session.execute(stmt)).scalars().all())

    async def mark_all_read(self, user_id: uuid.UUID, agency_id: uuid.UUID, at: datetime) -> int:
        result = await self._session.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.agency_id == agency_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=at)
        )
        return result.rowcount or 0
