"""
truleado.db.repositories.deliverables

Deliverables, their uploaded versions, approval records and tracking URLs.
"""

from __future__ import annotations

import uuid

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import (
    Approval,
    Campaign,
    Contact,
    Deliverable,
    DeliverableTrackingUrl,
    DeliverableVersion,
    Project,
)
from truleado.workflow.deliverable import DeliverableStatus


class DeliverableRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(
        self, deliverable_id: uuid.UUID, *, for_update: bool = False
    ) -> Deliverable | None:
        return await self._session.get(Deliverable, deliverable_id, with_for_update=for_update)

    async def add(self, deliverable: Deliverable) -> Deliverable:
        self._session.add(deliverable)
        await self._session.flush()
        return deliverable

    async def list_for_campaign(self, campaign_id: uuid.UUID) -> list[Deliverable]:
        stmt = (
            select(Deliverable)
            .where(Deliverable.campaign_id == campaign_id)
            .order_by(Deliverable.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    # --- versions -----------------------------------------------------------

    async def get_version(self, version_id: uuid.UUID) -> DeliverableVersion | None:
        return await self._session.get(DeliverableVersion, version_id)

    async def versions(self, deliverable_id: uuid.UUID) -> list[DeliverableVersion]:
        stmt = (
            select(DeliverableVersion)
            .where(DeliverableVersion.deliverable_id == deliverable_id)
            .order_by(DeliverableVersion.version_number)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def latest_version(self, deliverable_id: uuid.UUID) -> DeliverableVersion | None:
        stmt = (
            select(DeliverableVersion)
            .where(DeliverableVersion.deliverable_id == deliverable_id)
            .order_by(desc(DeliverableVersion.version_number))
            .limit(1)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def version_has_approvals(self, version_id: uuid.UUID) -> bool:
        stmt = select(func.count()).where(Approval.deliverable_version_id == version_id)
        return bool(await self._session.scalar(stmt))

    async def add_version(self, version: DeliverableVersion) -> DeliverableVersion:
        self._session.add(version)
        await self._session.flush()
        return version

    async def delete_version(self, version: DeliverableVersion) -> None:
        await self._session.delete(version)
        await self._session.flush()

    # --- approvals (append-only) --------------------------------------------

    async def add_approval(self, approval: Approval) -> Approval:
        self._session.add(approval)
        await self._session.flush()
        return approval

    async def approvals(self, deliverable_id: uuid.UUID) -> list[Approval]:
        stmt = (
            select(Approval)
            .where(Approval.deliverable_id == deliverable_id)
            .order_by(Approval.decided_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def awaiting_client(self, user_id: uuid.UUID) -> list[Deliverable]:
        # Deliverables in client review for clients where the user is an approver contact.
        stmt = (
            select(Deliverable)
            .join(Campaign, Campaign.id == Deliverable.campaign_id)
            .join(Project, Project.id == Campaign.project_id)
            .join(Contact, Contact.client_id == Project.client_id)
            .where(
                Contact.user_id == user_id,
                Contact.is_client_approver.is_(True),
                Deliverable.status == DeliverableStatus.client_review,
            )
            .order_by(Deliverable.updated_at)
            .distinct()
        )
        return list((await self._session.execute(stmt)).scalars().all())

    # --- tracking -----------------------------------------------------------

    async def tracking_urls(self, deliverable_id: uuid.UUID) -> list[DeliverableTrackingUrl]:
        stmt = (
            select(DeliverableTrackingUrl)
            .where(DeliverableTrackingUrl.deliverable_id == deliverable_id)
            .order_by(DeliverableTrackingUrl.display_order)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def add_tracking_urls(self, rows: list[DeliverableTrackingUrl]) -> None:
        self._session.add_all(rows)
        await self._session.flush()
