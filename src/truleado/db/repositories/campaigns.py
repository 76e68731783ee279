from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import Campaign, CampaignAttachment, CampaignUser
from truleado.rbac.types import CampaignRole


class CampaignRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, campaign_id: uuid.UUID, *, for_update: bool = False) -> Campaign | None:
        return await self._session.get(Campaign, campaign_id, with_for_update=for_update)

    async def add(self, campaign: Campaign) -> Campaign:
        self._session.add(campaign)
        await self._session.flush()
        return campaign

    async def list_for_project(self, project_id: uuid.UUID) -> list[Campaign]:
        stmt = (
            select(Campaign).where(Campaign.project_id == project_id).order_by(Campaign.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    # --- assignments --------------------------------------------------------

    async def assignment(self, campaign_id: uuid.UUID, user_id: uuid.UUID) -> CampaignUser | None:
        stmt = select(CampaignUser).where(
            CampaignUser.campaign_id == campaign_id, CampaignUser.user_id == user_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def assignments(self, campaign_id: uuid.UUID) -> list[CampaignUser]:
        stmt = select(CampaignUser).where(CampaignUser.campaign_id == campaign_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def user_ids_with_role(
        self, campaign_id: uuid.UUID, role: CampaignRole
    ) -> list[uuid.UUID]:
        stmt = select(CampaignUser.user_id).where(
            CampaignUser.campaign_id == campaign_id, CampaignUser.role == role
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def assign(
        self, campaign_id: uuid.UUID, user_id: uuid.UUID, role: CampaignRole
    ) -> CampaignUser:
        existing = await self.assignment(campaign_id, user_id)
        if existing is not None:
            existing.role = role
            await self._session.flush()
            return existing
        row = CampaignUser(campaign_id=campaign_id, user_id=user_id, role=role)
        self._session.add(row)
        await self._session.flush()
        return row

    async def unassign(self, row: CampaignUser) -> None:
        await self._session.delete(row)
        await self._session.flush()

    # --- attachments --------------------------------------------------------

    async def get_attachment(self, attachment_id: uuid.UUID) -> CampaignAttachment | None:
        return await self._session.get(CampaignAttachment, attachment_id)

    async def add_attachment(self, attachment: CampaignAttachment) -> CampaignAttachment:
        self._session.add(attachment)
        await self._session.flush()
        return attachment

    async def remove_attachment(self, attachment: CampaignAttachment) -> None:
        await self._session.delete(attachment)
        await self._session.flush()

    async def attachments(self, campaign_id: uuid.UUID) -> list[CampaignAttachment]:
        stmt = (
            select(CampaignAttachment)
            .where(CampaignAttachment.campaign_id == campaign_id)
            .order_by(CampaignAttachment.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())
