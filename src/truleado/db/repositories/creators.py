from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import CampaignCreator, Creator


class CreatorRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, creator_id: uuid.UUID) -> Creator | None:
        return await self._session.get(Creator, creator_id)

    async def add(self, creator: Creator) -> Creator:
        self._session.add(creator)
        await self._session.flush()
        return creator

    async def list_for_agency(
        self, agency_id: uuid.UUID, *, active_only: bool = True
    ) -> list[Creator]:
        stmt = select(Creator).where(Creator.agency_id == agency_id)
        if active_only:
            stmt = stmt.where(Creator.is_active.is_(True))
        stmt = stmt.order_by(Creator.display_name)
        return list((await self._session.execute(stmt)).scalars().all())

    async def get_campaign_creator(
        self, campaign_creator_id: uuid.UUID, *, for_update: bool = False
    ) -> CampaignCreator | None:
        return await self._session.get(
            CampaignCreator, campaign_creator_id, with_for_update=for_update
        )

    async def find_campaign_creator(
        self, campaign_id: uuid.UUID, creator_id: uuid.UUID
    ) -> CampaignCreator | None:
        stmt = select(CampaignCreator).where(
            CampaignCreator.campaign_id == campaign_id, CampaignCreator.creator_id == creator_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def add_campaign_creator(self, row: CampaignCreator) -> CampaignCreator:
        self._session.add(row)
        await self._session.flush()
        return row

    async def campaign_creators(self, campaign_id: uuid.UUID) -> list[CampaignCreator]:
        stmt = (
            select(CampaignCreator)
            .where(CampaignCreator.campaign_id == campaign_id)
            .order_by(CampaignCreator.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())
