"""
truleado.db.repositories.billing

Creator payments, analytics snapshots, social fetch jobs and token purchases.
"""

from __future__ import annotations

import uuid

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import AnalyticsSnapshot, Payment, SocialFetchJob, TokenPurchase


class PaymentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, payment_id: uuid.UUID, *, for_update: bool = False) -> Payment | None:
        return await self._session.get(Payment, payment_id, with_for_update=for_update)

    async def add(self, payment: Payment) -> Payment:
        self._session.add(payment)
        await self._session.flush()
        return payment

    async def list_for_campaign_creator(self, campaign_creator_id: uuid.UUID) -> list[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.campaign_creator_id == campaign_creator_id)
            .order_by(Payment.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())


class SnapshotRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, snapshot: AnalyticsSnapshot) -> AnalyticsSnapshot:
        # Snapshots are immutable once written.
        self._session.add(snapshot)
        await self._session.flush()
        return snapshot

    async def list_for_campaign_creator(
        self, campaign_creator_id: uuid.UUID
    ) -> list[AnalyticsSnapshot]:
        stmt = (
            select(AnalyticsSnapshot)
            .where(AnalyticsSnapshot.campaign_creator_id == campaign_creator_id)
            .order_by(desc(AnalyticsSnapshot.created_at))
        )
        return list((await self._session.execute(stmt)).scalars().all())


class SocialFetchJobRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, job_id: uuid.UUID) -> SocialFetchJob | None:
        return await self._session.get(SocialFetchJob, job_id)

    async def add(self, job: SocialFetchJob) -> SocialFetchJob:
        self._session.add(job)
        await self._session.flush()
        return job

    async def list_for_creator(self, creator_id: uuid.UUID) -> list[SocialFetchJob]:
        stmt = (
            select(SocialFetchJob)
            .where(SocialFetchJob.creator_id == creator_id)
            .order_by(desc(SocialFetchJob.created_at))
        )
        return list((await self._session.execute(stmt)).scalars().all())


class TokenPurchaseRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, purchase: TokenPurchase) -> TokenPurchase:
        self._session.add(purchase)
        await self._session.flush()
        return purchase

    async def get_by_order(
        self, order_id: str, *, for_update: bool = False
    ) -> TokenPurchase | None:
        stmt = select(TokenPurchase).where(TokenPurchase.gateway_order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def list_for_agency(self, agency_id: uuid.UUID) -> list[TokenPurchase]:
        stmt = (
            select(TokenPurchase)
            .where(TokenPurchase.agency_id == agency_id)
            .order_by(desc(TokenPurchase.created_at))
        )
        return list((await self._session.execute(stmt)).scalars().all())
