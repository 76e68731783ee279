"""
truleado.api.routers.creators

Creator rates, campaign invitations, paid analytics and social fetches, creator payments.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import analytics_service, db_session, settings_dep
from truleado.api.schemas import (
    CampaignCreatorOut,
    CreatorOut,
    PaymentOut,
    SnapshotOut,
    SocialFetchJobOut,
)
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.analytics_service import AnalyticsService
from truleado.services.creator_service import CreatorService
from truleado.services.payment_service import PaymentService
from truleado.settings import Settings

router = APIRouter(prefix="/v1", tags=["creators"])


class RatesRequest(BaseModel):
    rates: dict[str, Any]


class InviteRequest(BaseModel):
    creator_id: uuid.UUID
    rate_amount: Decimal | None = None
    rate_currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None


class AnalyticsRequest(BaseModel):
    platform: str = Field(min_length=1, max_length=32)


class SocialFetchRequest(BaseModel):
    platform: str = Field(min_length=1, max_length=32)
    job_type: str = "basic_scrape"


class PaymentCreateRequest(BaseModel):
    amount: Decimal
    payment_type: str
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None


class MarkPaidRequest(BaseModel):
    payment_reference: str | None = Field(default=None, max_length=255)
    payment_date: datetime | None = None


@router.put("/creators/{creator_id}/rates", response_model=CreatorOut)
async def update_creator_rates(
    creator_id: uuid.UUID,
    body: RatesRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CreatorOut:
    creator = await CreatorService(session, settings=settings).update_creator_rates(
        actor, creator_id, rates=body.rates
    )
    return CreatorOut.model_validate(creator)


# --- campaign invitations ---------------------------------------------------


@router.get("/campaigns/{campaign_id}/creators", response_model=list[CampaignCreatorOut])
async def list_campaign_creators(
    campaign_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> list[CampaignCreatorOut]:
    rows = await CreatorService(session, settings=settings).list_campaign_creators(
        actor, campaign_id
    )
    return [CampaignCreatorOut.model_validate(r) for r in rows]


@router.post(
    "/campaigns/{campaign_id}/creators", response_model=CampaignCreatorOut, status_code=201
)
async def invite_creator(
    campaign_id: uuid.UUID,
    body: InviteRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CampaignCreatorOut:
    row = await CreatorService(session, settings=settings).invite_creator(
        actor, campaign_id, **body.model_dump()
    )
    return CampaignCreatorOut.model_validate(row)


@router.post("/campaign-creators/{campaign_creator_id}/accept", response_model=CampaignCreatorOut)
async def accept_invite(
    campaign_creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CampaignCreatorOut:
    svc = CreatorService(session, settings=settings)
    return CampaignCreatorOut.model_validate(await svc.accept_invite(actor, campaign_creator_id))


@router.post(
    "/campaign-creators/{campaign_creator_id}/decline", response_model=CampaignCreatorOut
)
async def decline_invite(
    campaign_creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CampaignCreatorOut:
    svc = CreatorService(session, settings=settings)
    return CampaignCreatorOut.model_validate(await svc.decline_invite(actor, campaign_creator_id))


@router.post("/campaign-creators/{campaign_creator_id}/remove", response_model=CampaignCreatorOut)
async def remove_from_campaign(
    campaign_creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CampaignCreatorOut:
    svc = CreatorService(session, settings=settings)
    row = await svc.remove_from_campaign(actor, campaign_creator_id)
    return CampaignCreatorOut.model_validate(row)


# --- analytics --------------------------------------------------------------


@router.post(
    "/campaign-creators/{campaign_creator_id}/analytics",
    response_model=SnapshotOut,
    status_code=201,
)
async def fetch_analytics(
    campaign_creator_id: uuid.UUID,
    body: AnalyticsRequest,
    actor: Actor = Depends(get_actor),
    svc: AnalyticsService = Depends(analytics_service),
) -> SnapshotOut:
    snap = await svc.fetch_pre_campaign_analytics(
        actor, campaign_creator_id, platform=body.platform
    )
    return SnapshotOut.model_validate(snap)


@router.get(
    "/campaign-creators/{campaign_creator_id}/analytics", response_model=list[SnapshotOut]
)
async def list_snapshots(
    campaign_creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: AnalyticsService = Depends(analytics_service),
) -> list[SnapshotOut]:
    rows = await svc.list_snapshots(actor, campaign_creator_id)
    return [SnapshotOut.model_validate(s) for s in rows]


@router.post(
    "/creators/{creator_id}/social-fetch", response_model=SocialFetchJobOut, status_code=201
)
async def trigger_social_fetch(
    creator_id: uuid.UUID,
    body: SocialFetchRequest,
    actor: Actor = Depends(get_actor),
    svc: AnalyticsService = Depends(analytics_service),
) -> SocialFetchJobOut:
    job = await svc.trigger_social_fetch(
        actor, creator_id, platform=body.platform, job_type=body.job_type
    )
    return SocialFetchJobOut.model_validate(job)


@router.get("/creators/{creator_id}/social-fetch-jobs", response_model=list[SocialFetchJobOut])
async def list_social_fetch_jobs(
    creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: AnalyticsService = Depends(analytics_service),
) -> list[SocialFetchJobOut]:
    rows = await svc.list_social_fetch_jobs(actor, creator_id)
    return [SocialFetchJobOut.model_validate(j) for j in rows]


# --- payments ---------------------------------------------------------------


@router.post(
    "/campaign-creators/{campaign_creator_id}/payments",
    response_model=PaymentOut,
    status_code=201,
)
async def create_payment(
    campaign_creator_id: uuid.UUID,
    body: PaymentCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> PaymentOut:
    payment = await PaymentService(session, settings=settings).create_payment(
        actor, campaign_creator_id, **body.model_dump()
    )
    return PaymentOut.model_validate(payment)


@router.get(
    "/campaign-creators/{campaign_creator_id}/payments", response_model=list[PaymentOut]
)
async def list_payments(
    campaign_creator_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> list[PaymentOut]:
    rows = await PaymentService(session, settings=settings).list_payments(
        actor, campaign_creator_id
    )
    return [PaymentOut.model_validate(p) for p in rows]


@router.post("/payments/{payment_id}/mark-paid", response_model=PaymentOut)
async def mark_paid(
    payment_id: uuid.UUID,
    body: MarkPaidRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> PaymentOut:
    payment = await PaymentService(session, settings=settings).mark_paid(
        actor,
        payment_id,
        payment_reference=body.payment_reference,
        payment_date=body.payment_date,
    )
    return PaymentOut.model_validate(payment)
