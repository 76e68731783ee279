from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest
from conftest import Tenant
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import (
    CampaignCreator,
    Creator,
    SocialFetchJobStatus,
    SocialFetchJobType,
)
from truleado.db.repositories.agencies import AgencyRepo
from truleado.errors import (
    ExternalServiceError,
    ForbiddenError,
    InsufficientTokensError,
    ValidationFailed,
)
from truleado.integrations.social import SocialDataProvider
from truleado.services.analytics_service import AnalyticsService
from truleado.services.creator_service import CreatorService
from truleado.settings import Settings

PROFILE = {
    "followers": 48200,
    "engagement_rate": 3.4,
    "avg_views": 12000,
    "avg_likes": 1500,
    "avg_comments": 40,
    "audience_demographics": {"IN": 0.71},
}


def _service(
    session: AsyncSession, settings: Settings, handler: Callable[[httpx.Request], httpx.Response]
) -> AnalyticsService:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = SocialDataProvider(settings=settings, http=http)
    return AnalyticsService(session, settings=settings, provider=provider)


async def _engagement(session: AsyncSession, tenant: Tenant) -> CampaignCreator:
    creators = CreatorService(session)
    creator = await creators.add_creator(
        tenant.operator, tenant.agency.id, display_name="Kay Creates", instagram_handle="@kay"
    )
    return await creators.invite_creator(tenant.operator, tenant.campaign.id, creator_id=creator.id)


async def _balance(session: AsyncSession, tenant: Tenant) -> int:
    return await AgencyRepo(session).token_balance(tenant.agency.id)


@pytest.mark.asyncio
async def test_fetch_stores_snapshot_and_spends_tokens(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer social-key"
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=PROFILE)

    cc = await _engagement(session, tenant)
    svc = _service(session, settings, handler)

    snap = await svc.fetch_pre_campaign_analytics(tenant.operator, cc.id, platform="Instagram")
    assert seen == [{"platform": "instagram", "handle": "kay"}]
    assert snap.followers == 48200
    assert snap.tokens_consumed == 1
    assert snap.audience_demographics == {"IN": 0.71}
    assert await _balance(session, tenant) == 4

    listed = await svc.list_snapshots(tenant.approver, cc.id)
    assert [s.id for s in listed] == [snap.id]


@pytest.mark.asyncio
async def test_provider_failure_refunds_tokens(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    cc = await _engagement(session, tenant)
    cc_id, agency_id = cc.id, tenant.agency.id
    svc = _service(session, settings, lambda request: httpx.Response(500))

    with pytest.raises(ExternalServiceError):
        await svc.fetch_pre_campaign_analytics(tenant.operator, cc_id, platform="instagram")
    # The failed fetch rolled the session back, so read ids captured beforehand.
    assert await AgencyRepo(session).token_balance(agency_id) == 5
    assert await svc.list_snapshots(tenant.operator, cc_id) == []


@pytest.mark.asyncio
async def test_insufficient_tokens(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    cc = await _engagement(session, tenant)
    pricey = settings.model_copy(update={"analytics_tokens_per_fetch": 10})
    svc = _service(session, pricey, lambda request: httpx.Response(200, json=PROFILE))

    with pytest.raises(InsufficientTokensError) as ei:
        await svc.fetch_pre_campaign_analytics(tenant.operator, cc.id, platform="instagram")
    assert (ei.value.required, ei.value.available) == (10, 5)
    assert await _balance(session, tenant) == 5


@pytest.mark.asyncio
async def test_fetch_validation_and_access(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider must not be called")

    cc = await _engagement(session, tenant)
    svc = _service(session, settings, handler)

    with pytest.raises(ValidationFailed, match="Invalid platform"):
        await svc.fetch_pre_campaign_analytics(tenant.operator, cc.id, platform="myspace")
    with pytest.raises(ValidationFailed, match="youtube handle"):
        await svc.fetch_pre_campaign_analytics(tenant.operator, cc.id, platform="youtube")
    # Internal approvers may view analytics but not spend tokens on them.
    with pytest.raises(ForbiddenError):
        await svc.fetch_pre_campaign_analytics(tenant.approver, cc.id, platform="instagram")
    assert await _balance(session, tenant) == 5


async def _roster_creator(session: AsyncSession, tenant: Tenant) -> Creator:
    return await CreatorService(session).add_creator(
        tenant.operator,
        tenant.agency.id,
        display_name="Kay Creates",
        instagram_handle="@kay",
        youtube_handle="kaycreates",
    )


@pytest.mark.asyncio
async def test_social_fetch_completes_job(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=PROFILE)

    creator = await _roster_creator(session, tenant)
    svc = _service(session, settings, handler)

    job = await svc.trigger_social_fetch(
        tenant.operator, creator.id, platform="YouTube", job_type="enriched_profile"
    )
    assert seen == [{"platform": "youtube", "handle": "kaycreates", "job_type": "enriched_profile"}]
    assert job.status is SocialFetchJobStatus.completed
    assert job.job_type is SocialFetchJobType.enriched_profile
    assert job.tokens_consumed == 1
    assert job.result == PROFILE
    assert job.triggered_by == tenant.operator.user_id
    assert job.completed_at is not None
    assert await _balance(session, tenant) == 4

    # Internal approvers can see the job history but not start fetches.
    jobs = await svc.list_social_fetch_jobs(tenant.approver, creator.id)
    assert [j.id for j in jobs] == [job.id]
    with pytest.raises(ForbiddenError):
        await svc.trigger_social_fetch(tenant.approver, creator.id, platform="instagram")


@pytest.mark.asyncio
async def test_social_fetch_failure_marks_job_and_refunds(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    creator = await _roster_creator(session, tenant)
    creator_id, agency_id = creator.id, tenant.agency.id
    svc = _service(session, settings, lambda request: httpx.Response(502))

    with pytest.raises(ExternalServiceError):
        await svc.trigger_social_fetch(tenant.admin, creator_id, platform="instagram")
    assert await AgencyRepo(session).token_balance(agency_id) == 5

    (job,) = await svc.list_social_fetch_jobs(tenant.admin, creator_id)
    assert job.status is SocialFetchJobStatus.failed
    assert job.job_type is SocialFetchJobType.basic_scrape
    assert job.tokens_consumed == 0
    assert "502" in (job.error_message or "")


@pytest.mark.asyncio
async def test_social_fetch_validation(
    session: AsyncSession, settings: Settings, tenant: Tenant
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider must not be called")

    creator = await _roster_creator(session, tenant)
    svc = _service(session, settings, handler)

    with pytest.raises(ValidationFailed, match="Invalid platform"):
        await svc.trigger_social_fetch(tenant.admin, creator.id, platform="tiktok")
    with pytest.raises(ValidationFailed, match="Invalid job type"):
        await svc.trigger_social_fetch(
            tenant.admin, creator.id, platform="instagram", job_type="deep_dive"
        )
    with pytest.raises(ForbiddenError):
        await svc.trigger_social_fetch(tenant.outsider, creator.id, platform="instagram")

    pricey = settings.model_copy(update={"analytics_tokens_per_fetch": 6})
    with pytest.raises(InsufficientTokensError):
        await _service(session, pricey, handler).trigger_social_fetch(
            tenant.admin, creator.id, platform="instagram"
        )
    assert await _balance(session, tenant) == 5
    assert await svc.list_social_fetch_jobs(tenant.admin, creator.id) == []
