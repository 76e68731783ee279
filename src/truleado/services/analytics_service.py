"""
truleado.services.analytics_service

Token-metered analytics.

Pre-campaign flow:
1. Authorize `fetch_analytics` on the campaign.
2. Deduct tokens from the agency balance and commit.
3. Call the social data provider.
4. Store an immutable snapshot; on any failure after step 2 the tokens are refunded.

Creator social fetches follow the same spend/refund path, authorized at agency level,
and record their progress on a `SocialFetchJob` row instead of a snapshot.
"""

from __future__ import annotations

import uuid

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import (
    AnalyticsSnapshot,
    SocialFetchJob,
    SocialFetchJobStatus,
    SocialFetchJobType,
    utcnow,
)
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.billing import SnapshotRepo, SocialFetchJobRepo
from truleado.db.repositories.creators import CreatorRepo
from truleado.errors import (
    ExternalServiceError,
    InsufficientTokensError,
    NotFoundError,
    ValidationFailed,
)
from truleado.integrations.social import (
    SOCIAL_FETCH_PLATFORMS,
    SUPPORTED_PLATFORMS,
    SocialDataProvider,
)
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import Permission
from truleado.settings import Settings

log = get_logger(__name__)

PRE_CAMPAIGN = "pre_campaign"


def _platform(value: str | None, allowed: tuple[str, ...]) -> str:
    platform = (value or "").strip().lower()
    if platform not in allowed:
        raise ValidationFailed(
            f"Invalid platform: {platform}. Must be one of: {', '.join(allowed)}",
            field="platform",
        )
    return platform


class AnalyticsService:
    def __init__(
        self, session: AsyncSession, *, settings: Settings, provider: SocialDataProvider
    ) -> None:
        self._session = session
        self._settings = settings
        self._provider = provider
        self._agencies = AgencyRepo(session)
        self._creators = CreatorRepo(session)
        self._snapshots = SnapshotRepo(session)
        self._jobs = SocialFetchJobRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    # --- token accounting ---------------------------------------------------

    async def _spend(self, agency_id: uuid.UUID, cost: int) -> int:
        balance = await self._agencies.deduct_tokens(agency_id, cost)
        if balance is None:
            available = await self._agencies.token_balance(agency_id)
            raise InsufficientTokensError(
                f"Insufficient tokens. Required: {cost}, Available: {available}",
                required=cost,
                available=available,
            )
        return balance

    async def _refund(self, agency_id: uuid.UUID, cost: int) -> int:
        # Runs after a rollback, so the credit is the only pending change.
        balance = await self._agencies.credit_tokens(agency_id, cost)
        await self._session.commit()
        return balance

    # --- pre-campaign snapshots ---------------------------------------------

    async def fetch_pre_campaign_analytics(
        self, actor: Actor, campaign_creator_id: uuid.UUID, *, platform: str
    ) -> AnalyticsSnapshot:
        platform = _platform(platform, SUPPORTED_PLATFORMS)

        cc = await self._creators.get_campaign_creator(campaign_creator_id)
        if cc is None:
            raise NotFoundError("CampaignCreator", campaign_creator_id)
        scope = await self._rbac.require_campaign_access(
            actor, cc.campaign_id, Permission.fetch_analytics
        )
        creator = await self._creators.get(cc.creator_id)
        if creator is None:
            raise NotFoundError("Creator", cc.creator_id)
        handle = getattr(creator, f"{platform}_handle")
        if not handle:
            raise ValidationFailed(
                f"Creator does not have a {platform} handle configured", field="platform"
            )

        cost = self._settings.analytics_tokens_per_fetch
        balance = await self._spend(scope.agency_id, cost)
        # Tokens are taken before the provider call so concurrent fetches cannot overspend.
        await self._session.commit()

        try:
            metrics = await self._provider.fetch_profile(platform=platform, handle=handle)
            snapshot = await self._snapshots.add(
                AnalyticsSnapshot(
                    campaign_creator_id=campaign_creator_id,
                    analytics_type=PRE_CAMPAIGN,
                    platform=platform,
                    followers=metrics.followers,
                    engagement_rate=metrics.engagement_rate,
                    avg_views=metrics.avg_views,
                    avg_likes=metrics.avg_likes,
                    avg_comments=metrics.avg_comments,
                    audience_demographics=metrics.audience_demographics,
                    raw_data=metrics.raw,
                    source=self._provider.source,
                    tokens_consumed=cost,
                )
            )
            await self._activity.add(
                agency_id=scope.agency_id,
                entity_type="creator_analytics_snapshot",
                entity_id=snapshot.id,
                action="fetched",
                actor_id=actor.user_id,
                metadata={
                    "campaign_creator_id": str(campaign_creator_id),
                    "platform": platform,
                    "tokens_consumed": cost,
                    "new_balance": balance,
                },
            )
            await self._session.commit()
        except Exception as e:
            await self._session.rollback()
            refunded = await self._refund(scope.agency_id, cost)
            log.warning(
                "analytics_fetch_refunded",
                campaign_creator_id=campaign_creator_id,
                platform=platform,
                balance=refunded,
                error=str(e),
            )
            if isinstance(e, httpx.HTTPError):
                raise ExternalServiceError("analytics provider") from e
            raise

        log.info(
            "analytics_fetched",
            campaign_creator_id=campaign_creator_id,
            platform=platform,
            balance=balance,
        )
        return snapshot

    async def list_snapshots(
        self, actor: Actor, campaign_creator_id: uuid.UUID
    ) -> list[AnalyticsSnapshot]:
        cc = await self._creators.get_campaign_creator(campaign_creator_id)
        if cc is None:
            raise NotFoundError("CampaignCreator", campaign_creator_id)
        await self._rbac.require_campaign_access(actor, cc.campaign_id, Permission.view_analytics)
        return await self._snapshots.list_for_campaign_creator(campaign_creator_id)

    # --- creator social fetches ---------------------------------------------

    async def trigger_social_fetch(
        self,
        actor: Actor,
        creator_id: uuid.UUID,
        *,
        platform: str,
        job_type: str = SocialFetchJobType.basic_scrape.value,
    ) -> SocialFetchJob:
        """
        Fetch a roster creator's public profile outside any campaign.

        The job row is committed together with the token deduction; a failed fetch
        marks the job failed and refunds the tokens. Provider HTTP errors surface as
        `ExternalServiceError`; the failed job stays listed for the creator.
        """

        platform = _platform(platform, SOCIAL_FETCH_PLATFORMS)
        try:
            kind = SocialFetchJobType((job_type or "").strip().lower())
        except ValueError as e:
            raise ValidationFailed(f"Invalid job type: {job_type}", field="job_type") from e

        creator = await self._creators.get(creator_id)
        if creator is None:
            raise NotFoundError("Creator", creator_id)
        agency_id = creator.agency_id
        await self._rbac.require_agency_permission(actor, agency_id, Permission.fetch_analytics)
        handle = getattr(creator, f"{platform}_handle")
        if not handle:
            raise ValidationFailed(
                f"Creator does not have a {platform} handle configured", field="platform"
            )

        cost = self._settings.analytics_tokens_per_fetch
        balance = await self._spend(agency_id, cost)
        job = await self._jobs.add(
            SocialFetchJob(
                creator_id=creator_id,
                agency_id=agency_id,
                platform=platform,
                job_type=kind,
                status=SocialFetchJobStatus.processing,
                tokens_consumed=cost,
                triggered_by=actor.user_id,
                started_at=utcnow(),
            )
        )
        job_id = job.id
        await self._activity.add(
            agency_id=agency_id,
            entity_type="social_fetch_job",
            entity_id=job_id,
            action="triggered",
            actor_id=actor.user_id,
            metadata={
                "creator_id": str(creator_id),
                "platform": platform,
                "job_type": kind.value,
                "tokens_consumed": cost,
                "new_balance": balance,
            },
        )
        await self._session.commit()

        try:
            metrics = await self._provider.fetch_profile(
                platform=platform, handle=handle, job_type=kind.value
            )
            job.status = SocialFetchJobStatus.completed
            job.result = metrics.raw
            job.completed_at = utcnow()
            await self._session.commit()
        except Exception as e:
            await self._session.rollback()
            failed = await self._jobs.get(job_id)
            if failed is not None:
                failed.status = SocialFetchJobStatus.failed
                failed.error_message = str(e)[:1000]
                failed.tokens_consumed = 0
                failed.completed_at = utcnow()
            refunded = await self._refund(agency_id, cost)
            log.warning(
                "social_fetch_refunded",
                job_id=job_id,
                creator_id=creator_id,
                platform=platform,
                balance=refunded,
                error=str(e),
            )
            if isinstance(e, httpx.HTTPError):
                raise ExternalServiceError("analytics provider") from e
            raise

        log.info(
            "social_fetch_completed",
            job_id=job_id,
            creator_id=creator_id,
            platform=platform,
            job_type=kind.value,
            balance=balance,
        )
        return job

    async def list_social_fetch_jobs(
        self, actor: Actor, creator_id: uuid.UUID
    ) -> list[SocialFetchJob]:
        creator = await self._creators.get(creator_id)
        if creator is None:
            raise NotFoundError("Creator", creator_id)
        await self._rbac.require_agency_permission(
            actor, creator.agency_id, Permission.view_analytics
        )
        return await self._jobs.list_for_creator(creator_id)
