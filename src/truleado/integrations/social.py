"""
truleado.integrations.social

Client for the social data provider used by pre-campaign analytics and creator fetch jobs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from truleado.settings import Settings

SUPPORTED_PLATFORMS = ("instagram", "youtube", "tiktok")
# Background profile fetches are only offered where the provider scrapes profiles.
SOCIAL_FETCH_PLATFORMS = ("instagram", "youtube")


@dataclass(frozen=True, slots=True)
class ProfileMetrics:
    platform: str
    handle: str
    followers: int | None = None
    engagement_rate: float | None = None
    avg_views: int | None = None
    avg_likes: int | None = None
    avg_comments: int | None = None
    audience_demographics: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, *, platform: str, handle: str, data: dict[str, Any]) -> ProfileMetrics:
        return cls(
            platform=platform,
            handle=handle,
            followers=data.get("followers"),
            engagement_rate=data.get("engagement_rate"),
            avg_views=data.get("avg_views"),
            avg_likes=data.get("avg_likes"),
            avg_comments=data.get("avg_comments"),
            audience_demographics=data.get("audience_demographics") or {},
            raw=data,
        )


class SocialDataProvider:
    source = "social_provider"

    def __init__(self, *, settings: Settings, http: httpx.AsyncClient) -> None:
        self._settings = settings
        self._http = http

    async def fetch_profile(
        self, *, platform: str, handle: str, job_type: str | None = None
    ) -> ProfileMetrics:
        body = {"platform": platform, "handle": handle}
        if job_type:
            body["job_type"] = job_type
        r = await self._http.post(
            f"{self._settings.analytics_provider_url.rstrip('/')}/profiles/fetch",
            headers={"Authorization": f"Bearer {self._settings.analytics_api_key}"},
            json=body,
        )
        r.raise_for_status()
        return ProfileMetrics.from_payload(platform=platform, handle=handle, data=r.json())
