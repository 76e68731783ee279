"""
truleado.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide settings, DB sessions and the shared outbound HTTP client.
- Build the integration clients and the request-scoped services that use them.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from truleado.integrations.notify import NotificationDelivery
from truleado.integrations.payments import PaymentGateway
from truleado.integrations.social import SocialDataProvider
from truleado.services.analytics_service import AnalyticsService
from truleado.services.billing_service import BillingService
from truleado.services.campaign_service import CampaignService
from truleado.services.deliverable_service import DeliverableService
from truleado.services.email_config_service import EmailConfigService
from truleado.services.notification_service import NotificationService
from truleado.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # Apps built with explicit settings (tests) carry them on app.state.
    return getattr(request.app.state, "settings", None) or get_settings()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Request-scoped session; services commit explicitly.
    async with session_factory() as session:
        yield session


def http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http  # type: ignore[attr-defined]


def notification_delivery(
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client),
) -> NotificationDelivery:
    return NotificationDelivery(settings=settings, http=http)


def social_provider(
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client),
) -> SocialDataProvider:
    return SocialDataProvider(settings=settings, http=http)


def payment_gateway(
    settings: Settings = Depends(settings_dep),
    http: httpx.AsyncClient = Depends(http_client),
) -> PaymentGateway:
    return PaymentGateway(settings=settings, http=http)


def notification_service(
    session: AsyncSession = Depends(db_session),
    delivery: NotificationDelivery = Depends(notification_delivery),
) -> NotificationService:
    return NotificationService(session, delivery=delivery)


def email_config_service(
    session: AsyncSession = Depends(db_session),
    delivery: NotificationDelivery = Depends(notification_delivery),
) -> EmailConfigService:
    return EmailConfigService(session, delivery=delivery)


def campaign_service(
    session: AsyncSession = Depends(db_session),
    notifications: NotificationService = Depends(notification_service),
) -> CampaignService:
    # Shares the request session with its notification service so both commit together.
    return CampaignService(session, notifications=notifications)


def deliverable_service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    notifications: NotificationService = Depends(notification_service),
) -> DeliverableService:
    return DeliverableService(session, settings=settings, notifications=notifications)


def analytics_service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    provider: SocialDataProvider = Depends(social_provider),
) -> AnalyticsService:
    return AnalyticsService(session, settings=settings, provider=provider)


def billing_service(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    gateway: PaymentGateway = Depends(payment_gateway),
) -> BillingService:
    return BillingService(session, settings=settings, gateway=gateway)


# --- Module Notes -----------------------------------------------------------
# FastAPI caches dependencies per request, so every factory above receives the
# same AsyncSession instance.
