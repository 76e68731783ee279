"""
tests.conftest

Shared fixtures: a per-test SQLite database, a seeded agency tenant and an API
client wired to the same database.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass

import httpx
import pytest
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from truleado.api.app import create_app
from truleado.auth.jwt import JwtConfig, issue_token
from truleado.auth.models import Actor
from truleado.db.init_db import init_db
from truleado.db.models import (
    Agency,
    AgencyUser,
    AuthIdentity,
    Campaign,
    CampaignType,
    CampaignUser,
    Client,
    Contact,
    Project,
    User,
)
from truleado.db.session import create_engine, create_sessionmaker
from truleado.rbac.types import AgencyRole, CampaignRole
from truleado.settings import Settings
from truleado.workflow.campaign import CampaignStatus


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        analytics_provider_url="https://social.test",
        analytics_api_key="social-key",
        analytics_tokens_per_fetch=1,
        notify_api_url="https://notify.test",
        notify_api_key="",
        payment_gateway_url="https://pay.test",
        payment_key_id="key_test",
        payment_key_secret="pay-secret",
        token_price_minor_units=100,
        default_currency="INR",
    )


@pytest.fixture
async def engine(settings: Settings) -> AsyncIterator[AsyncEngine]:
    engine = create_engine(settings)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with create_sessionmaker(engine)() as s:
        yield s


# --- seed helpers -----------------------------------------------------------


async def make_user(session: AsyncSession, name: str, *, email: str | None = None) -> User:
    user = User(email=email or f"{name}@example.com", full_name=name.title())
    session.add(user)
    await session.flush()
    session.add(
        AuthIdentity(
            user_id=user.id,
            provider="firebase_email",
            provider_uid=f"sub-{name}",
            email=user.email,
            email_verified=True,
        )
    )
    await session.flush()
    return user


def actor_of(user: User) -> Actor:
    # Access checks read agency_users, so memberships are not needed on the actor.
    return Actor(user_id=user.id, subject=f"sub-{user.full_name.lower()}", email=user.email)


async def add_member(
    session: AsyncSession, agency: Agency, user: User, role: AgencyRole
) -> AgencyUser:
    member = AgencyUser(agency_id=agency.id, user_id=user.id, role=role, is_active=True)
    session.add(member)
    await session.flush()
    return member


@dataclass
class Tenant:
    agency: Agency
    client: Client
    project: Project
    campaign: Campaign
    contact: Contact
    admin: Actor
    manager: Actor  # account manager who owns the client
    other_manager: Actor  # account manager of the same agency, not the owner
    operator: Actor  # assigned to the campaign as operator
    floating_operator: Actor  # agency operator with no campaign assignment
    approver: Actor  # internal approver, assigned to the campaign as approver
    outsider: Actor  # no membership anywhere
    brand: Actor  # client approver contact linked to a user


@pytest.fixture
async def tenant(session: AsyncSession) -> Tenant:
    agency = Agency(name="Acme Agency", agency_code="ACME1234", token_balance=5)
    session.add(agency)
    await session.flush()

    users = {
        name: await make_user(session, name)
        for name in (
            "admin",
            "manager",
            "othermanager",
            "operator",
            "floater",
            "approver",
            "outsider",
            "brand",
        )
    }
    await add_member(session, agency, users["admin"], AgencyRole.agency_admin)
    await add_member(session, agency, users["manager"], AgencyRole.account_manager)
    await add_member(session, agency, users["othermanager"], AgencyRole.account_manager)
    await add_member(session, agency, users["operator"], AgencyRole.operator)
    await add_member(session, agency, users["floater"], AgencyRole.operator)
    await add_member(session, agency, users["approver"], AgencyRole.internal_approver)

    client = Client(agency_id=agency.id, name="Brandco", account_manager_id=users["manager"].id)
    session.add(client)
    await session.flush()

    contact = Contact(
        client_id=client.id,
        first_name="Bea",
        last_name="Brand",
        email=users["brand"].email,
        is_client_approver=True,
        user_id=users["brand"].id,
    )
    project = Project(client_id=client.id, name="Spring Launch")
    session.add_all([contact, project])
    await session.flush()

    campaign = Campaign(
        project_id=project.id,
        name="Launch Reels",
        campaign_type=CampaignType.influencer,
        status=CampaignStatus.active,
        created_by=users["manager"].id,
    )
    session.add(campaign)
    await session.flush()
    session.add_all(
        [
            CampaignUser(
                campaign_id=campaign.id, user_id=users["operator"].id, role=CampaignRole.operator
            ),
            CampaignUser(
                campaign_id=campaign.id, user_id=users["approver"].id, role=CampaignRole.approver
            ),
        ]
    )
    await session.commit()

    return Tenant(
        agency=agency,
        client=client,
        project=project,
        campaign=campaign,
        contact=contact,
        admin=actor_of(users["admin"]),
        manager=actor_of(users["manager"]),
        other_manager=actor_of(users["othermanager"]),
        operator=actor_of(users["operator"]),
        floating_operator=actor_of(users["floater"]),
        approver=actor_of(users["approver"]),
        outsider=actor_of(users["outsider"]),
        brand=actor_of(users["brand"]),
    )


# --- API --------------------------------------------------------------------


@pytest.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx ASGITransport does not run lifespan events; drive them explicitly.
    await app.router.startup()
    try:
        yield app
    finally:
        await app.router.shutdown()


@pytest.fixture
async def api(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def bearer(settings: Settings) -> Callable[..., dict[str, str]]:
    cfg = JwtConfig.from_settings(settings)

    def _headers(subject: str, *, email: str | None = None, name: str | None = None) -> dict:
        token = issue_token(cfg=cfg, subject=subject, email=email, name=name)
        return {"Authorization": f"Bearer {token}"}

    return _headers


async def swap_http(app: FastAPI, handler: Callable[[httpx.Request], httpx.Response]) -> None:
    """Route the app's outbound calls through `handler` instead of the network."""

    await app.state.http.aclose()
    app.state.http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
