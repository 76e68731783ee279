"""
truleado.api.routers.agencies

Agency-scoped endpoints: the agency itself, its locale and email settings, members, clients,
creator roster, token balance and purchases, the caller's notifications and the activity feed.
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, Field, StrictInt
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import (
    billing_service,
    db_session,
    email_config_service,
    notification_service,
    settings_dep,
)
from truleado.api.schemas import (
    ActivityOut,
    AgencyEmailConfigOut,
    AgencyMemberOut,
    AgencyOut,
    ClientOut,
    CreatorOut,
    NotificationOut,
    TokenPurchaseOut,
)
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.rbac.types import AgencyRole
from truleado.services.activity_service import ActivityService
from truleado.services.agency_service import AgencyService
from truleado.services.billing_service import BillingService
from truleado.services.creator_service import CreatorService
from truleado.services.email_config_service import EmailConfigService
from truleado.services.notification_service import NotificationService
from truleado.settings import Settings

router = APIRouter(prefix="/v1/agencies", tags=["agencies"])


class AgencyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    billing_email: str | None = Field(default=None, max_length=320)


class LocaleRequest(BaseModel):
    currency_code: str | None = Field(default=None, min_length=3, max_length=3)
    timezone: str | None = Field(default=None, min_length=1, max_length=64)
    language_code: str | None = Field(default=None, min_length=2, max_length=16)


class EmailConfigRequest(BaseModel):
    smtp_host: str = Field(min_length=1, max_length=255)
    smtp_port: StrictInt = 587
    smtp_secure: bool = False
    smtp_username: str | None = Field(default=None, max_length=255)
    # Omit or leave empty to keep the stored password.
    smtp_password: str | None = None
    from_email: str = Field(min_length=3, max_length=320)
    from_name: str | None = Field(default=None, max_length=255)
    is_enabled: bool = True


class JoinRequest(BaseModel):
    agency_code: str = Field(min_length=1, max_length=16)


class MemberAddRequest(BaseModel):
    user_id: uuid.UUID
    role: AgencyRole


class MemberUpdateRequest(BaseModel):
    role: AgencyRole | None = None
    is_active: bool | None = None


class ClientCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    account_manager_id: uuid.UUID


class CreatorCreateRequest(BaseModel):
    display_name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    instagram_handle: str | None = Field(default=None, max_length=128)
    youtube_handle: str | None = Field(default=None, max_length=128)
    tiktok_handle: str | None = Field(default=None, max_length=128)
    notes: str | None = None
    rates: dict[str, Any] | None = None


class TokenBalanceResponse(BaseModel):
    agency_id: uuid.UUID
    token_balance: int


class TokenPurchaseRequest(BaseModel):
    tokens: StrictInt


class CheckoutResponse(BaseModel):
    purchase_id: uuid.UUID
    order_id: str
    amount_minor: int
    currency: str
    key_id: str


@router.post("", response_model=AgencyOut, status_code=201)
async def create_agency(
    body: AgencyCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyOut:
    agency = await AgencyService(session).create_agency(
        actor, name=body.name, billing_email=body.billing_email
    )
    return AgencyOut.model_validate(agency)


@router.post("/join", response_model=AgencyOut)
async def join_agency(
    body: JoinRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyOut:
    agency = await AgencyService(session).join_agency_by_code(actor, agency_code=body.agency_code)
    return AgencyOut.model_validate(agency)


@router.get("/{agency_id}", response_model=AgencyOut)
async def get_agency(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyOut:
    return AgencyOut.model_validate(await AgencyService(session).get_agency(actor, agency_id))


@router.patch("/{agency_id}/locale", response_model=AgencyOut)
async def update_locale(
    agency_id: uuid.UUID,
    body: LocaleRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyOut:
    agency = await AgencyService(session).update_locale(actor, agency_id, **body.model_dump())
    return AgencyOut.model_validate(agency)


# --- email delivery settings ------------------------------------------------


@router.get("/{agency_id}/email-config", response_model=AgencyEmailConfigOut | None)
async def get_email_config(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: EmailConfigService = Depends(email_config_service),
) -> AgencyEmailConfigOut | None:
    config = await svc.get_config(actor, agency_id)
    return AgencyEmailConfigOut.model_validate(config) if config is not None else None


@router.put("/{agency_id}/email-config", response_model=AgencyEmailConfigOut)
async def save_email_config(
    agency_id: uuid.UUID,
    body: EmailConfigRequest,
    actor: Actor = Depends(get_actor),
    svc: EmailConfigService = Depends(email_config_service),
) -> AgencyEmailConfigOut:
    config = await svc.save_config(actor, agency_id, **body.model_dump())
    return AgencyEmailConfigOut.model_validate(config)


@router.delete("/{agency_id}/email-config", status_code=204)
async def delete_email_config(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: EmailConfigService = Depends(email_config_service),
) -> Response:
    await svc.delete_config(actor, agency_id)
    return Response(status_code=204)


# --- members ----------------------------------------------------------------


@router.get("/{agency_id}/members", response_model=list[AgencyMemberOut])
async def list_members(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[AgencyMemberOut]:
    members = await AgencyService(session).list_members(actor, agency_id)
    return [AgencyMemberOut.model_validate(m) for m in members]


@router.post("/{agency_id}/members", response_model=AgencyMemberOut, status_code=201)
async def add_member(
    agency_id: uuid.UUID,
    body: MemberAddRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyMemberOut:
    member = await AgencyService(session).add_agency_member(
        actor, agency_id, user_id=body.user_id, role=body.role
    )
    return AgencyMemberOut.model_validate(member)


@router.patch("/{agency_id}/members/{user_id}", response_model=AgencyMemberOut)
async def update_member(
    agency_id: uuid.UUID,
    user_id: uuid.UUID,
    body: MemberUpdateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> AgencyMemberOut:
    member = await AgencyService(session).set_member_role(
        actor, agency_id, user_id=user_id, role=body.role, is_active=body.is_active
    )
    return AgencyMemberOut.model_validate(member)


# --- clients ----------------------------------------------------------------


@router.get("/{agency_id}/clients", response_model=list[ClientOut])
async def list_clients(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[ClientOut]:
    clients = await AgencyService(session).list_clients(actor, agency_id)
    return [ClientOut.model_validate(c) for c in clients]


@router.post("/{agency_id}/clients", response_model=ClientOut, status_code=201)
async def create_client(
    agency_id: uuid.UUID,
    body: ClientCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ClientOut:
    client = await AgencyService(session).create_client(
        actor, agency_id, name=body.name, account_manager_id=body.account_manager_id
    )
    return ClientOut.model_validate(client)


# --- creator roster ---------------------------------------------------------


@router.get("/{agency_id}/creators", response_model=list[CreatorOut])
async def list_creators(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> list[CreatorOut]:
    creators = await CreatorService(session, settings=settings).list_creators(actor, agency_id)
    return [CreatorOut.model_validate(c) for c in creators]


@router.post("/{agency_id}/creators", response_model=CreatorOut, status_code=201)
async def add_creator(
    agency_id: uuid.UUID,
    body: CreatorCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
) -> CreatorOut:
    creator = await CreatorService(session, settings=settings).add_creator(
        actor, agency_id, **body.model_dump()
    )
    return CreatorOut.model_validate(creator)


# --- tokens -----------------------------------------------------------------


@router.get("/{agency_id}/tokens", response_model=TokenBalanceResponse)
async def token_balance(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: BillingService = Depends(billing_service),
) -> TokenBalanceResponse:
    balance = await svc.token_balance(actor, agency_id)
    return TokenBalanceResponse(agency_id=agency_id, token_balance=balance)


@router.get("/{agency_id}/token-purchases", response_model=list[TokenPurchaseOut])
async def list_token_purchases(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: BillingService = Depends(billing_service),
) -> list[TokenPurchaseOut]:
    return [TokenPurchaseOut.model_validate(p) for p in await svc.list_purchases(actor, agency_id)]


@router.post("/{agency_id}/token-purchases", response_model=CheckoutResponse, status_code=201)
async def create_token_purchase(
    agency_id: uuid.UUID,
    body: TokenPurchaseRequest,
    actor: Actor = Depends(get_actor),
    svc: BillingService = Depends(billing_service),
) -> CheckoutResponse:
    order = await svc.create_token_purchase(actor, agency_id, tokens=body.tokens)
    return CheckoutResponse(
        purchase_id=order.purchase.id,
        order_id=order.order_id,
        amount_minor=order.amount_minor,
        currency=order.currency,
        key_id=order.key_id,
    )


# --- notifications and activity ---------------------------------------------


@router.get("/{agency_id}/notifications", response_model=list[NotificationOut])
async def list_notifications(
    agency_id: uuid.UUID,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    svc: NotificationService = Depends(notification_service),
) -> list[NotificationOut]:
    rows = await svc.list_notifications(actor, agency_id, unread_only=unread_only, limit=limit)
    return [NotificationOut.model_validate(n) for n in rows]


@router.post("/{agency_id}/notifications/read-all")
async def mark_all_notifications_read(
    agency_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: NotificationService = Depends(notification_service),
) -> dict[str, int]:
    return {"updated": await svc.mark_all_read(actor, agency_id)}


@router.get("/{agency_id}/activity", response_model=list[ActivityOut])
async def agency_activity(
    agency_id: uuid.UUID,
    limit: int = Query(default=200, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[ActivityOut]:
    entries = await ActivityService(session).for_agency(actor, agency_id, limit=limit)
    return [ActivityOut.model_validate(e) for e in entries]
