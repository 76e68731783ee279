"""
truleado.api.routers.campaigns

Campaign detail, lifecycle transitions, details/dates/brief edits, attachments
and campaign user assignments.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from truleado.api.deps import campaign_service
from truleado.api.schemas import AttachmentOut, CampaignOut, CampaignUserOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.rbac.types import CampaignRole
from truleado.services.campaign_service import CampaignService

router = APIRouter(prefix="/v1/campaigns", tags=["campaigns"])

CampaignAction = Literal["activate", "submit", "approve", "reopen", "complete", "archive"]


class DetailsUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    description: str | None = None


class DatesRequest(BaseModel):
    start_date: date | None = None
    end_date: date | None = None


class BriefRequest(BaseModel):
    brief: str


class AttachmentRequest(BaseModel):
    file_name: str = Field(min_length=1, max_length=512)
    file_url: str = Field(min_length=1)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = Field(default=None, max_length=128)


class AssignUserRequest(BaseModel):
    user_id: uuid.UUID
    role: CampaignRole


@router.get("/{campaign_id}", response_model=CampaignOut)
async def get_campaign(
    campaign_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    return CampaignOut.model_validate(await svc.get_campaign(actor, campaign_id))


@router.post("/{campaign_id}/transitions/{action}", response_model=CampaignOut)
async def transition_campaign(
    campaign_id: uuid.UUID,
    action: CampaignAction,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    handlers = {
        "activate": svc.activate,
        "submit": svc.submit_for_review,
        "approve": svc.approve,
        "reopen": svc.reopen,
        "complete": svc.complete,
        "archive": svc.archive,
    }
    return CampaignOut.model_validate(await handlers[action](actor, campaign_id))


@router.patch("/{campaign_id}", response_model=CampaignOut)
async def update_details(
    campaign_id: uuid.UUID,
    body: DetailsUpdateRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    campaign = await svc.update_details(
        actor, campaign_id, name=body.name, description=body.description
    )
    return CampaignOut.model_validate(campaign)


@router.put("/{campaign_id}/dates", response_model=CampaignOut)
async def set_dates(
    campaign_id: uuid.UUID,
    body: DatesRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    campaign = await svc.set_dates(
        actor, campaign_id, start_date=body.start_date, end_date=body.end_date
    )
    return CampaignOut.model_validate(campaign)


@router.put("/{campaign_id}/brief", response_model=CampaignOut)
async def update_brief(
    campaign_id: uuid.UUID,
    body: BriefRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    return CampaignOut.model_validate(
        await svc.update_brief(actor, campaign_id, brief=body.brief)
    )


# --- attachments ------------------------------------------------------------


@router.get("/{campaign_id}/attachments", response_model=list[AttachmentOut])
async def list_attachments(
    campaign_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> list[AttachmentOut]:
    rows = await svc.list_attachments(actor, campaign_id)
    return [AttachmentOut.model_validate(a) for a in rows]


@router.post("/{campaign_id}/attachments", response_model=AttachmentOut, status_code=201)
async def add_attachment(
    campaign_id: uuid.UUID,
    body: AttachmentRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> AttachmentOut:
    attachment = await svc.add_attachment(actor, campaign_id, **body.model_dump())
    return AttachmentOut.model_validate(attachment)


@router.delete("/attachments/{attachment_id}", status_code=204)
async def remove_attachment(
    attachment_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> Response:
    await svc.remove_attachment(actor, attachment_id)
    return Response(status_code=204)


# --- users ------------------------------------------------------------------


@router.get("/{campaign_id}/users", response_model=list[CampaignUserOut])
async def list_users(
    campaign_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> list[CampaignUserOut]:
    return [CampaignUserOut.model_validate(u) for u in await svc.list_users(actor, campaign_id)]


@router.put("/{campaign_id}/users", response_model=CampaignUserOut)
async def assign_user(
    campaign_id: uuid.UUID,
    body: AssignUserRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignUserOut:
    row = await svc.assign_user(actor, campaign_id, user_id=body.user_id, role=body.role)
    return CampaignUserOut.model_validate(row)


@router.delete("/{campaign_id}/users/{user_id}", status_code=204)
async def remove_user(
    campaign_id: uuid.UUID,
    user_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> Response:
    await svc.remove_user(actor, campaign_id, user_id=user_id)
    return Response(status_code=204)
