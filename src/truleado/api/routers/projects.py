"""
truleado.api.routers.projects

Project detail, project approvers/users and the campaigns under a project.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import campaign_service, db_session
from truleado.api.schemas import CampaignOut, ProjectOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.db.models import CampaignType
from truleado.services.campaign_service import CampaignService
from truleado.services.project_service import ProjectService

router = APIRouter(prefix="/v1/projects", tags=["projects"])


class UserRef(BaseModel):
    user_id: uuid.UUID


class CampaignCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    campaign_type: CampaignType = CampaignType.influencer
    description: str | None = None
    approver_user_ids: list[uuid.UUID] = Field(default_factory=list)


@router.get("/{project_id}", response_model=ProjectOut)
async def get_project(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ProjectOut:
    return ProjectOut.model_validate(await ProjectService(session).get_project(actor, project_id))


@router.get("/{project_id}/approvers")
async def list_approvers(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[uuid.UUID]:
    return await ProjectService(session).list_approvers(actor, project_id)


@router.post("/{project_id}/approvers", status_code=204)
async def add_approver(
    project_id: uuid.UUID,
    body: UserRef,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> Response:
    await ProjectService(session).add_project_approver(actor, project_id, body.user_id)
    return Response(status_code=204)


@router.delete("/{project_id}/approvers/{user_id}", status_code=204)
async def remove_approver(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> Response:
    await ProjectService(session).remove_project_approver(actor, project_id, user_id)
    return Response(status_code=204)


@router.post("/{project_id}/users", status_code=204)
async def add_project_user(
    project_id: uuid.UUID,
    body: UserRef,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> Response:
    await ProjectService(session).add_project_user(actor, project_id, body.user_id)
    return Response(status_code=204)


@router.delete("/{project_id}/users/{user_id}", status_code=204)
async def remove_project_user(
    project_id: uuid.UUID,
    user_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> Response:
    await ProjectService(session).remove_project_user(actor, project_id, user_id)
    return Response(status_code=204)


@router.get("/{project_id}/campaigns", response_model=list[CampaignOut])
async def list_campaigns(
    project_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> list[CampaignOut]:
    return [CampaignOut.model_validate(c) for c in await svc.list_campaigns(actor, project_id)]


@router.post("/{project_id}/campaigns", response_model=CampaignOut, status_code=201)
async def create_campaign(
    project_id: uuid.UUID,
    body: CampaignCreateRequest,
    actor: Actor = Depends(get_actor),
    svc: CampaignService = Depends(campaign_service),
) -> CampaignOut:
    campaign = await svc.create_campaign(
        actor,
        project_id,
        name=body.name,
        campaign_type=body.campaign_type,
        approver_user_ids=body.approver_user_ids,
        description=body.description,
    )
    return CampaignOut.model_validate(campaign)
