"""
truleado.api.routers.deliverables

Deliverables, their versions, the approval workflow and post-approval tracking.

Review flow: upload a version -> submit -> start-review -> approve/reject at the
internal, project and client levels.
"""

from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from truleado.api.deps import deliverable_service
from truleado.api.schemas import ApprovalOut, DeliverableOut, TrackingUrlOut, VersionOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.deliverable_service import DeliverableService
from truleado.workflow.deliverable import ApprovalLevel

router = APIRouter(prefix="/v1", tags=["deliverables"])


class DeliverableCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    deliverable_type: str = Field(min_length=1, max_length=64)
    description: str | None = None
    due_date: date | None = None


class VersionUploadRequest(BaseModel):
    file_url: str = Field(min_length=1)
    file_name: str | None = Field(default=None, max_length=512)
    file_size: int | None = Field(default=None, ge=0)
    mime_type: str | None = Field(default=None, max_length=128)
    caption: str | None = None


class CaptionRequest(BaseModel):
    caption: str | None = None


class DecisionRequest(BaseModel):
    version_id: uuid.UUID
    level: ApprovalLevel
    comment: str | None = None


class TrackingRequest(BaseModel):
    urls: list[str] = Field(min_length=1)


@router.get("/campaigns/{campaign_id}/deliverables", response_model=list[DeliverableOut])
async def list_deliverables(
    campaign_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[DeliverableOut]:
    rows = await svc.list_deliverables(actor, campaign_id)
    return [DeliverableOut.model_validate(d) for d in rows]


@router.post(
    "/campaigns/{campaign_id}/deliverables", response_model=DeliverableOut, status_code=201
)
async def create_deliverable(
    campaign_id: uuid.UUID,
    body: DeliverableCreateRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> DeliverableOut:
    deliverable = await svc.create_deliverable(actor, campaign_id, **body.model_dump())
    return DeliverableOut.model_validate(deliverable)


@router.get("/deliverables/{deliverable_id}", response_model=DeliverableOut)
async def get_deliverable(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> DeliverableOut:
    return DeliverableOut.model_validate(await svc.get_deliverable(actor, deliverable_id))


# --- versions ---------------------------------------------------------------


@router.get("/deliverables/{deliverable_id}/versions", response_model=list[VersionOut])
async def list_versions(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[VersionOut]:
    return [VersionOut.model_validate(v) for v in await svc.list_versions(actor, deliverable_id)]


@router.post(
    "/deliverables/{deliverable_id}/versions", response_model=VersionOut, status_code=201
)
async def upload_version(
    deliverable_id: uuid.UUID,
    body: VersionUploadRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> VersionOut:
    version = await svc.upload_version(actor, deliverable_id, **body.model_dump())
    return VersionOut.model_validate(version)


@router.patch("/deliverable-versions/{version_id}", response_model=VersionOut)
async def update_version_caption(
    version_id: uuid.UUID,
    body: CaptionRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> VersionOut:
    version = await svc.update_version_caption(actor, version_id, caption=body.caption)
    return VersionOut.model_validate(version)


@router.delete("/deliverable-versions/{version_id}", status_code=204)
async def delete_version(
    version_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> Response:
    await svc.delete_version(actor, version_id)
    return Response(status_code=204)


# --- review -----------------------------------------------------------------


@router.post("/deliverables/{deliverable_id}/submit", response_model=DeliverableOut)
async def submit_for_review(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> DeliverableOut:
    return DeliverableOut.model_validate(await svc.submit_for_review(actor, deliverable_id))


@router.post("/deliverables/{deliverable_id}/start-review", response_model=DeliverableOut)
async def start_review(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> DeliverableOut:
    return DeliverableOut.model_validate(await svc.start_review(actor, deliverable_id))


@router.post(
    "/deliverables/{deliverable_id}/approve", response_model=ApprovalOut, status_code=201
)
async def approve(
    deliverable_id: uuid.UUID,
    body: DecisionRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> ApprovalOut:
    approval = await svc.approve(
        actor, deliverable_id, version_id=body.version_id, level=body.level, comment=body.comment
    )
    return ApprovalOut.model_validate(approval)


@router.post(
    "/deliverables/{deliverable_id}/reject", response_model=ApprovalOut, status_code=201
)
async def reject(
    deliverable_id: uuid.UUID,
    body: DecisionRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> ApprovalOut:
    approval = await svc.reject(
        actor,
        deliverable_id,
        version_id=body.version_id,
        level=body.level,
        comment=body.comment or "",
    )
    return ApprovalOut.model_validate(approval)


@router.get("/deliverables/{deliverable_id}/approvals", response_model=list[ApprovalOut])
async def list_approvals(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[ApprovalOut]:
    rows = await svc.list_approvals(actor, deliverable_id)
    return [ApprovalOut.model_validate(a) for a in rows]


@router.get("/client-portal/approvals", response_model=list[DeliverableOut])
async def pending_client_approvals(
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[DeliverableOut]:
    return [DeliverableOut.model_validate(d) for d in await svc.pending_client_approvals(actor)]


# --- tracking ---------------------------------------------------------------


@router.post(
    "/deliverables/{deliverable_id}/tracking",
    response_model=list[TrackingUrlOut],
    status_code=201,
)
async def start_tracking(
    deliverable_id: uuid.UUID,
    body: TrackingRequest,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[TrackingUrlOut]:
    rows = await svc.start_tracking(actor, deliverable_id, urls=body.urls)
    return [TrackingUrlOut.model_validate(r) for r in rows]


@router.get("/deliverables/{deliverable_id}/tracking", response_model=list[TrackingUrlOut])
async def tracking_urls(
    deliverable_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: DeliverableService = Depends(deliverable_service),
) -> list[TrackingUrlOut]:
    rows = await svc.tracking_urls(actor, deliverable_id)
    return [TrackingUrlOut.model_validate(r) for r in rows]
