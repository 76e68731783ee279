from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from truleado.api.deps import notification_service
from truleado.api.schemas import NotificationOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.notification_service import NotificationService

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    svc: NotificationService = Depends(notification_service),
) -> NotificationOut:
    return NotificationOut.model_validate(await svc.mark_read(actor, notification_id))
