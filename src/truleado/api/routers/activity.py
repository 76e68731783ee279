from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import db_session
from truleado.api.schemas import ActivityOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.activity_service import ActivityService

router = APIRouter(prefix="/v1/activity", tags=["activity"])


@router.get("/{entity_type}/{entity_id}", response_model=list[ActivityOut])
async def entity_activity(
    entity_type: str,
    entity_id: uuid.UUID,
    limit: int = Query(default=200, ge=1, le=1000),
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[ActivityOut]:
    entries = await ActivityService(session).for_entity(
        actor, entity_type=entity_type, entity_id=entity_id, limit=limit
    )
    return [ActivityOut.model_validate(e) for e in entries]
