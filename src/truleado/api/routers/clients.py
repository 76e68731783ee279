"""
truleado.api.routers.clients

Client detail, brand contacts and the projects under a client.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import db_session
from truleado.api.schemas import ClientOut, ContactOut, ProjectOut
from truleado.auth.deps import get_actor
from truleado.auth.models import Actor
from truleado.services.agency_service import AgencyService
from truleado.services.project_service import ProjectService

router = APIRouter(prefix="/v1", tags=["clients"])


class ContactCreateRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=128)
    last_name: str = Field(min_length=1, max_length=128)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    designation: str | None = Field(default=None, max_length=128)
    is_client_approver: bool = False
    user_id: uuid.UUID | None = None


class ContactUpdateRequest(BaseModel):
    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    email: str | None = Field(default=None, max_length=320)
    phone: str | None = Field(default=None, max_length=32)
    designation: str | None = Field(default=None, max_length=128)
    is_client_approver: bool | None = None
    user_id: uuid.UUID | None = None


class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


@router.get("/clients/{client_id}", response_model=ClientOut)
async def get_client(
    client_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ClientOut:
    return ClientOut.model_validate(await AgencyService(session).get_client(actor, client_id))


@router.get("/clients/{client_id}/contacts", response_model=list[ContactOut])
async def list_contacts(
    client_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[ContactOut]:
    contacts = await AgencyService(session).list_contacts(actor, client_id)
    return [ContactOut.model_validate(c) for c in contacts]


@router.post("/clients/{client_id}/contacts", response_model=ContactOut, status_code=201)
async def create_contact(
    client_id: uuid.UUID,
    body: ContactCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ContactOut:
    contact = await AgencyService(session).create_contact(actor, client_id, **body.model_dump())
    return ContactOut.model_validate(contact)


@router.patch("/contacts/{contact_id}", response_model=ContactOut)
async def update_contact(
    contact_id: uuid.UUID,
    body: ContactUpdateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ContactOut:
    # Only fields present in the request body are changed.
    changes = body.model_dump(exclude_unset=True)
    contact = await AgencyService(session).update_contact(actor, contact_id, **changes)
    return ContactOut.model_validate(contact)


@router.delete("/contacts/{contact_id}", status_code=204)
async def delete_contact(
    contact_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> Response:
    await AgencyService(session).delete_contact(actor, contact_id)
    return Response(status_code=204)


@router.get("/clients/{client_id}/projects", response_model=list[ProjectOut])
async def list_projects(
    client_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> list[ProjectOut]:
    projects = await ProjectService(session).list_projects(actor, client_id)
    return [ProjectOut.model_validate(p) for p in projects]


@router.post("/clients/{client_id}/projects", response_model=ProjectOut, status_code=201)
async def create_project(
    client_id: uuid.UUID,
    body: ProjectCreateRequest,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> ProjectOut:
    project = await ProjectService(session).create_project(
        actor, client_id, name=body.name, description=body.description
    )
    return ProjectOut.model_validate(project)
