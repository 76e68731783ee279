"""
truleado.api.routers.users

Account bootstrap for the signed-in identity.

- POST /v1/users          agency staff signup (links the token subject to a new user)
- POST /v1/users/client   client portal sign-in (links to an approver contact)
- GET  /v1/me             current user and agency memberships
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import db_session
from truleado.api.schemas import MembershipOut, MeOut, UserOut
from truleado.auth.deps import get_actor, get_identity
from truleado.auth.models import Actor, Identity
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.users import UserRepo
from truleado.errors import NotFoundError
from truleado.services.identity_service import IdentityService

router = APIRouter(prefix="/v1", tags=["users"])


class SignupRequest(BaseModel):
    email: str | None = Field(default=None, max_length=320)
    full_name: str | None = Field(default=None, max_length=255)


@router.post("/users", response_model=UserOut, status_code=201)
async def signup(
    body: SignupRequest,
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(db_session),
) -> UserOut:
    user = await IdentityService(session).create_user(
        identity, email=body.email, full_name=body.full_name
    )
    return UserOut.model_validate(user)


@router.post("/users/client", response_model=UserOut)
async def client_sign_in(
    identity: Identity = Depends(get_identity),
    session: AsyncSession = Depends(db_session),
) -> UserOut:
    user = await IdentityService(session).ensure_client_user(identity)
    return UserOut.model_validate(user)


@router.get("/me", response_model=MeOut)
async def me(
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(db_session),
) -> MeOut:
    user = await UserRepo(session).get(actor.user_id)
    if user is None:
        raise NotFoundError("User", actor.user_id)
    memberships = await AgencyRepo(session).memberships_for_user(actor.user_id)
    return MeOut(
        user=UserOut.model_validate(user),
        memberships=[MembershipOut.model_validate(m) for m in memberships],
    )
