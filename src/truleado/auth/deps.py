"""
truleado.auth.deps

FastAPI dependencies turning a bearer token into an `Identity` / `Actor`.

Responsibilities:
- Validate the bearer JWT.
- Map the token subject to a local user through `auth_identities`.
- Bind the caller into the structlog context.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.api.deps import db_session, settings_dep
from truleado.auth.jwt import JwtConfig, JwtValidationError, decode_and_validate
from truleado.auth.models import Actor, AgencyMembership, Identity
from truleado.db.models import AgencyUser, AuthIdentity, User
from truleado.errors import UnauthenticatedError
from truleado.observability.logging import bind_actor
from truleado.settings import Settings

_bearer = HTTPBearer(auto_error=False)


async def load_actor(session: AsyncSession, *, subject: str) -> Actor | None:
    stmt = (
        select(User)
        .join(AuthIdentity, AuthIdentity.user_id == User.id)
        .where(AuthIdentity.provider_uid == subject, User.is_active.is_(True))
    )
    user = (await session.execute(stmt)).scalars().first()
    if user is None:
        return None

    rows = (
        await session.execute(select(AgencyUser).where(AgencyUser.user_id == user.id))
    ).scalars()
    memberships = tuple(
        AgencyMembership(agency_id=m.agency_id, role=m.role, is_active=m.is_active) for m in rows
    )
    return Actor(
        user_id=user.id,
        subject=subject,
        email=user.email,
        full_name=user.full_name,
        memberships=memberships,
    )


async def get_identity(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
    session: AsyncSession = Depends(db_session),
) -> Identity:
    if creds is None or not creds.credentials:
        raise UnauthenticatedError("Missing bearer token")

    try:
        payload = decode_and_validate(
            cfg=JwtConfig.from_settings(settings), token=creds.credentials
        )
    except JwtValidationError as e:
        raise UnauthenticatedError(f"Invalid token: {e}") from e

    subject = str(payload.get("sub", ""))
    if not subject:
        raise UnauthenticatedError("Invalid token subject")

    actor = await load_actor(session, subject=subject)
    if actor is not None:
        bind_actor(user_id=str(actor.user_id))
    return Identity(
        subject=subject,
        email=payload.get("email"),
        email_verified=bool(payload.get("email_verified", False)),
        name=payload.get("name"),
        actor=actor,
    )


async def get_actor(identity: Identity = Depends(get_identity)) -> Actor:
    if identity.actor is None:
        raise UnauthenticatedError("No user account is linked to this identity")
    return identity.actor
