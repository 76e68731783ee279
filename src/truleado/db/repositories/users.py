from __future__ import annotations

import uuid

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import AuthIdentity, User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, user_id: uuid.UUID) -> User | None:
        return await self._session.get(User, user_id)

    async def get_by_subject(self, provider_uid: str) -> User | None:
        stmt = (
            select(User)
            .join(AuthIdentity, AuthIdentity.user_id == User.id)
            .where(AuthIdentity.provider_uid == provider_uid)
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.lower())
        return (await self._session.execute(stmt)).scalars().first()

    async def create(self, *, email: str | None, full_name: str) -> User:
        user = User(email=email, full_name=full_name, is_active=True)
        self._session.add(user)
        await self._session.flush()
        return user

    async def add_identity(
        self,
        *,
        user_id: uuid.UUID,
        provider: str,
        provider_uid: str,
        email: str | None,
        email_verified: bool,
    ) -> AuthIdentity:
        ident = AuthIdentity(
            user_id=user_id,
            provider=provider,
            provider_uid=provider_uid,
            email=email,
            email_verified=email_verified,
        )
        self._session.add(ident)
        await self._session.flush()
        return ident
