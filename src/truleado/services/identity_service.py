"""
truleado.services.identity_service

Signup flows that turn a validated token identity into a local user.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Identity
from truleado.db.models import User
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.users import UserRepo
from truleado.errors import ValidationFailed
from truleado.observability.logging import get_logger

log = get_logger(__name__)

PROVIDER_EMAIL = "firebase_email"
PROVIDER_CLIENT_LINK = "firebase_email_link"


class IdentityService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._users = UserRepo(session)
        self._agencies = AgencyRepo(session)

    async def create_user(
        self, identity: Identity, *, email: str | None = None, full_name: str | None = None
    ) -> User:
        """Register the token subject as a user. Returns the existing user on repeat calls."""

        existing = await self._users.get_by_subject(identity.subject)
        if existing is not None:
            return existing

        email = (email or identity.email or "").strip()
        if not email:
            raise ValidationFailed("Email is required", field="email")
        name = ((full_name or identity.name or "").strip() or email.split("@")[0] or "User")[:255]

        user = await self._users.create(email=email, full_name=name)
        await self._users.add_identity(
            user_id=user.id,
            provider=PROVIDER_EMAIL,
            provider_uid=identity.subject,
            email=email,
            email_verified=identity.email_verified,
        )
        await self._session.commit()
        log.info("user_created", user_id=user.id)
        return user

    async def ensure_client_user(self, identity: Identity) -> User:
        """
        Client portal sign-in: link a magic-link identity to an approver contact.

        The first matching approver contact (case-insensitive email) names the
        user; every unlinked approver contact with that email is linked.
        """

        existing = await self._users.get_by_subject(identity.subject)
        if existing is not None:
            return existing

        email = (identity.email or "").strip().lower()
        if not email:
            raise ValidationFailed("Email is required for client sign-in", field="email")

        contacts = await self._agencies.approver_contacts_by_email(email)
        if not contacts:
            raise ValidationFailed("No client account found for this email", field="email")

        first = contacts[0]
        name = " ".join(p for p in (first.first_name, first.last_name) if p).strip()[:255]
        user = await self._users.create(
            email=first.email or email, full_name=name or email.split("@")[0]
        )
        await self._users.add_identity(
            user_id=user.id,
            provider=PROVIDER_CLIENT_LINK,
            provider_uid=identity.subject,
            email=first.email or email,
            email_verified=identity.email_verified,
        )
        for contact in contacts:
            if contact.user_id is None:
                contact.user_id = user.id
        await self._session.commit()
        log.info("client_user_linked", user_id=user.id, contacts=len(contacts))
        return user
