"""
truleado.services.agency_service

Agency onboarding, locale settings, membership management, clients and client contacts.
"""

from __future__ import annotations

import re
import secrets
import string
import uuid
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import Agency, AgencyStatus, AgencyUser, Client, Contact
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.users import UserRepo
from truleado.errors import NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.rbac.types import AgencyRole, Permission
from truleado.services.activity_service import snapshot

log = get_logger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits
_CODE_LENGTH = 8
_CLIENT_OWNER_ROLES = (AgencyRole.agency_admin, AgencyRole.account_manager)
_LOCALE_FIELDS = ("currency_code", "timezone", "language_code")
_CURRENCY_RE = re.compile(r"[A-Z]{3}")
_LANGUAGE_RE = re.compile(r"[a-z]{2,3}(-[A-Za-z0-9]{2,8})*")
_CONTACT_FIELDS = (
    "first_name",
    "last_name",
    "email",
    "phone",
    "designation",
    "is_client_approver",
    "user_id",
)


def _valid_timezone(value: str) -> str:
    name = value.strip()
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationFailed(f"Unknown timezone: {name}", field="timezone") from e
    return name


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None


class AgencyService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._agencies = AgencyRepo(session)
        self._users = UserRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    # --- agencies -----------------------------------------------------------

    async def _unique_code(self) -> str:
        while True:
            code = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_LENGTH))
            if not await self._agencies.code_exists(code):
                return code

    async def create_agency(
        self, actor: Actor, *, name: str, billing_email: str | None = None
    ) -> Agency:
        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationFailed("Agency name must be at least 2 characters", field="name")

        agency = await self._agencies.create(
            name=name, agency_code=await self._unique_code(), billing_email=_clean(billing_email)
        )
        await self._agencies.add_member(
            agency_id=agency.id, user_id=actor.user_id, role=AgencyRole.agency_admin
        )
        await self._activity.add(
            agency_id=agency.id,
            entity_type="agency",
            entity_id=agency.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(agency, "name", "agency_code", "status", "token_balance"),
            metadata={"billing_email": agency.billing_email},
        )
        await self._session.commit()
        log.info("agency_created", agency_id=agency.id, user_id=actor.user_id)
        return agency

    async def join_agency_by_code(self, actor: Actor, *, agency_code: str) -> Agency:
        code = (agency_code or "").strip().upper()
        if len(code) < 4:
            raise ValidationFailed("Please enter a valid agency code", field="agency_code")

        agency = await self._agencies.get_by_code(code)
        if agency is None:
            raise ValidationFailed(
                "Agency code not found. Please check and try again.", field="agency_code"
            )

        memberships = await self._agencies.memberships_for_user(actor.user_id)
        if any(m.agency_id == agency.id for m in memberships):
            return agency
        if memberships:
            raise ValidationFailed(
                "You already belong to an agency. One agency per user for now.",
                field="agency_code",
            )
        if agency.status is not AgencyStatus.active:
            raise ValidationFailed("This agency is not accepting new members.", field="agency_code")

        member = await self._agencies.add_member(
            agency_id=agency.id, user_id=actor.user_id, role=AgencyRole.operator
        )
        await self._activity.add(
            agency_id=agency.id,
            entity_type="agency",
            entity_id=agency.id,
            action="member_joined",
            actor_id=actor.user_id,
            after_state=snapshot(member, "user_id", "role"),
        )
        await self._session.commit()
        log.info("agency_joined", agency_id=agency.id, user_id=actor.user_id)
        return agency

    async def get_agency(self, actor: Actor, agency_id: uuid.UUID) -> Agency:
        await self._rbac.require_agency_membership(actor, agency_id)
        agency = await self._agencies.get(agency_id)
        if agency is None:
            raise NotFoundError("Agency", agency_id)
        return agency

    async def update_locale(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        *,
        currency_code: str | None = None,
        timezone: str | None = None,
        language_code: str | None = None,
    ) -> Agency:
        """Change the agency's display locale. Fields left as None keep their value."""

        await self._rbac.require_agency_permission(actor, agency_id, Permission.manage_agency)
        agency = await self._agencies.get(agency_id, for_update=True)
        if agency is None:
            raise NotFoundError("Agency", agency_id)

        changes: dict[str, str] = {}
        if currency_code is not None:
            code = currency_code.strip().upper()
            if not _CURRENCY_RE.fullmatch(code):
                raise ValidationFailed(
                    "Currency must be a 3-letter ISO 4217 code", field="currency_code"
                )
            changes["currency_code"] = code
        if timezone is not None:
            changes["timezone"] = _valid_timezone(timezone)
        if language_code is not None:
            tag = language_code.strip()
            if not _LANGUAGE_RE.fullmatch(tag):
                raise ValidationFailed(
                    "Language must be a BCP 47 tag such as en or en-US", field="language_code"
                )
            changes["language_code"] = tag
        if not changes:
            return agency

        before = snapshot(agency, *_LOCALE_FIELDS)
        for key, value in changes.items():
            setattr(agency, key, value)
        await self._activity.add(
            agency_id=agency_id,
            entity_type="agency",
            entity_id=agency_id,
            action="locale_updated",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(agency, *_LOCALE_FIELDS),
        )
        await self._session.commit()
        log.info("agency_locale_updated", agency_id=agency_id, **changes)
        return agency

    async def list_members(self, actor: Actor, agency_id: uuid.UUID) -> list[AgencyUser]:
        await self._rbac.require_agency_membership(actor, agency_id)
        return await self._agencies.members(agency_id)

    async def add_agency_member(
        self, actor: Actor, agency_id: uuid.UUID, *, user_id: uuid.UUID, role: AgencyRole
    ) -> AgencyUser:
        await self._rbac.require_agency_permission(
            actor, agency_id, Permission.manage_agency_users
        )
        if await self._users.get(user_id) is None:
            raise NotFoundError("User", user_id)

        existing = await self._agencies.membership(agency_id, user_id)
        if existing is not None and existing.is_active:
            raise ValidationFailed("User is already a member of this agency", field="user_id")

        before = snapshot(existing, "role", "is_active") if existing is not None else None
        if existing is not None:
            existing.role = role
            existing.is_active = True
            member = existing
        else:
            member = await self._agencies.add_member(
                agency_id=agency_id, user_id=user_id, role=role
            )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="agency",
            entity_id=agency_id,
            action="member_added",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(member, "user_id", "role", "is_active"),
        )
        await self._session.commit()
        return member

    async def set_member_role(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        *,
        user_id: uuid.UUID,
        role: AgencyRole | None = None,
        is_active: bool | None = None,
    ) -> AgencyUser:
        await self._rbac.require_agency_permission(
            actor, agency_id, Permission.manage_agency_users
        )
        member = await self._agencies.membership(agency_id, user_id)
        if member is None:
            raise NotFoundError("AgencyUser", user_id)
        if user_id == actor.user_id:
            raise ValidationFailed("You cannot change your own membership", field="user_id")

        before = snapshot(member, "role", "is_active")
        if role is not None:
            member.role = role
        if is_active is not None:
            member.is_active = is_active

        await self._activity.add(
            agency_id=agency_id,
            entity_type="agency",
            entity_id=agency_id,
            action="member_updated",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(member, "role", "is_active"),
            metadata={"user_id": str(user_id)},
        )
        await self._session.commit()
        log.info("agency_member_updated", agency_id=agency_id, member_id=user_id)
        return member

    # --- clients ------------------------------------------------------------

    async def create_client(
        self, actor: Actor, agency_id: uuid.UUID, *, name: str, account_manager_id: uuid.UUID
    ) -> Client:
        await self._rbac.require_agency_role(actor, agency_id, *_CLIENT_OWNER_ROLES)

        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationFailed("Client name must be at least 2 characters", field="name")

        manager = await self._agencies.membership(agency_id, account_manager_id)
        if manager is None or not manager.is_active:
            raise ValidationFailed(
                "Account manager must be an active member of the agency",
                field="account_manager_id",
            )
        if manager.role not in _CLIENT_OWNER_ROLES:
            raise ValidationFailed(
                "Account manager must have Agency Admin or Account Manager role",
                field="account_manager_id",
            )
        if await self._agencies.client_name_taken(agency_id, name):
            raise ValidationFailed("A client with this name already exists", field="name")

        client = await self._agencies.create_client(
            agency_id=agency_id, name=name, account_manager_id=account_manager_id
        )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="client",
            entity_id=client.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(client, "name", "account_manager_id"),
        )
        await self._session.commit()
        log.info("client_created", agency_id=agency_id, client_id=client.id)
        return client

    async def list_clients(self, actor: Actor, agency_id: uuid.UUID) -> list[Client]:
        role = await self._rbac.require_agency_permission(actor, agency_id, Permission.view_client)
        clients = await self._agencies.list_clients(agency_id)
        if role is AgencyRole.account_manager:
            return [c for c in clients if c.account_manager_id == actor.user_id]
        return clients

    async def get_client(self, actor: Actor, client_id: uuid.UUID) -> Client:
        await self._rbac.require_client_access(actor, client_id)
        client = await self._agencies.get_client(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    # --- contacts -----------------------------------------------------------

    async def list_contacts(self, actor: Actor, client_id: uuid.UUID) -> list[Contact]:
        await self._rbac.require_client_access(actor, client_id)
        return await self._agencies.contacts_for_client(client_id)

    async def _contact_writer(self, actor: Actor, client_id: uuid.UUID) -> uuid.UUID:
        # Brand contacts may read the contact list but only agency members change it.
        agency_id = await self._rbac.require_client_access(actor, client_id)
        await self._rbac.require_agency_membership(actor, agency_id)
        return agency_id

    async def create_contact(
        self,
        actor: Actor,
        client_id: uuid.UUID,
        *,
        first_name: str,
        last_name: str,
        email: str | None = None,
        phone: str | None = None,
        designation: str | None = None,
        is_client_approver: bool = False,
        user_id: uuid.UUID | None = None,
    ) -> Contact:
        agency_id = await self._contact_writer(actor, client_id)
        if not (first_name or "").strip():
            raise ValidationFailed("First name is required", field="first_name")
        if not (last_name or "").strip():
            raise ValidationFailed("Last name is required", field="last_name")
        if is_client_approver and not _clean(email):
            raise ValidationFailed("Client approvers need an email address", field="email")

        contact = await self._agencies.add_contact(
            Contact(
                client_id=client_id,
                first_name=first_name.strip(),
                last_name=last_name.strip(),
                email=_clean(email),
                phone=_clean(phone),
                designation=_clean(designation),
                is_client_approver=is_client_approver,
                user_id=user_id,
            )
        )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="contact",
            entity_id=contact.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(contact, *_CONTACT_FIELDS),
        )
        await self._session.commit()
        return contact

    async def update_contact(
        self, actor: Actor, contact_id: uuid.UUID, **changes: Any
    ) -> Contact:
        """Apply the given field changes; keys outside the contact fields are rejected."""

        contact = await self._agencies.get_contact(contact_id)
        if contact is None:
            raise NotFoundError("Contact", contact_id)
        agency_id = await self._contact_writer(actor, contact.client_id)

        unknown = set(changes) - set(_CONTACT_FIELDS)
        if unknown:
            raise ValidationFailed(f"Unknown contact fields: {', '.join(sorted(unknown))}")

        before = snapshot(contact, *_CONTACT_FIELDS)
        for key, value in changes.items():
            if key in ("first_name", "last_name"):
                if not (value or "").strip():
                    label = key.replace("_", " ").capitalize()
                    raise ValidationFailed(f"{label} is required", field=key)
                value = value.strip()
            elif isinstance(value, str):
                value = _clean(value)
            setattr(contact, key, value)
        if contact.is_client_approver and not contact.email:
            raise ValidationFailed("Client approvers need an email address", field="email")

        await self._activity.add(
            agency_id=agency_id,
            entity_type="contact",
            entity_id=contact.id,
            action="updated",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(contact, *_CONTACT_FIELDS),
        )
        await self._session.commit()
        return contact

    async def delete_contact(self, actor: Actor, contact_id: uuid.UUID) -> None:
        contact = await self._agencies.get_contact(contact_id)
        if contact is None:
            raise NotFoundError("Contact", contact_id)
        agency_id = await self._contact_writer(actor, contact.client_id)

        before = snapshot(contact, *_CONTACT_FIELDS)
        await self._agencies.delete_contact(contact)
        await self._activity.add(
            agency_id=agency_id,
            entity_type="contact",
            entity_id=contact_id,
            action="deleted",
            actor_id=actor.user_id,
            before_state=before,
        )
        await self._session.commit()
