"""
truleado.db.repositories.agencies

Agencies, memberships, email delivery settings, clients and client contacts.
"""

from __future__ import annotations

import uuid

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import Agency, AgencyEmailConfig, AgencyUser, Client, Contact
from truleado.errors import NotFoundError
from truleado.rbac.types import AgencyRole


class AgencyRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, agency_id: uuid.UUID, *, for_update: bool = False) -> Agency | None:
        return await self._session.get(Agency, agency_id, with_for_update=for_update)

    async def get_by_code(self, code: str) -> Agency | None:
        stmt = select(Agency).where(Agency.agency_code == code)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def code_exists(self, code: str) -> bool:
        stmt = select(func.count()).select_from(Agency).where(Agency.agency_code == code)
        return bool(await self._session.scalar(stmt))

    async def create(self, *, name: str, agency_code: str, billing_email: str | None) -> Agency:
        agency = Agency(name=name, agency_code=agency_code, billing_email=billing_email)
        self._session.add(agency)
        await self._session.flush()
        return agency

    async def deduct_tokens(self, agency_id: uuid.UUID, amount: int) -> int | None:
        """Atomically take `amount` tokens. Returns the new balance, or None if short."""

        result = await self._session.execute(
            update(Agency)
            .where(Agency.id == agency_id, Agency.token_balance >= amount)
            .values(token_balance=Agency.token_balance - amount)
        )
        if not result.rowcount:
            return None
        return await self.token_balance(agency_id)

    async def credit_tokens(self, agency_id: uuid.UUID, amount: int) -> int:
        await self._session.execute(
            update(Agency)
            .where(Agency.id == agency_id)
            .values(token_balance=Agency.token_balance + amount)
        )
        return await self.token_balance(agency_id)

    async def token_balance(self, agency_id: uuid.UUID) -> int:
        balance = await self._session.scalar(
            select(Agency.token_balance).where(Agency.id == agency_id)
        )
        if balance is None:
            raise NotFoundError("Agency", agency_id)
        return balance

    # --- members ------------------------------------------------------------

    async def membership(self, agency_id: uuid.UUID, user_id: uuid.UUID) -> AgencyUser | None:
        stmt = select(AgencyUser).where(
            AgencyUser.agency_id == agency_id, AgencyUser.user_id == user_id
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def memberships_for_user(self, user_id: uuid.UUID) -> list[AgencyUser]:
        stmt = select(AgencyUser).where(AgencyUser.user_id == user_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def members(self, agency_id: uuid.UUID) -> list[AgencyUser]:
        stmt = (
            select(AgencyUser)
            .where(AgencyUser.agency_id == agency_id)
            .order_by(AgencyUser.created_at)
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def members_with_roles(
        self, agency_id: uuid.UUID, roles: tuple[AgencyRole, ...]
    ) -> list[AgencyUser]:
        stmt = select(AgencyUser).where(
            AgencyUser.agency_id == agency_id,
            AgencyUser.role.in_(roles),
            AgencyUser.is_active.is_(True),
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def add_member(
        self, *, agency_id: uuid.UUID, user_id: uuid.UUID, role: AgencyRole
    ) -> AgencyUser:
        member = AgencyUser(agency_id=agency_id, user_id=user_id, role=role, is_active=True)
        self._session.add(member)
        await self._session.flush()
        return member

    # --- clients ------------------------------------------------------------

    async def get_client(self, client_id: uuid.UUID) -> Client | None:
        return await self._session.get(Client, client_id)

    async def client_name_taken(self, agency_id: uuid.UUID, name: str) -> bool:
        stmt = (
            select(func.count())
            .select_from(Client)
            .where(Client.agency_id == agency_id, func.lower(Client.name) == name.lower())
        )
        return bool(await self._session.scalar(stmt))

    async def create_client(
        self, *, agency_id: uuid.UUID, name: str, account_manager_id: uuid.UUID
    ) -> Client:
        client = Client(agency_id=agency_id, name=name, account_manager_id=account_manager_id)
        self._session.add(client)
        await self._session.flush()
        return client

    async def list_clients(self, agency_id: uuid.UUID) -> list[Client]:
        stmt = select(Client).where(Client.agency_id == agency_id).order_by(Client.name)
        return list((await self._session.execute(stmt)).scalars().all())

    # --- contacts -----------------------------------------------------------

    async def get_contact(self, contact_id: uuid.UUID) -> Contact | None:
        return await self._session.get(Contact, contact_id)

    async def contacts_for_client(self, client_id: uuid.UUID) -> list[Contact]:
        stmt = select(Contact).where(Contact.client_id == client_id).order_by(Contact.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def approver_contacts_by_email(self, email: str) -> list[Contact]:
        stmt = select(Contact).where(
            Contact.is_client_approver.is_(True), func.lower(Contact.email) == email.lower()
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def contacts_for_user(self, user_id: uuid.UUID) -> list[Contact]:
        stmt = select(Contact).where(Contact.user_id == user_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def add_contact(self, contact: Contact) -> Contact:
        self._session.add(contact)
        await self._session.flush()
        return contact

    async def delete_contact(self, contact: Contact) -> None:
        await self._session.delete(contact)
        await self._session.flush()

    # --- email delivery settings --------------------------------------------

    async def email_config(self, agency_id: uuid.UUID) -> AgencyEmailConfig | None:
        stmt = select(AgencyEmailConfig).where(AgencyEmailConfig.agency_id == agency_id)
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def add_email_config(self, config: AgencyEmailConfig) -> AgencyEmailConfig:
        self._session.add(config)
        await self._session.flush()
        return config

    async def delete_email_config(self, config: AgencyEmailConfig) -> None:
        await self._session.delete(config)
        await self._session.flush()
