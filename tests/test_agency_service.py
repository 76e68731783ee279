from __future__ import annotations

import pytest
from conftest import Tenant, actor_of, make_user
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.repositories.activity import ActivityRepo
from truleado.errors import ForbiddenError, NotFoundError, ValidationFailed
from truleado.rbac.types import AgencyRole
from truleado.services.agency_service import AgencyService
from truleado.services.project_service import ProjectService


@pytest.mark.asyncio
async def test_create_agency_makes_creator_admin(session: AsyncSession) -> None:
    founder = actor_of(await make_user(session, "founder"))
    await session.commit()
    svc = AgencyService(session)

    agency = await svc.create_agency(founder, name="  Northwind  ", billing_email="billing@nw.io")
    assert agency.name == "Northwind"
    assert len(agency.agency_code) == 8 and agency.agency_code.isalnum()
    assert agency.token_balance == 0

    members = await svc.list_members(founder, agency.id)
    assert [(m.user_id, m.role) for m in members] == [(founder.user_id, AgencyRole.agency_admin)]

    log = await ActivityRepo(session).list_for_entity("agency", agency.id)
    assert [e.action for e in log] == ["created"]


@pytest.mark.asyncio
async def test_create_agency_rejects_short_name(session: AsyncSession) -> None:
    founder = actor_of(await make_user(session, "founder"))
    with pytest.raises(ValidationFailed):
        await AgencyService(session).create_agency(founder, name="x")


@pytest.mark.asyncio
async def test_join_by_code(session: AsyncSession, tenant: Tenant) -> None:
    newbie = actor_of(await make_user(session, "newbie"))
    await session.commit()
    svc = AgencyService(session)

    agency = await svc.join_agency_by_code(newbie, agency_code=" acme1234 ")
    assert agency.id == tenant.agency.id
    members = {m.user_id: m.role for m in await svc.list_members(newbie, agency.id)}
    assert members[newbie.user_id] is AgencyRole.operator

    # Joining again is a no-op.
    assert (await svc.join_agency_by_code(newbie, agency_code="ACME1234")).id == agency.id


@pytest.mark.asyncio
async def test_join_by_code_validation(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    with pytest.raises(ValidationFailed, match="valid agency code"):
        await svc.join_agency_by_code(tenant.outsider, agency_code="ab")
    with pytest.raises(ValidationFailed, match="not found"):
        await svc.join_agency_by_code(tenant.outsider, agency_code="NOPE0000")

    founder = actor_of(await make_user(session, "founder"))
    await session.commit()
    await svc.create_agency(founder, name="Other Agency")
    with pytest.raises(ValidationFailed, match="already belong"):
        await svc.join_agency_by_code(founder, agency_code="ACME1234")


@pytest.mark.asyncio
async def test_member_management(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    hire = await make_user(session, "hire")
    await session.commit()

    with pytest.raises(ForbiddenError):
        await svc.add_agency_member(
            tenant.manager, tenant.agency.id, user_id=hire.id, role=AgencyRole.operator
        )

    member = await svc.add_agency_member(
        tenant.admin, tenant.agency.id, user_id=hire.id, role=AgencyRole.operator
    )
    assert member.role is AgencyRole.operator
    with pytest.raises(ValidationFailed, match="already a member"):
        await svc.add_agency_member(
            tenant.admin, tenant.agency.id, user_id=hire.id, role=AgencyRole.operator
        )

    updated = await svc.set_member_role(
        tenant.admin, tenant.agency.id, user_id=hire.id, role=AgencyRole.account_manager
    )
    assert updated.role is AgencyRole.account_manager

    with pytest.raises(ValidationFailed, match="your own membership"):
        await svc.set_member_role(
            tenant.admin, tenant.agency.id, user_id=tenant.admin.user_id, is_active=False
        )


@pytest.mark.asyncio
async def test_clients_are_scoped_to_their_account_manager(
    session: AsyncSession, tenant: Tenant
) -> None:
    svc = AgencyService(session)
    other = await svc.create_client(
        tenant.admin,
        tenant.agency.id,
        name="Globex",
        account_manager_id=tenant.other_manager.user_id,
    )

    assert {c.id for c in await svc.list_clients(tenant.admin, tenant.agency.id)} == {
        tenant.client.id,
        other.id,
    }
    assert [c.id for c in await svc.list_clients(tenant.manager, tenant.agency.id)] == [
        tenant.client.id
    ]
    with pytest.raises(ForbiddenError):
        await svc.get_client(tenant.manager, other.id)


@pytest.mark.asyncio
async def test_create_client_validation(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    with pytest.raises(ForbiddenError):
        await svc.create_client(
            tenant.operator,
            tenant.agency.id,
            name="Initech",
            account_manager_id=tenant.manager.user_id,
        )
    with pytest.raises(ValidationFailed, match="already exists"):
        await svc.create_client(
            tenant.admin,
            tenant.agency.id,
            name="brandco",
            account_manager_id=tenant.manager.user_id,
        )
    with pytest.raises(ValidationFailed, match="Account manager must have"):
        await svc.create_client(
            tenant.admin,
            tenant.agency.id,
            name="Initech",
            account_manager_id=tenant.operator.user_id,
        )


@pytest.mark.asyncio
async def test_contacts(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    with pytest.raises(ValidationFailed, match="need an email"):
        await svc.create_contact(
            tenant.manager,
            tenant.client.id,
            first_name="Al",
            last_name="Vee",
            is_client_approver=True,
        )

    contact = await svc.create_contact(
        tenant.manager, tenant.client.id, first_name=" Al ", last_name="Vee", email="al@brandco.io"
    )
    assert contact.first_name == "Al"

    contact = await svc.update_contact(tenant.manager, contact.id, designation="  CMO ")
    assert contact.designation == "CMO"
    with pytest.raises(ValidationFailed, match="Unknown contact fields"):
        await svc.update_contact(tenant.manager, contact.id, client_id=tenant.client.id)

    await svc.delete_contact(tenant.manager, contact.id)
    remaining = await svc.list_contacts(tenant.manager, tenant.client.id)
    assert [c.id for c in remaining] == [tenant.contact.id]
    with pytest.raises(NotFoundError):
        await svc.delete_contact(tenant.manager, contact.id)


@pytest.mark.asyncio
async def test_brand_contacts_cannot_edit_contacts(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    own = tenant.contact.id

    with pytest.raises(ForbiddenError):
        await svc.create_contact(
            tenant.brand,
            tenant.client.id,
            first_name="Sam",
            last_name="Side",
            email="sam@brandco.io",
            is_client_approver=True,
        )
    with pytest.raises(ForbiddenError):
        await svc.update_contact(tenant.brand, own, designation="Owner", is_client_approver=False)
    with pytest.raises(ForbiddenError):
        await svc.delete_contact(tenant.brand, own)

    contacts = await svc.list_contacts(tenant.brand, tenant.client.id)
    assert [c.id for c in contacts] == [own]
    assert contacts[0].is_client_approver is True
    assert contacts[0].designation != "Owner"


@pytest.mark.asyncio
async def test_projects_and_project_approvers(session: AsyncSession, tenant: Tenant) -> None:
    svc = ProjectService(session)
    with pytest.raises(ForbiddenError):
        await svc.create_project(tenant.operator, tenant.client.id, name="Summer")

    project = await svc.create_project(tenant.manager, tenant.client.id, name="Summer")
    await svc.add_project_approver(tenant.manager, project.id, tenant.approver.user_id)
    assert await svc.list_approvers(tenant.admin, project.id) == [tenant.approver.user_id]

    with pytest.raises(ValidationFailed, match="already a project approver"):
        await svc.add_project_approver(tenant.manager, project.id, tenant.approver.user_id)
    with pytest.raises(ValidationFailed, match="active member"):
        await svc.add_project_approver(tenant.manager, project.id, tenant.outsider.user_id)

    await svc.remove_project_approver(tenant.manager, project.id, tenant.approver.user_id)
    assert await svc.list_approvers(tenant.admin, project.id) == []
    with pytest.raises(NotFoundError):
        await svc.remove_project_approver(tenant.manager, project.id, tenant.approver.user_id)

    await svc.add_project_user(tenant.manager, project.id, tenant.floating_operator.user_id)
    # Project users can see the project without client-wide rights.
    assert (await svc.get_project(tenant.floating_operator, project.id)).id == project.id


@pytest.mark.asyncio
async def test_locale_settings(session: AsyncSession, tenant: Tenant) -> None:
    svc = AgencyService(session)
    agency_id = tenant.agency.id
    agency = await svc.get_agency(tenant.operator, agency_id)
    assert (agency.currency_code, agency.timezone, agency.language_code) == ("USD", "UTC", "en")

    agency = await svc.update_locale(
        tenant.admin,
        agency_id,
        currency_code=" inr ",
        timezone="Asia/Kolkata",
        language_code="en-IN",
    )
    assert (agency.currency_code, agency.timezone, agency.language_code) == (
        "INR",
        "Asia/Kolkata",
        "en-IN",
    )

    with pytest.raises(ValidationFailed, match="ISO 4217"):
        await svc.update_locale(tenant.admin, agency_id, currency_code="RUPEE")
    with pytest.raises(ValidationFailed, match="Unknown timezone"):
        await svc.update_locale(tenant.admin, agency_id, timezone="Mars/Olympus_Mons")
    with pytest.raises(ValidationFailed, match="BCP 47"):
        await svc.update_locale(tenant.admin, agency_id, language_code="English")
    with pytest.raises(ForbiddenError):
        await svc.update_locale(tenant.manager, agency_id, timezone="UTC")

    # Fields left out keep their value.
    agency = await svc.update_locale(tenant.admin, agency_id, timezone="Europe/Berlin")
    assert (agency.currency_code, agency.timezone) == ("INR", "Europe/Berlin")

    log = await ActivityRepo(session).list_for_entity("agency", agency_id)
    assert [e.action for e in log].count("locale_updated") == 2
