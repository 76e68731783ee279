from __future__ import annotations

from decimal import Decimal

import pytest
from conftest import Tenant
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import Agency, CampaignCreatorStatus, Creator, PaymentStatus
from truleado.errors import ForbiddenError, InvalidStateError, ValidationFailed
from truleado.services.creator_service import CreatorService, validate_rates
from truleado.services.payment_service import PaymentService
from truleado.workflow.campaign import CampaignStatus


def test_validate_rates_normalizes() -> None:
    rates = validate_rates({"reel": {"amount": 1500, "currency": "inr"}})
    assert rates == {"reel": {"amount": "1500", "currency": "INR"}}

    with pytest.raises(ValidationFailed, match="needs an amount"):
        validate_rates({"reel": {"currency": "INR"}})
    with pytest.raises(ValidationFailed, match="not a number"):
        validate_rates({"reel": {"amount": "lots"}})
    with pytest.raises(ValidationFailed, match="negative"):
        validate_rates({"reel": {"amount": -1}})


@pytest.mark.asyncio
async def test_roster(session: AsyncSession, tenant: Tenant) -> None:
    svc = CreatorService(session)
    creator = await svc.add_creator(
        tenant.operator, tenant.agency.id, display_name="Kay Creates", instagram_handle="@kay"
    )
    assert creator.instagram_handle == "kay"
    roster = await svc.list_creators(tenant.approver, tenant.agency.id)
    assert [c.id for c in roster] == [creator.id]

    with pytest.raises(ForbiddenError):
        await svc.add_creator(tenant.approver, tenant.agency.id, display_name="Nope")
    with pytest.raises(ForbiddenError):
        await svc.list_creators(tenant.outsider, tenant.agency.id)

    creator = await svc.update_creator_rates(
        tenant.manager, creator.id, rates={"story": {"amount": "250.50"}}
    )
    assert creator.rates == {"story": {"amount": "250.50", "currency": "INR"}}


@pytest.mark.asyncio
async def test_invitation_lifecycle(session: AsyncSession, tenant: Tenant) -> None:
    svc = CreatorService(session)
    creator = await svc.add_creator(tenant.admin, tenant.agency.id, display_name="Kay Creates")

    row = await svc.invite_creator(
        tenant.operator, tenant.campaign.id, creator_id=creator.id, rate_amount=Decimal("900")
    )
    assert row.status is CampaignCreatorStatus.invited
    assert row.rate_currency == "INR"

    with pytest.raises(ValidationFailed, match="already invited"):
        await svc.invite_creator(tenant.operator, tenant.campaign.id, creator_id=creator.id)

    row = await svc.accept_invite(tenant.operator, row.id)
    assert row.status is CampaignCreatorStatus.accepted
    with pytest.raises(ValidationFailed, match="Cannot decline invitation in accepted status"):
        await svc.decline_invite(tenant.operator, row.id)

    row = await svc.remove_from_campaign(tenant.operator, row.id)
    assert row.status is CampaignCreatorStatus.removed

    # Removed creators can be invited again on the same row.
    again = await svc.invite_creator(tenant.operator, tenant.campaign.id, creator_id=creator.id)
    assert again.id == row.id
    assert again.status is CampaignCreatorStatus.invited
    assert [r.id for r in await svc.list_campaign_creators(tenant.brand, tenant.campaign.id)] == [
        row.id
    ]


@pytest.mark.asyncio
async def test_invite_requires_same_agency(session: AsyncSession, tenant: Tenant) -> None:
    other = Agency(name="Elsewhere", agency_code="ELSE0001")
    session.add(other)
    await session.flush()
    stranger = Creator(agency_id=other.id, display_name="Stranger", rates={})
    session.add(stranger)
    await session.commit()

    with pytest.raises(ValidationFailed, match="same agency"):
        await CreatorService(session).invite_creator(
            tenant.operator, tenant.campaign.id, creator_id=stranger.id
        )


@pytest.mark.asyncio
async def test_payments(session: AsyncSession, tenant: Tenant) -> None:
    creators = CreatorService(session)
    creator = await creators.add_creator(tenant.admin, tenant.agency.id, display_name="Kay")
    cc = await creators.invite_creator(
        tenant.operator, tenant.campaign.id, creator_id=creator.id, rate_currency="usd"
    )
    svc = PaymentService(session)

    with pytest.raises(ForbiddenError):
        await svc.create_payment(
            tenant.operator, cc.id, amount=Decimal("10"), payment_type="advance"
        )
    with pytest.raises(ValidationFailed, match="greater than 0"):
        await svc.create_payment(tenant.manager, cc.id, amount=Decimal("0"), payment_type="advance")
    with pytest.raises(ValidationFailed, match="Payment type"):
        await svc.create_payment(tenant.manager, cc.id, amount=Decimal("10"), payment_type="tip")

    payment = await svc.create_payment(
        tenant.manager, cc.id, amount=Decimal("450.00"), payment_type="Advance"
    )
    assert payment.status is PaymentStatus.pending
    assert payment.currency == "USD"

    payment = await svc.mark_paid(tenant.manager, payment.id, payment_reference=" UTR123 ")
    assert payment.status is PaymentStatus.paid
    assert payment.payment_reference == "UTR123"
    assert payment.payment_date is not None

    with pytest.raises(InvalidStateError, match="already marked as paid"):
        await svc.mark_paid(tenant.manager, payment.id)

    # Operators can see payments on their campaign but not record them.
    assert [p.id for p in await svc.list_payments(tenant.operator, cc.id)] == [payment.id]


@pytest.mark.asyncio
async def test_archived_campaign_freezes_roster_and_payments(
    session: AsyncSession, tenant: Tenant
) -> None:
    creators = CreatorService(session)
    kay = await creators.add_creator(tenant.admin, tenant.agency.id, display_name="Kay")
    lee = await creators.add_creator(tenant.admin, tenant.agency.id, display_name="Lee")
    cc = await creators.invite_creator(tenant.operator, tenant.campaign.id, creator_id=kay.id)
    payments = PaymentService(session)
    payment = await payments.create_payment(
        tenant.manager, cc.id, amount=Decimal("100"), payment_type="advance"
    )
    tenant.campaign.status = CampaignStatus.archived
    await session.commit()

    with pytest.raises(InvalidStateError, match="archived"):
        await creators.invite_creator(tenant.operator, tenant.campaign.id, creator_id=lee.id)
    with pytest.raises(InvalidStateError, match="archived"):
        await creators.accept_invite(tenant.operator, cc.id)
    with pytest.raises(InvalidStateError, match="archived"):
        await creators.remove_from_campaign(tenant.operator, cc.id)
    with pytest.raises(InvalidStateError, match="archived"):
        await payments.create_payment(
            tenant.manager, cc.id, amount=Decimal("50"), payment_type="final"
        )
    with pytest.raises(InvalidStateError, match="archived"):
        await payments.mark_paid(tenant.manager, payment.id)

    assert [p.id for p in await payments.list_payments(tenant.manager, cc.id)] == [payment.id]
