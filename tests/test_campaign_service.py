from __future__ import annotations

from datetime import date

import pytest
from conftest import Tenant
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import CampaignType
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.notifications import NotificationRepo
from truleado.errors import ForbiddenError, InvalidStateError, ValidationFailed
from truleado.rbac.types import CampaignRole
from truleado.services.campaign_service import CampaignService
from truleado.workflow.campaign import CampaignStatus


@pytest.mark.asyncio
async def test_create_campaign_requires_an_approver(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    with pytest.raises(ValidationFailed, match="At least one campaign approver"):
        await svc.create_campaign(
            tenant.manager,
            tenant.project.id,
            name="Autumn",
            campaign_type=CampaignType.social,
            approver_user_ids=[],
        )
    with pytest.raises(ValidationFailed, match="active members"):
        await svc.create_campaign(
            tenant.manager,
            tenant.project.id,
            name="Autumn",
            campaign_type=CampaignType.social,
            approver_user_ids=[tenant.outsider.user_id],
        )


@pytest.mark.asyncio
async def test_create_campaign_starts_in_draft(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    campaign = await svc.create_campaign(
        tenant.manager,
        tenant.project.id,
        name="Autumn",
        campaign_type=CampaignType.social,
        approver_user_ids=[tenant.approver.user_id, tenant.approver.user_id],
    )
    assert campaign.status is CampaignStatus.draft
    users = await svc.list_users(tenant.manager, campaign.id)
    assert [(u.user_id, u.role) for u in users] == [
        (tenant.approver.user_id, CampaignRole.approver)
    ]

    with pytest.raises(ForbiddenError):
        await svc.create_campaign(
            tenant.operator,
            tenant.project.id,
            name="Sneaky",
            campaign_type=CampaignType.social,
            approver_user_ids=[tenant.approver.user_id],
        )


@pytest.mark.asyncio
async def test_lifecycle_and_review_notifications(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id

    campaign = await svc.submit_for_review(tenant.manager, cid)
    assert campaign.status is CampaignStatus.in_review
    inbox = await NotificationRepo(session).list_for_user(tenant.approver.user_id, tenant.agency.id)
    assert [n.notification_type for n in inbox] == ["campaign_submitted_for_review"]

    await svc.reopen(tenant.manager, cid)
    await svc.submit_for_review(tenant.manager, cid)
    campaign = await svc.approve(tenant.admin, cid)
    assert campaign.status is CampaignStatus.approved

    # Creator and campaign operators hear about the approval.
    for user_id in (tenant.manager.user_id, tenant.operator.user_id):
        inbox = await NotificationRepo(session).list_for_user(user_id, tenant.agency.id)
        assert "campaign_approved" in {n.notification_type for n in inbox}

    await svc.complete(tenant.manager, cid)
    campaign = await svc.archive(tenant.manager, cid)
    assert campaign.status is CampaignStatus.archived

    history = await ActivityRepo(session).list_for_entity("campaign", cid)
    transitions = [e.meta["to_status"] for e in history if e.action == "status_changed"]
    assert sorted(transitions) == sorted(
        ["in_review", "active", "in_review", "approved", "completed", "archived"]
    )


@pytest.mark.asyncio
async def test_invalid_transition_and_permission(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    with pytest.raises(InvalidStateError):
        await svc.complete(tenant.manager, tenant.campaign.id)
    with pytest.raises(ForbiddenError):
        await svc.submit_for_review(tenant.operator, tenant.campaign.id)


@pytest.mark.asyncio
async def test_archived_campaign_rejects_edits(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id
    for step in (svc.submit_for_review, svc.approve, svc.complete, svc.archive):
        await step(tenant.admin, cid)

    with pytest.raises(InvalidStateError, match="archived"):
        await svc.update_brief(tenant.manager, cid, brief="late change")


@pytest.mark.asyncio
async def test_details_dates_and_brief(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id

    campaign = await svc.update_details(tenant.operator, cid, name=" Launch Reels v2 ")
    assert campaign.name == "Launch Reels v2"

    with pytest.raises(ValidationFailed, match="End date"):
        await svc.set_dates(
            tenant.operator, cid, start_date=date(2026, 5, 2), end_date=date(2026, 5, 1)
        )
    campaign = await svc.set_dates(
        tenant.operator, cid, start_date=date(2026, 5, 1), end_date=date(2026, 5, 31)
    )
    assert campaign.end_date == date(2026, 5, 31)

    campaign = await svc.update_brief(tenant.operator, cid, brief="Three reels, one story.")
    assert campaign.brief == "Three reels, one story."

    with pytest.raises(ForbiddenError):
        await svc.update_brief(tenant.floating_operator, cid, brief="nope")


@pytest.mark.asyncio
async def test_attachments(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id
    attachment = await svc.add_attachment(
        tenant.operator, cid, file_name="brief.pdf", file_url="https://files.test/brief.pdf"
    )
    assert [a.id for a in await svc.list_attachments(tenant.approver, cid)] == [attachment.id]

    await svc.remove_attachment(tenant.operator, attachment.id)
    assert await svc.list_attachments(tenant.operator, cid) == []


@pytest.mark.asyncio
async def test_campaign_keeps_at_least_one_approver(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id

    with pytest.raises(ValidationFailed, match="at least one approver"):
        await svc.remove_user(tenant.manager, cid, user_id=tenant.approver.user_id)

    await svc.assign_user(
        tenant.manager, cid, user_id=tenant.floating_operator.user_id, role=CampaignRole.approver
    )
    await svc.remove_user(tenant.manager, cid, user_id=tenant.approver.user_id)
    roles = {u.user_id: u.role for u in await svc.list_users(tenant.manager, cid)}
    assert roles == {
        tenant.operator.user_id: CampaignRole.operator,
        tenant.floating_operator.user_id: CampaignRole.approver,
    }


@pytest.mark.asyncio
async def test_sole_approver_cannot_be_reassigned_away(
    session: AsyncSession, tenant: Tenant
) -> None:
    svc = CampaignService(session)
    cid = tenant.campaign.id

    with pytest.raises(ValidationFailed, match="at least one approver"):
        await svc.assign_user(
            tenant.manager, cid, user_id=tenant.approver.user_id, role=CampaignRole.viewer
        )
    # Re-assigning the same role is a no-op change and stays allowed.
    await svc.assign_user(
        tenant.manager, cid, user_id=tenant.approver.user_id, role=CampaignRole.approver
    )

    await svc.assign_user(
        tenant.manager, cid, user_id=tenant.floating_operator.user_id, role=CampaignRole.approver
    )
    await svc.assign_user(
        tenant.manager, cid, user_id=tenant.approver.user_id, role=CampaignRole.viewer
    )
    roles = {u.user_id: u.role for u in await svc.list_users(tenant.manager, cid)}
    assert roles[tenant.approver.user_id] is CampaignRole.viewer
    assert roles[tenant.floating_operator.user_id] is CampaignRole.approver


@pytest.mark.asyncio
async def test_list_campaigns_filters_by_access(session: AsyncSession, tenant: Tenant) -> None:
    svc = CampaignService(session)
    assert [c.id for c in await svc.list_campaigns(tenant.manager, tenant.project.id)] == [
        tenant.campaign.id
    ]
    with pytest.raises(ForbiddenError):
        await svc.list_campaigns(tenant.other_manager, tenant.project.id)
