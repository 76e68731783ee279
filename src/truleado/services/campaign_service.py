"""
truleado.services.campaign_service

Campaign lifecycle: creation, status transitions, details and brief,
attachments and user assignments.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import Campaign, CampaignAttachment, CampaignType, CampaignUser
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.campaigns import CampaignRepo
from truleado.db.repositories.projects import ProjectRepo
from truleado.errors import NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver, CampaignScope
from truleado.rbac.types import CampaignRole, Permission
from truleado.services.activity_service import snapshot
from truleado.services.notification_service import NotificationService
from truleado.workflow.campaign import CampaignStatus, ensure_mutable, validate_transition

log = get_logger(__name__)

_STATE_FIELDS = ("name", "campaign_type", "description", "status", "start_date", "end_date")


class CampaignService:
    def __init__(
        self, session: AsyncSession, *, notifications: NotificationService | None = None
    ) -> None:
        self._session = session
        self._campaigns = CampaignRepo(session)
        self._projects = ProjectRepo(session)
        self._agencies = AgencyRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)
        self._notifications = notifications or NotificationService(session)

    async def _load(self, campaign_id: uuid.UUID, *, for_update: bool = False) -> Campaign:
        campaign = await self._campaigns.get(campaign_id, for_update=for_update)
        if campaign is None:
            raise NotFoundError("Campaign", campaign_id)
        return campaign

    # --- create / read ------------------------------------------------------

    async def create_campaign(
        self,
        actor: Actor,
        project_id: uuid.UUID,
        *,
        name: str,
        campaign_type: CampaignType,
        approver_user_ids: list[uuid.UUID],
        description: str | None = None,
    ) -> Campaign:
        approver_ids = list(dict.fromkeys(u for u in approver_user_ids if u))
        if not approver_ids:
            raise ValidationFailed(
                "At least one campaign approver is required", field="approver_user_ids"
            )

        project = await self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        agency_id = await self._rbac.require_client_access(actor, project.client_id, manage=True)

        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationFailed("Campaign name must be at least 2 characters", field="name")

        for user_id in approver_ids:
            member = await self._agencies.membership(agency_id, user_id)
            if member is None or not member.is_active:
                raise ValidationFailed(
                    "Campaign approvers must be active members of the agency",
                    field="approver_user_ids",
                    user_id=str(user_id),
                )

        campaign = await self._campaigns.add(
            Campaign(
                project_id=project_id,
                name=name,
                campaign_type=campaign_type,
                description=(description or "").strip() or None,
                status=CampaignStatus.draft,
                created_by=actor.user_id,
            )
        )
        for user_id in approver_ids:
            await self._campaigns.assign(campaign.id, user_id, CampaignRole.approver)

        await self._activity.add(
            agency_id=agency_id,
            entity_type="campaign",
            entity_id=campaign.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(campaign, *_STATE_FIELDS),
            metadata={"approver_user_ids": [str(u) for u in approver_ids]},
        )
        await self._session.commit()
        log.info("campaign_created", campaign_id=campaign.id, project_id=project_id)
        return campaign

    async def get_campaign(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        await self._rbac.require_campaign_access(actor, campaign_id)
        return await self._load(campaign_id)

    async def list_campaigns(self, actor: Actor, project_id: uuid.UUID) -> list[Campaign]:
        await self._rbac.require_project_access(actor, project_id)
        campaigns = await self._campaigns.list_for_project(project_id)
        visible = []
        for c in campaigns:
            if (await self._rbac.campaign_access(actor, c.id)).allowed:
                visible.append(c)
        return visible

    async def list_users(self, actor: Actor, campaign_id: uuid.UUID) -> list[CampaignUser]:
        await self._rbac.require_campaign_access(actor, campaign_id)
        return await self._campaigns.assignments(campaign_id)

    # --- transitions --------------------------------------------------------

    async def _transition(
        self, actor: Actor, campaign_id: uuid.UUID, target: CampaignStatus
    ) -> Campaign:
        scope = await self._rbac.require_campaign_access(
            actor, campaign_id, Permission.transition_campaign
        )
        campaign = await self._load(campaign_id, for_update=True)
        current = campaign.status
        validate_transition(current, target)

        before = snapshot(campaign, *_STATE_FIELDS)
        campaign.status = target
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=campaign_id,
            action="status_changed",
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(campaign, *_STATE_FIELDS),
            metadata={"from_status": current.value, "to_status": target.value},
        )

        if target is CampaignStatus.in_review:
            approvers = await self._campaigns.user_ids_with_role(
                campaign_id, CampaignRole.approver
            )
            await self._notifications.notify(
                agency_id=scope.agency_id,
                user_ids=approvers,
                notification_type="campaign_submitted_for_review",
                title="Campaign ready for review",
                message=f"{campaign.name} was submitted for review.",
                entity_type="campaign",
                entity_id=campaign_id,
                exclude=actor.user_id,
            )
        elif target is CampaignStatus.approved:
            operators = await self._campaigns.user_ids_with_role(
                campaign_id, CampaignRole.operator
            )
            await self._notifications.notify(
                agency_id=scope.agency_id,
                user_ids=[campaign.created_by, *operators],
                notification_type="campaign_approved",
                title="Campaign review complete",
                message=f"{campaign.name} was approved.",
                entity_type="campaign",
                entity_id=campaign_id,
                exclude=actor.user_id,
            )

        await self._session.commit()
        await self._notifications.dispatch()
        log.info(
            "campaign_transitioned",
            campaign_id=campaign_id,
            from_status=current.value,
            to_status=target.value,
        )
        return campaign

    async def activate(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        return await self._transition(actor, campaign_id, CampaignStatus.active)

    async def submit_for_review(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        return await self._transition(actor, campaign_id, CampaignStatus.in_review)

    async def approve(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        return await self._transition(actor, campaign_id, CampaignStatus.approved)

    async def reopen(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        # in_review -> active sends a campaign back for more work.
        return await self._transition(actor, campaign_id, CampaignStatus.active)

    async def complete(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        return await self._transition(actor, campaign_id, CampaignStatus.completed)

    async def archive(self, actor: Actor, campaign_id: uuid.UUID) -> Campaign:
        return await self._transition(actor, campaign_id, CampaignStatus.archived)

    # --- details ------------------------------------------------------------

    async def _mutable(
        self, actor: Actor, campaign_id: uuid.UUID
    ) -> tuple[CampaignScope, Campaign]:
        scope = await self._rbac.require_campaign_access(
            actor, campaign_id, Permission.manage_campaign
        )
        campaign = await self._load(campaign_id, for_update=True)
        ensure_mutable(campaign.status)
        return scope, campaign

    async def _record_update(
        self,
        actor: Actor,
        agency_id: uuid.UUID,
        campaign: Campaign,
        action: str,
        before: dict[str, Any],
    ) -> Campaign:
        await self._activity.add(
            agency_id=agency_id,
            entity_type="campaign",
            entity_id=campaign.id,
            action=action,
            actor_id=actor.user_id,
            before_state=before,
            after_state=snapshot(campaign, *_STATE_FIELDS),
        )
        await self._session.commit()
        return campaign

    async def update_details(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        *,
        name: str | None = None,
        description: str | None = None,
    ) -> Campaign:
        scope, campaign = await self._mutable(actor, campaign_id)
        before = snapshot(campaign, *_STATE_FIELDS)
        if name is not None:
            name = name.strip()
            if len(name) < 2:
                raise ValidationFailed("Campaign name must be at least 2 characters", field="name")
            campaign.name = name
        if description is not None:
            campaign.description = description.strip() or None
        return await self._record_update(
            actor, scope.agency_id, campaign, "details_updated", before
        )

    async def set_dates(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        *,
        start_date: date | None,
        end_date: date | None,
    ) -> Campaign:
        if start_date and end_date and end_date < start_date:
            raise ValidationFailed("End date must be on or after start date", field="end_date")
        scope, campaign = await self._mutable(actor, campaign_id)
        before = snapshot(campaign, *_STATE_FIELDS)
        campaign.start_date = start_date
        campaign.end_date = end_date
        return await self._record_update(actor, scope.agency_id, campaign, "dates_updated", before)

    async def update_brief(self, actor: Actor, campaign_id: uuid.UUID, *, brief: str) -> Campaign:
        scope, campaign = await self._mutable(actor, campaign_id)
        before = {"brief": campaign.brief}
        campaign.brief = brief
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=campaign.id,
            action="brief_updated",
            actor_id=actor.user_id,
            before_state=before,
            after_state={"brief": brief},
        )
        await self._session.commit()
        return campaign

    async def add_attachment(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        *,
        file_name: str,
        file_url: str,
        file_size: int | None = None,
        mime_type: str | None = None,
    ) -> CampaignAttachment:
        scope, _ = await self._mutable(actor, campaign_id)
        if not file_name.strip() or not file_url.strip():
            raise ValidationFailed("File name and URL are required", field="file_url")
        attachment = await self._campaigns.add_attachment(
            CampaignAttachment(
                campaign_id=campaign_id,
                file_name=file_name.strip(),
                file_url=file_url.strip(),
                file_size=file_size,
                mime_type=mime_type,
                uploaded_by=actor.user_id,
            )
        )
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=campaign_id,
            action="attachment_added",
            actor_id=actor.user_id,
            metadata={"attachment_id": str(attachment.id), "file_name": attachment.file_name},
        )
        await self._session.commit()
        return attachment

    async def remove_attachment(self, actor: Actor, attachment_id: uuid.UUID) -> None:
        attachment = await self._campaigns.get_attachment(attachment_id)
        if attachment is None:
            raise NotFoundError("CampaignAttachment", attachment_id)
        scope, _ = await self._mutable(actor, attachment.campaign_id)
        await self._campaigns.remove_attachment(attachment)
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=attachment.campaign_id,
            action="attachment_removed",
            actor_id=actor.user_id,
            metadata={"attachment_id": str(attachment_id), "file_name": attachment.file_name},
        )
        await self._session.commit()

    async def list_attachments(
        self, actor: Actor, campaign_id: uuid.UUID
    ) -> list[CampaignAttachment]:
        await self._rbac.require_campaign_access(actor, campaign_id)
        return await self._campaigns.attachments(campaign_id)

    # --- assignments --------------------------------------------------------

    async def _keep_an_approver(self, campaign_id: uuid.UUID, row: CampaignUser) -> None:
        if row.role is not CampaignRole.approver:
            return
        approvers = await self._campaigns.user_ids_with_role(campaign_id, CampaignRole.approver)
        if len(approvers) <= 1:
            raise ValidationFailed("A campaign must keep at least one approver", field="user_id")

    async def assign_user(
        self, actor: Actor, campaign_id: uuid.UUID, *, user_id: uuid.UUID, role: CampaignRole
    ) -> CampaignUser:
        scope, _ = await self._mutable(actor, campaign_id)
        member = await self._agencies.membership(scope.agency_id, user_id)
        if member is None or not member.is_active:
            raise ValidationFailed("User must be an active member of the agency", field="user_id")

        existing = await self._campaigns.assignment(campaign_id, user_id)
        if existing is not None and role is not CampaignRole.approver:
            await self._keep_an_approver(campaign_id, existing)
        before = {"role": existing.role.value} if existing is not None else None
        row = await self._campaigns.assign(campaign_id, user_id, role)
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=campaign_id,
            action="user_assigned",
            actor_id=actor.user_id,
            before_state=before,
            after_state={"user_id": str(user_id), "role": role.value},
        )
        await self._session.commit()
        return row

    async def remove_user(
        self, actor: Actor, campaign_id: uuid.UUID, *, user_id: uuid.UUID
    ) -> None:
        scope, _ = await self._mutable(actor, campaign_id)
        row = await self._campaigns.assignment(campaign_id, user_id)
        if row is None:
            raise NotFoundError("CampaignUser", user_id)
        await self._keep_an_approver(campaign_id, row)
        role = row.role
        await self._campaigns.unassign(row)
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="campaign",
            entity_id=campaign_id,
            action="user_removed",
            actor_id=actor.user_id,
            before_state={"user_id": str(user_id), "role": role.value},
        )
        await self._session.commit()
