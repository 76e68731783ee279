"""
truleado.services.deliverable_service

Deliverables, file versions and the multi-level approval flow.

Responsibilities:
- Create deliverables and manage uploaded versions.
- Drive the review state machine (`workflow.deliverable`) and record immutable approvals.
- Notify whoever the deliverable is now waiting on.
- Store post-approval tracking URLs.
"""

from __future__ import annotations

import uuid
from datetime import date
from typing import Any

from pydantic import HttpUrl, TypeAdapter, ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import (
    Approval,
    Contact,
    Deliverable,
    DeliverableTrackingUrl,
    DeliverableVersion,
)
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.campaigns import CampaignRepo
from truleado.db.repositories.deliverables import DeliverableRepo
from truleado.db.repositories.projects import ProjectRepo
from truleado.errors import InvalidStateError, NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver, CampaignScope
from truleado.rbac.types import CampaignRole, Permission
from truleado.services.activity_service import snapshot
from truleado.services.notification_service import NotificationService
from truleado.settings import Settings, get_settings
from truleado.workflow.campaign import ensure_mutable
from truleado.workflow.deliverable import (
    EDITABLE_STATUSES,
    SUBMITTABLE_STATUSES,
    ApprovalLevel,
    Decision,
    DeliverableStatus,
    decide,
    validate_transition,
)

log = get_logger(__name__)

_http_url = TypeAdapter(HttpUrl)

LEVEL_PERMISSION: dict[ApprovalLevel, Permission] = {
    ApprovalLevel.internal: Permission.approve_internal,
    ApprovalLevel.project: Permission.approve_project,
    ApprovalLevel.client: Permission.approve_client,
}


class DeliverableService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        settings: Settings | None = None,
        notifications: NotificationService | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._deliverables = DeliverableRepo(session)
        self._campaigns = CampaignRepo(session)
        self._projects = ProjectRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)
        self._notifications = notifications or NotificationService(session)

    async def _load(self, deliverable_id: uuid.UUID, *, for_update: bool = False) -> Deliverable:
        deliverable = await self._deliverables.get(deliverable_id, for_update=for_update)
        if deliverable is None:
            raise NotFoundError("Deliverable", deliverable_id)
        return deliverable

    async def _authorize(
        self,
        actor: Actor,
        deliverable_id: uuid.UUID,
        permission: Permission,
        *,
        mutating: bool = False,
    ) -> tuple[CampaignScope, Deliverable]:
        deliverable = await self._load(deliverable_id, for_update=mutating)
        scope = await self._rbac.require_campaign_access(
            actor, deliverable.campaign_id, permission
        )
        if mutating:
            ensure_mutable(scope.campaign_status)
        return scope, deliverable

    async def _log(
        self,
        actor: Actor,
        scope: CampaignScope,
        deliverable: Deliverable,
        action: str,
        *,
        before: DeliverableStatus | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        await self._activity.add(
            agency_id=scope.agency_id,
            entity_type="deliverable",
            entity_id=deliverable.id,
            action=action,
            actor_id=actor.user_id,
            before_state={"status": before.value} if before is not None else None,
            after_state=snapshot(deliverable, "title", "status"),
            metadata=metadata,
        )

    # --- deliverables -------------------------------------------------------

    async def create_deliverable(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        *,
        title: str,
        deliverable_type: str,
        description: str | None = None,
        due_date: date | None = None,
    ) -> Deliverable:
        scope = await self._rbac.require_campaign_access(
            actor, campaign_id, Permission.create_deliverable
        )
        campaign = await self._campaigns.get(campaign_id)
        if campaign is None:
            raise NotFoundError("Campaign", campaign_id)
        ensure_mutable(campaign.status)

        title = (title or "").strip()
        if len(title) < 2:
            raise ValidationFailed("Deliverable title must be at least 2 characters", field="title")
        if not (deliverable_type or "").strip():
            raise ValidationFailed("Deliverable type is required", field="deliverable_type")

        deliverable = await self._deliverables.add(
            Deliverable(
                campaign_id=campaign_id,
                title=title,
                deliverable_type=deliverable_type.strip(),
                description=(description or "").strip() or None,
                due_date=due_date,
                status=DeliverableStatus.pending,
                version_counter=0,
            )
        )
        await self._log(actor, scope, deliverable, "created")
        await self._session.commit()
        log.info("deliverable_created", deliverable_id=deliverable.id, campaign_id=campaign_id)
        return deliverable

    async def get_deliverable(self, actor: Actor, deliverable_id: uuid.UUID) -> Deliverable:
        _, deliverable = await self._authorize(actor, deliverable_id, Permission.view_deliverable)
        return deliverable

    async def list_deliverables(self, actor: Actor, campaign_id: uuid.UUID) -> list[Deliverable]:
        await self._rbac.require_campaign_access(actor, campaign_id, Permission.view_deliverable)
        return await self._deliverables.list_for_campaign(campaign_id)

    # --- versions -----------------------------------------------------------

    async def list_versions(
        self, actor: Actor, deliverable_id: uuid.UUID
    ) -> list[DeliverableVersion]:
        await self._authorize(actor, deliverable_id, Permission.view_deliverable)
        return await self._deliverables.versions(deliverable_id)

    async def upload_version(
        self,
        actor: Actor,
        deliverable_id: uuid.UUID,
        *,
        file_url: str,
        file_name: str | None = None,
        file_size: int | None = None,
        mime_type: str | None = None,
        caption: str | None = None,
    ) -> DeliverableVersion:
        scope, deliverable = await self._authorize(
            actor, deliverable_id, Permission.upload_version, mutating=True
        )
        if deliverable.status is DeliverableStatus.approved:
            raise InvalidStateError(
                "Cannot upload new versions to an approved deliverable",
                current_state=deliverable.status.value,
                attempted_transition="upload_version",
            )
        if not (file_url or "").strip():
            raise ValidationFailed("File URL is required", field="file_url")

        deliverable.version_counter = (deliverable.version_counter or 0) + 1
        version = await self._deliverables.add_version(
            DeliverableVersion(
                deliverable_id=deliverable_id,
                version_number=deliverable.version_counter,
                file_url=file_url.strip(),
                file_name=file_name,
                file_size=file_size,
                mime_type=mime_type,
                caption=caption,
                submitted_by=actor.user_id,
            )
        )
        await self._log(
            actor,
            scope,
            deliverable,
            "version_uploaded",
            metadata={"version_id": str(version.id), "version_number": version.version_number},
        )
        await self._session.commit()
        log.info(
            "deliverable_version_uploaded",
            deliverable_id=deliverable_id,
            version_number=version.version_number,
        )
        return version

    async def _editable_version(
        self, actor: Actor, version_id: uuid.UUID
    ) -> tuple[CampaignScope, Deliverable, DeliverableVersion]:
        version = await self._deliverables.get_version(version_id)
        if version is None:
            raise NotFoundError("DeliverableVersion", version_id)
        scope, deliverable = await self._authorize(
            actor, version.deliverable_id, Permission.upload_version, mutating=True
        )
        if deliverable.status not in EDITABLE_STATUSES:
            raise InvalidStateError(
                f"Versions cannot be changed while the deliverable is {deliverable.status.value}",
                current_state=deliverable.status.value,
            )
        return scope, deliverable, version

    async def update_version_caption(
        self, actor: Actor, version_id: uuid.UUID, *, caption: str | None
    ) -> DeliverableVersion:
        scope, deliverable, version = await self._editable_version(actor, version_id)
        version.caption = (caption or "").strip() or None
        await self._log(
            actor,
            scope,
            deliverable,
            "version_caption_updated",
            metadata={"version_id": str(version.id)},
        )
        await self._session.commit()
        return version

    async def delete_version(self, actor: Actor, version_id: uuid.UUID) -> None:
        scope, deliverable, version = await self._editable_version(actor, version_id)
        if await self._deliverables.version_has_approvals(version.id):
            raise InvalidStateError(
                "Reviewed versions cannot be deleted",
                current_state=deliverable.status.value,
                attempted_transition="delete_version",
            )
        number = version.version_number
        await self._deliverables.delete_version(version)
        await self._log(
            actor,
            scope,
            deliverable,
            "version_deleted",
            metadata={"version_id": str(version_id), "version_number": number},
        )
        await self._session.commit()

    # --- review flow --------------------------------------------------------

    async def submit_for_review(self, actor: Actor, deliverable_id: uuid.UUID) -> Deliverable:
        scope, deliverable = await self._authorize(
            actor, deliverable_id, Permission.upload_version, mutating=True
        )
        current = deliverable.status
        if current not in SUBMITTABLE_STATUSES:
            raise InvalidStateError(
                f"Cannot submit deliverable in {current.value} status",
                current_state=current.value,
                attempted_transition=DeliverableStatus.submitted.value,
            )
        if await self._deliverables.latest_version(deliverable_id) is None:
            raise ValidationFailed("Cannot submit deliverable without any uploaded versions")

        validate_transition(current, DeliverableStatus.submitted)
        deliverable.status = DeliverableStatus.submitted
        await self._log(actor, scope, deliverable, "submitted", before=current)

        approvers = await self._campaigns.user_ids_with_role(
            deliverable.campaign_id, CampaignRole.approver
        )
        await self._notifications.notify(
            agency_id=scope.agency_id,
            user_ids=approvers,
            notification_type="deliverable_submitted",
            title="Deliverable submitted",
            message=f"{deliverable.title} is ready for review.",
            entity_type="deliverable",
            entity_id=deliverable.id,
            exclude=actor.user_id,
        )
        await self._session.commit()
        await self._notifications.dispatch()
        log.info("deliverable_submitted", deliverable_id=deliverable_id)
        return deliverable

    async def start_review(self, actor: Actor, deliverable_id: uuid.UUID) -> Deliverable:
        scope, deliverable = await self._authorize(
            actor, deliverable_id, Permission.approve_internal, mutating=True
        )
        current = deliverable.status
        validate_transition(current, DeliverableStatus.internal_review)
        deliverable.status = DeliverableStatus.internal_review
        await self._log(actor, scope, deliverable, "review_started", before=current)
        await self._session.commit()
        return deliverable

    async def approve(
        self,
        actor: Actor,
        deliverable_id: uuid.UUID,
        *,
        version_id: uuid.UUID,
        level: ApprovalLevel,
        comment: str | None = None,
    ) -> Approval:
        return await self._decide(
            actor, deliverable_id, version_id, level, Decision.approved, comment
        )

    async def reject(
        self,
        actor: Actor,
        deliverable_id: uuid.UUID,
        *,
        version_id: uuid.UUID,
        level: ApprovalLevel,
        comment: str,
    ) -> Approval:
        if not (comment or "").strip():
            raise ValidationFailed(
                "A comment is required when rejecting a deliverable", field="comment"
            )
        return await self._decide(
            actor, deliverable_id, version_id, level, Decision.rejected, comment
        )

    async def _decide(
        self,
        actor: Actor,
        deliverable_id: uuid.UUID,
        version_id: uuid.UUID,
        level: ApprovalLevel,
        decision: Decision,
        comment: str | None,
    ) -> Approval:
        scope, deliverable = await self._authorize(
            actor, deliverable_id, LEVEL_PERMISSION[level], mutating=True
        )

        version = await self._deliverables.get_version(version_id)
        if version is None or version.deliverable_id != deliverable_id:
            raise NotFoundError("DeliverableVersion", version_id)
        latest = await self._deliverables.latest_version(deliverable_id)
        if latest is None or latest.id != version.id:
            raise ValidationFailed(
                "Only the latest version can be reviewed",
                field="version_id",
                latest_version_id=str(latest.id) if latest else None,
            )

        current = deliverable.status
        target = decide(
            current,
            level,
            decision,
            project_stage_enabled=await self._rbac.project_has_approvers(scope.project_id),
        )

        approval = await self._deliverables.add_approval(
            Approval(
                deliverable_id=deliverable_id,
                deliverable_version_id=version.id,
                approval_level=level,
                decision=decision,
                comment=(comment or "").strip() or None,
                decided_by=actor.user_id,
            )
        )
        deliverable.status = target
        await self._log(
            actor,
            scope,
            deliverable,
            f"{level.value}_{decision.value}",
            before=current,
            metadata={"approval_id": str(approval.id), "version_id": str(version.id)},
        )
        await self._notify_next(actor, scope, deliverable, version, decision)
        await self._session.commit()
        await self._notifications.dispatch()
        log.info(
            "deliverable_decided",
            deliverable_id=deliverable_id,
            level=level.value,
            decision=decision.value,
            status=target.value,
        )
        return approval

    async def _client_approver_ids(self, client_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(Contact.user_id).where(
            Contact.client_id == client_id,
            Contact.is_client_approver.is_(True),
            Contact.user_id.is_not(None),
        )
        return list((await self._session.execute(stmt)).scalars().all())

    async def _notify_next(
        self,
        actor: Actor,
        scope: CampaignScope,
        deliverable: Deliverable,
        version: DeliverableVersion,
        decision: Decision,
    ) -> None:
        status = deliverable.status
        operators = await self._campaigns.user_ids_with_role(
            deliverable.campaign_id, CampaignRole.operator
        )
        if decision is Decision.rejected:
            recipients = [version.submitted_by, *operators]
            kind, title = "deliverable_rejected", "Deliverable needs changes"
            message = f"{deliverable.title} was rejected."
        elif status is DeliverableStatus.pending_project_approval:
            recipients = await self._projects.approver_ids(scope.project_id)
            kind, title = "deliverable_awaiting_project_approval", "Project approval needed"
            message = f"{deliverable.title} is waiting for project approval."
        elif status is DeliverableStatus.client_review:
            recipients = await self._client_approver_ids(scope.client_id)
            kind, title = "deliverable_awaiting_client_approval", "Client approval needed"
            message = f"{deliverable.title} is waiting for your approval."
        else:
            recipients = [version.submitted_by, *operators]
            kind, title = "deliverable_approved", "Deliverable approved"
            message = f"{deliverable.title} is fully approved."

        await self._notifications.notify(
            agency_id=scope.agency_id,
            user_ids=recipients,
            notification_type=kind,
            title=title,
            message=message,
            entity_type="deliverable",
            entity_id=deliverable.id,
            exclude=actor.user_id,
        )

    async def list_approvals(self, actor: Actor, deliverable_id: uuid.UUID) -> list[Approval]:
        await self._authorize(actor, deliverable_id, Permission.view_deliverable)
        return await self._deliverables.approvals(deliverable_id)

    async def pending_client_approvals(self, actor: Actor) -> list[Deliverable]:
        return await self._deliverables.awaiting_client(actor.user_id)

    # --- tracking -----------------------------------------------------------

    async def start_tracking(
        self, actor: Actor, deliverable_id: uuid.UUID, *, urls: list[str]
    ) -> list[DeliverableTrackingUrl]:
        cleaned = [u.strip() for u in urls if u and u.strip()]
        if not cleaned:
            raise ValidationFailed("At least one URL is required", field="urls")
        limit = self._settings.max_tracking_urls
        if len(cleaned) > limit:
            raise ValidationFailed(f"You can add up to {limit} URLs", field="urls")
        for i, url in enumerate(cleaned):
            try:
                _http_url.validate_python(url)
            except ValidationError as e:
                raise ValidationFailed(
                    "URLs must be valid http(s) links", field="urls", index=i
                ) from e

        scope, deliverable = await self._authorize(
            actor, deliverable_id, Permission.upload_version, mutating=True
        )
        if deliverable.status is not DeliverableStatus.approved:
            raise InvalidStateError(
                "Tracking can only start once the deliverable is approved",
                current_state=deliverable.status.value,
                attempted_transition="start_tracking",
            )
        if await self._deliverables.tracking_urls(deliverable_id):
            raise InvalidStateError(
                "Tracking already started for this deliverable", current_state="tracking_started"
            )

        rows = [
            DeliverableTrackingUrl(
                deliverable_id=deliverable_id,
                url=url,
                display_order=i,
                created_by=actor.user_id,
            )
            for i, url in enumerate(cleaned)
        ]
        await self._deliverables.add_tracking_urls(rows)
        await self._log(
            actor, scope, deliverable, "tracking_started", metadata={"url_count": len(rows)}
        )
        await self._session.commit()
        return rows

    async def tracking_urls(
        self, actor: Actor, deliverable_id: uuid.UUID
    ) -> list[DeliverableTrackingUrl]:
        await self._authorize(actor, deliverable_id, Permission.view_deliverable)
        return await self._deliverables.tracking_urls(deliverable_id)
