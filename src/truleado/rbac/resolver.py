"""
truleado.rbac.resolver

Access resolution against persisted assignments.

Responsibilities:
- Resolve campaign access through the fixed chain:
  campaign assignment -> project assignment -> client ownership -> agency role -> deny.
- Resolve client, project and agency-scoped checks.
- Translate denials into `ForbiddenError` for the `require_*` helpers.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import (
    AgencyUser,
    Campaign,
    CampaignUser,
    Client,
    Contact,
    Project,
    ProjectApprover,
    ProjectUser,
)
from truleado.errors import ForbiddenError, NotFoundError
from truleado.observability.logging import get_logger
from truleado.rbac.permissions import (
    AGENCY_ROLE_PERMISSIONS,
    AGENCY_WIDE_CAMPAIGN_PERMISSIONS,
    permissions_for,
)
from truleado.rbac.types import (
    AccessDecision,
    AccessLevel,
    AgencyRole,
    ClientRole,
    Permission,
    ProjectRole,
)
from truleado.workflow.campaign import CampaignStatus

log = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CampaignScope:
    campaign_id: uuid.UUID
    project_id: uuid.UUID
    client_id: uuid.UUID
    agency_id: uuid.UUID
    account_manager_id: uuid.UUID
    campaign_status: CampaignStatus


class AccessResolver:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # --- lookups ------------------------------------------------------------

    async def campaign_scope(self, campaign_id: uuid.UUID) -> CampaignScope:
        stmt = (
            select(
                Campaign.id,
                Campaign.project_id,
                Project.client_id,
                Client.agency_id,
                Client.account_manager_id,
                Campaign.status,
            )
            .join(Project, Project.id == Campaign.project_id)
            .join(Client, Client.id == Project.client_id)
            .where(Campaign.id == campaign_id)
        )
        row = (await self._session.execute(stmt)).one_or_none()
        if row is None:
            raise NotFoundError("Campaign", campaign_id)
        return CampaignScope(*row)

    async def agency_id_for_client(self, client_id: uuid.UUID) -> uuid.UUID:
        agency_id = await self._session.scalar(
            select(Client.agency_id).where(Client.id == client_id)
        )
        if agency_id is None:
            raise NotFoundError("Client", client_id)
        return agency_id

    async def agency_id_for_project(self, project_id: uuid.UUID) -> uuid.UUID:
        stmt = (
            select(Client.agency_id)
            .join(Project, Project.client_id == Client.id)
            .where(Project.id == project_id)
        )
        agency_id = await self._session.scalar(stmt)
        if agency_id is None:
            raise NotFoundError("Project", project_id)
        return agency_id

    async def agency_id_for_campaign(self, campaign_id: uuid.UUID) -> uuid.UUID:
        return (await self.campaign_scope(campaign_id)).agency_id

    async def agency_role(self, user_id: uuid.UUID, agency_id: uuid.UUID) -> AgencyRole | None:
        stmt = select(AgencyUser.role).where(
            AgencyUser.agency_id == agency_id,
            AgencyUser.user_id == user_id,
            AgencyUser.is_active.is_(True),
        )
        return await self._session.scalar(stmt)

    async def client_contact_for(self, user_id: uuid.UUID, client_id: uuid.UUID) -> Contact | None:
        stmt = select(Contact).where(Contact.client_id == client_id, Contact.user_id == user_id)
        return (await self._session.execute(stmt)).scalars().first()

    async def is_project_approver(self, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
        return await self._exists(
            select(func.count())
            .select_from(ProjectApprover)
            .where(ProjectApprover.project_id == project_id, ProjectApprover.user_id == user_id)
        )

    async def project_has_approvers(self, project_id: uuid.UUID) -> bool:
        return await self._exists(
            select(func.count())
            .select_from(ProjectApprover)
            .where(ProjectApprover.project_id == project_id)
        )

    async def _is_project_user(self, user_id: uuid.UUID, project_id: uuid.UUID) -> bool:
        return await self._exists(
            select(func.count())
            .select_from(ProjectUser)
            .where(ProjectUser.project_id == project_id, ProjectUser.user_id == user_id)
        )

    async def _exists(self, count_stmt) -> bool:  # type: ignore[no-untyped-def]
        return bool(await self._session.scalar(count_stmt))

    async def _project_roles(self, user_id: uuid.UUID, project_id: uuid.UUID) -> list[ProjectRole]:
        roles: list[ProjectRole] = []
        if await self._is_project_user(user_id, project_id):
            roles.append(ProjectRole.operator)
        if await self.is_project_approver(user_id, project_id):
            roles.append(ProjectRole.approver)
        return roles

    async def _contact_role(self, user_id: uuid.UUID, client_id: uuid.UUID) -> ClientRole | None:
        contact = await self.client_contact_for(user_id, client_id)
        if contact is None:
            return None
        return ClientRole.approver if contact.is_client_approver else ClientRole.viewer

    # --- campaign chain -----------------------------------------------------

    async def campaign_access(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        permission: Permission | None = None,
    ) -> AccessDecision:
        """
        Resolve `permission` on a campaign (None means "may view").

        Each level either grants, or falls through to the next one; the denial
        returned at the end carries the reason of the most specific level that
        applied to the actor.
        """

        perm = permission or Permission.view_campaign
        scope = await self.campaign_scope(campaign_id)
        decision = await self._resolve_campaign(actor, scope, perm)
        log.debug(
            "campaign_access_resolved",
            user_id=actor.user_id,
            campaign_id=campaign_id,
            permission=perm.value,
            allowed=decision.allowed,
            level=decision.level.value if decision.level else None,
        )
        return decision

    async def _resolve_campaign(
        self, actor: Actor, scope: CampaignScope, perm: Permission
    ) -> AccessDecision:
        agency_role = await self.agency_role(actor.user_id, scope.agency_id)

        if agency_role is None:
            # Outside the agency only brand contacts of the campaign's client get in.
            contact_role = await self._contact_role(actor.user_id, scope.client_id)
            if contact_role is None:
                return AccessDecision.deny("Not a member of this agency")
            if perm in permissions_for(contact_role):
                return AccessDecision.grant(AccessLevel.client)
            return AccessDecision.deny(f"Client {contact_role.value} does not have {perm.value}")

        reason: str | None = None

        campaign_role = await self._session.scalar(
            select(CampaignUser.role).where(
                CampaignUser.campaign_id == scope.campaign_id,
                CampaignUser.user_id == actor.user_id,
            )
        )
        if campaign_role is not None:
            if perm in permissions_for(campaign_role):
                return AccessDecision.grant(AccessLevel.campaign)
            reason = f"Campaign role {campaign_role.value} does not have {perm.value}"

        project_roles = await self._project_roles(actor.user_id, scope.project_id)
        if any(perm in permissions_for(r) for r in project_roles):
            return AccessDecision.grant(AccessLevel.project)
        if project_roles and reason is None:
            reason = f"Project assignment does not grant {perm.value}"

        if scope.account_manager_id == actor.user_id:
            if perm in AGENCY_ROLE_PERMISSIONS[AgencyRole.account_manager]:
                return AccessDecision.grant(AccessLevel.client)
            reason = reason or f"Account manager does not have {perm.value}"

        if perm in AGENCY_WIDE_CAMPAIGN_PERMISSIONS.get(agency_role, frozenset()):
            return AccessDecision.grant(AccessLevel.agency)

        if reason is None:
            if agency_role is AgencyRole.operator:
                reason = "Operator must be assigned to campaign for this action"
            elif agency_role is AgencyRole.internal_approver:
                reason = "Internal approvers have limited campaign access"
            elif agency_role is AgencyRole.account_manager:
                reason = "Account managers only access campaigns of their own clients"
            else:
                reason = "Access denied"
        return AccessDecision.deny(reason)

    async def require_campaign_access(
        self,
        actor: Actor,
        campaign_id: uuid.UUID,
        permission: Permission | None = None,
    ) -> CampaignScope:
        scope = await self.campaign_scope(campaign_id)
        decision = await self._resolve_campaign(
            actor, scope, permission or Permission.view_campaign
        )
        if not decision.allowed:
            raise ForbiddenError(
                decision.reason or "You do not have access to this campaign",
                campaign_id=str(campaign_id),
                permission=(permission or Permission.view_campaign).value,
            )
        return scope

    # --- client / project ---------------------------------------------------

    async def client_access(
        self, actor: Actor, client_id: uuid.UUID, *, manage: bool = False
    ) -> AccessDecision:
        agency_id = await self.agency_id_for_client(client_id)
        role = await self.agency_role(actor.user_id, agency_id)
        if role is None:
            if not manage and await self._contact_role(actor.user_id, client_id) is not None:
                return AccessDecision.grant(AccessLevel.client)
            return AccessDecision.deny("You do not have access to this client")

        if role is AgencyRole.agency_admin:
            return AccessDecision.grant(AccessLevel.agency)

        owner_id = await self._session.scalar(
            select(Client.account_manager_id).where(Client.id == client_id)
        )
        if owner_id == actor.user_id:
            return AccessDecision.grant(AccessLevel.client)
        if manage:
            return AccessDecision.deny(
                "Only agency admins and account managers can manage this client"
            )
        if role is AgencyRole.account_manager:
            return AccessDecision.deny("Account managers only access their own clients")
        return AccessDecision.grant(AccessLevel.agency)

    async def require_client_access(
        self, actor: Actor, client_id: uuid.UUID, *, manage: bool = False
    ) -> uuid.UUID:
        decision = await self.client_access(actor, client_id, manage=manage)
        if not decision.allowed:
            raise ForbiddenError(decision.reason, client_id=str(client_id))
        return await self.agency_id_for_client(client_id)

    async def project_access(
        self, actor: Actor, project_id: uuid.UUID, *, manage: bool = False
    ) -> AccessDecision:
        client_id = await self._session.scalar(
            select(Project.client_id).where(Project.id == project_id)
        )
        if client_id is None:
            raise NotFoundError("Project", project_id)

        if not manage:
            agency_id = await self.agency_id_for_client(client_id)
            if await self.agency_role(actor.user_id, agency_id) is not None and (
                await self._project_roles(actor.user_id, project_id)
            ):
                return AccessDecision.grant(AccessLevel.project)
        return await self.client_access(actor, client_id, manage=manage)

    async def require_project_access(
        self, actor: Actor, project_id: uuid.UUID, *, manage: bool = False
    ) -> uuid.UUID:
        decision = await self.project_access(actor, project_id, manage=manage)
        if not decision.allowed:
            raise ForbiddenError(decision.reason, project_id=str(project_id))
        return await self.agency_id_for_project(project_id)

    # --- agency -------------------------------------------------------------

    async def require_agency_membership(self, actor: Actor, agency_id: uuid.UUID) -> AgencyRole:
        role = await self.agency_role(actor.user_id, agency_id)
        if role is None:
            raise ForbiddenError("Not a member of this agency", agency_id=str(agency_id))
        return role

    async def require_agency_role(
        self, actor: Actor, agency_id: uuid.UUID, *roles: AgencyRole
    ) -> AgencyRole:
        role = await self.require_agency_membership(actor, agency_id)
        if role not in roles:
            raise ForbiddenError(
                f"Requires one of: {', '.join(r.value for r in roles)}",
                agency_id=str(agency_id),
                role=role.value,
            )
        return role

    async def require_agency_permission(
        self, actor: Actor, agency_id: uuid.UUID, permission: Permission
    ) -> AgencyRole:
        role = await self.require_agency_membership(actor, agency_id)
        if permission not in permissions_for(role):
            raise ForbiddenError(
                f"Role {role.value} does not have {permission.value}",
                agency_id=str(agency_id),
                permission=permission.value,
            )
        return role


# --- Module Notes -----------------------------------------------------------
# Membership is always read from `agency_users`, never from the token, so a
# deactivated member loses access on the next request.
