"""
truleado.services.project_service

Projects and their assignments (operators and the optional approver stage).
"""

from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from truleado.auth.models import Actor
from truleado.db.models import Project
from truleado.db.repositories.activity import ActivityRepo
from truleado.db.repositories.agencies import AgencyRepo
from truleado.db.repositories.projects import ProjectRepo
from truleado.errors import NotFoundError, ValidationFailed
from truleado.observability.logging import get_logger
from truleado.rbac.resolver import AccessResolver
from truleado.services.activity_service import snapshot

log = get_logger(__name__)


class ProjectService:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._projects = ProjectRepo(session)
        self._agencies = AgencyRepo(session)
        self._activity = ActivityRepo(session)
        self._rbac = AccessResolver(session)

    async def create_project(
        self, actor: Actor, client_id: uuid.UUID, *, name: str, description: str | None = None
    ) -> Project:
        agency_id = await self._rbac.require_client_access(actor, client_id, manage=True)
        name = (name or "").strip()
        if len(name) < 2:
            raise ValidationFailed("Project name must be at least 2 characters", field="name")

        project = await self._projects.create(
            client_id=client_id, name=name, description=(description or "").strip() or None
        )
        await self._activity.add(
            agency_id=agency_id,
            entity_type="project",
            entity_id=project.id,
            action="created",
            actor_id=actor.user_id,
            after_state=snapshot(project, "name", "client_id"),
        )
        await self._session.commit()
        log.info("project_created", project_id=project.id, client_id=client_id)
        return project

    async def get_project(self, actor: Actor, project_id: uuid.UUID) -> Project:
        await self._rbac.require_project_access(actor, project_id)
        project = await self._projects.get(project_id)
        if project is None:
            raise NotFoundError("Project", project_id)
        return project

    async def list_projects(self, actor: Actor, client_id: uuid.UUID) -> list[Project]:
        await self._rbac.require_client_access(actor, client_id)
        return await self._projects.list_for_client(client_id)

    async def list_approvers(self, actor: Actor, project_id: uuid.UUID) -> list[uuid.UUID]:
        await self._rbac.require_project_access(actor, project_id)
        return await self._projects.approver_ids(project_id)

    async def _require_target_member(self, agency_id: uuid.UUID, user_id: uuid.UUID) -> None:
        member = await self._agencies.membership(agency_id, user_id)
        if member is None or not member.is_active:
            raise ValidationFailed("User must be an active member of the agency", field="user_id")

    async def _assign(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID, *, approver: bool
    ) -> None:
        agency_id = await self._rbac.require_project_access(actor, project_id, manage=True)
        await self._require_target_member(agency_id, user_id)

        kind = "project_approver" if approver else "project_user"
        current = (
            await self._projects.approver_ids(project_id)
            if approver
            else await self._projects.user_ids(project_id)
        )
        if user_id in current:
            label = "a project approver" if approver else "assigned to this project"
            raise ValidationFailed(f"User is already {label}", field="user_id")

        if approver:
            row = await self._projects.add_approver(project_id, user_id)
        else:
            row = await self._projects.add_user(project_id, user_id)

        await self._activity.add(
            agency_id=agency_id,
            entity_type=kind,
            entity_id=row.id,
            action="created",
            actor_id=actor.user_id,
            metadata={"project_id": str(project_id), "user_id": str(user_id)},
        )
        await self._session.commit()
        log.info(f"{kind}_added", project_id=project_id, member_id=user_id)

    async def _unassign(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID, *, approver: bool
    ) -> None:
        agency_id = await self._rbac.require_project_access(actor, project_id, manage=True)
        kind = "project_approver" if approver else "project_user"
        if approver:
            removed = await self._projects.remove_approver(project_id, user_id)
        else:
            removed = await self._projects.remove_user(project_id, user_id)
        if not removed:
            raise NotFoundError("ProjectApprover" if approver else "ProjectUser", user_id)

        await self._activity.add(
            agency_id=agency_id,
            entity_type="project",
            entity_id=project_id,
            action=f"{kind}_removed",
            actor_id=actor.user_id,
            metadata={"user_id": str(user_id)},
        )
        await self._session.commit()

    async def add_project_approver(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self._assign(actor, project_id, user_id, approver=True)

    async def remove_project_approver(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self._unassign(actor, project_id, user_id, approver=True)

    async def add_project_user(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self._assign(actor, project_id, user_id, approver=False)

    async def remove_project_user(
        self, actor: Actor, project_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await self._unassign(actor, project_id, user_id, approver=False)
