from __future__ import annotations

import uuid

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from truleado.db.models import Project, ProjectApprover, ProjectUser


class ProjectRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, project_id: uuid.UUID) -> Project | None:
        return await self._session.get(Project, project_id)

    async def create(self, *, client_id: uuid.UUID, name: str, description: str | None) -> Project:
        project = Project(client_id=client_id, name=name, description=description)
        self._session.add(project)
        await self._session.flush()
        return project

    async def list_for_client(self, client_id: uuid.UUID) -> list[Project]:
        stmt = select(Project).where(Project.client_id == client_id).order_by(Project.created_at)
        return list((await self._session.execute(stmt)).scalars().all())

    async def approver_ids(self, project_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(ProjectApprover.user_id).where(ProjectApprover.project_id == project_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def user_ids(self, project_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = select(ProjectUser.user_id).where(ProjectUser.project_id == project_id)
        return list((await self._session.execute(stmt)).scalars().all())

    async def add_approver(self, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectApprover:
        row = ProjectApprover(project_id=project_id, user_id=user_id)
        self._session.add(row)
        await self._session.flush()
        return row

    async def remove_approver(self, project_id: uuid.UUID, user_id: uuid.UUID) -> int:
        result = await self._session.execute(
            delete(ProjectApprover).where(
                ProjectApprover.project_id == project_id, ProjectApprover.user_id == user_id
            )
        )
        return result.rowcount or 0

    async def add_user(self, project_id: uuid.UUID, user_id: uuid.UUID) -> ProjectUser:
        row = ProjectUser(project_id=project_id, user_id=user_id)
        self._session.add(row)
        await self._session.flush()
        return row

    async def remove_user(self, project_id: uuid.UUID, user_id: uuid.UUID) -> int:
        result = await self._session.execute(
            delete(ProjectUser).where(
                ProjectUser.project_id == project_id, ProjectUser.user_id == user_id
            )
        )
        return result.rowcount or 0
