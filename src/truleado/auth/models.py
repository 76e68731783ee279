"""
truleado.auth.models

Auth domain models.

Responsibilities:
- `Identity`: what a validated bearer token says about the caller.
- `Actor`: the local user behind an identity, with agency memberships.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from truleado.rbac.types import AgencyRole


@dataclass(frozen=True, slots=True)
class AgencyMembership:
    agency_id: uuid.UUID
    role: AgencyRole
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class Actor:
    """
    Authenticated, locally known user.

    Memberships are a snapshot taken when the request was authenticated; access
    checks re-read `agency_users` so role changes apply immediately.
    """

    user_id: uuid.UUID
    subject: str
    email: str | None = None
    full_name: str = ""
    memberships: tuple[AgencyMembership, ...] = field(default_factory=tuple)

    def membership(self, agency_id: uuid.UUID) -> AgencyMembership | None:
        for m in self.memberships:
            if m.agency_id == agency_id and m.is_active:
                return m
        return None

    def role_in(self, agency_id: uuid.UUID) -> AgencyRole | None:
        m = self.membership(agency_id)
        return m.role if m is not None else None

    @property
    def agency_ids(self) -> list[uuid.UUID]:
        return [m.agency_id for m in self.memberships if m.is_active]


@dataclass(frozen=True, slots=True)
class Identity:
    # `actor` is None until the subject signs up (or is linked as a client contact).
    subject: str
    email: str | None
    email_verified: bool = False
    name: str | None = None
    actor: Actor | None = None
