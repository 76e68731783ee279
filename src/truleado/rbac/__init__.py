"""
truleado.rbac

Role-based access control.

Responsibilities:
- Role and permission vocabularies (`rbac.types`).
- Table-driven role -> permission matrices (`rbac.permissions`).
- The campaign -> project -> client -> agency resolution chain (`rbac.resolver`).
"""

from truleado.rbac.permissions import has_permission, permissions_for
from truleado.rbac.types import (
    AccessDecision,
    AccessLevel,
    AgencyRole,
    CampaignRole,
    ClientRole,
    Permission,
    ProjectRole,
)

__all__ = [
    "AccessDecision",
    "AccessLevel",
    "AgencyRole",
    "CampaignRole",
    "ClientRole",
    "Permission",
    "ProjectRole",
    "has_permission",
    "permissions_for",
]

# --- Module Notes -----------------------------------------------------------
# `rbac.resolver` is imported directly: it depends on `db.models`, which itself
# imports the role enums from this package.
