"""
truleado.rbac.permissions

Permission matrix: which role holds which permission.

Responsibilities:
- Provide the single source of truth for role -> permission sets per scope.
- Offer pure lookup helpers used by the resolver and by tests.
"""

from __future__ import annotations

from truleado.rbac.types import AgencyRole, CampaignRole, ClientRole, Permission, ProjectRole

P = Permission

_ACCOUNT_SCOPE: frozenset[Permission] = frozenset(
    {
        P.create_client,
        P.view_client,
        P.manage_client,
        P.manage_client_users,
        P.create_project,
        P.view_project,
        P.manage_project,
        P.create_campaign,
        P.view_campaign,
        P.manage_campaign,
        P.transition_campaign,
        P.create_deliverable,
        P.view_deliverable,
        P.upload_version,
        P.approve_internal,
        P.manage_creator_roster,
        P.view_creator_roster,
        P.invite_creator,
        P.fetch_analytics,
        P.view_analytics,
        P.manage_payments,
        P.view_payments,
        P.view_notifications,
        P.view_activity_logs,
    }
)

AGENCY_ROLE_PERMISSIONS: dict[AgencyRole, frozenset[Permission]] = {
    # Admins approve only at the internal stage; project/client sign-off belongs to named approvers.
    AgencyRole.agency_admin: _ACCOUNT_SCOPE
    | {P.manage_agency, P.view_agency, P.manage_agency_users},
    AgencyRole.account_manager: _ACCOUNT_SCOPE | {P.view_agency},
    AgencyRole.operator: frozenset(
        {
            P.view_agency,
            P.view_client,
            P.view_project,
            P.view_campaign,
            P.manage_campaign,
            P.create_deliverable,
            P.view_deliverable,
            P.upload_version,
            P.manage_creator_roster,
            P.view_creator_roster,
            P.invite_creator,
            P.fetch_analytics,
            P.view_analytics,
            P.view_payments,
            P.view_notifications,
            P.view_activity_logs,
        }
    ),
    AgencyRole.internal_approver: frozenset(
        {
            P.view_agency,
            P.view_client,
            P.view_project,
            P.view_campaign,
            P.view_deliverable,
            P.approve_internal,
            P.view_creator_roster,
            P.view_analytics,
            P.view_notifications,
            P.view_activity_logs,
        }
    ),
}

CAMPAIGN_ROLE_PERMISSIONS: dict[CampaignRole, frozenset[Permission]] = {
    CampaignRole.operator: frozenset(
        {
            P.view_campaign,
            P.manage_campaign,
            P.create_deliverable,
            P.view_deliverable,
            P.upload_version,
            P.invite_creator,
            P.fetch_analytics,
            P.view_analytics,
            P.view_payments,
            P.view_activity_logs,
        }
    ),
    CampaignRole.approver: frozenset(
        {
            P.view_campaign,
            P.view_deliverable,
            P.approve_internal,
            P.view_analytics,
            P.view_activity_logs,
        }
    ),
    CampaignRole.viewer: frozenset({P.view_campaign, P.view_deliverable, P.view_activity_logs}),
}

PROJECT_ROLE_PERMISSIONS: dict[ProjectRole, frozenset[Permission]] = {
    # Project operators see every campaign under the project with operator rights.
    ProjectRole.operator: CAMPAIGN_ROLE_PERMISSIONS[CampaignRole.operator] | {P.view_project},
    ProjectRole.approver: frozenset(
        {P.view_project, P.view_campaign, P.view_deliverable, P.approve_project}
    ),
}

CLIENT_ROLE_PERMISSIONS: dict[ClientRole, frozenset[Permission]] = {
    ClientRole.approver: frozenset(
        {P.view_client, P.view_project, P.view_campaign, P.view_deliverable, P.approve_client}
    ),
    ClientRole.viewer: frozenset(
        {P.view_client, P.view_project, P.view_campaign, P.view_deliverable}
    ),
}

# Permissions an agency role holds on a campaign it is not otherwise tied to.
AGENCY_WIDE_CAMPAIGN_PERMISSIONS: dict[AgencyRole, frozenset[Permission]] = {
    AgencyRole.agency_admin: AGENCY_ROLE_PERMISSIONS[AgencyRole.agency_admin],
    AgencyRole.internal_approver: AGENCY_ROLE_PERMISSIONS[AgencyRole.internal_approver],
    AgencyRole.operator: frozenset({P.view_campaign}),
    AgencyRole.account_manager: frozenset(),
}

Role = AgencyRole | CampaignRole | ClientRole | ProjectRole


def permissions_for(role: Role) -> frozenset[Permission]:
    # Role enums share string values ("operator", "approver"), so dispatch on the enum type.
    if isinstance(role, AgencyRole):
        return AGENCY_ROLE_PERMISSIONS.get(role, frozenset())
    if isinstance(role, CampaignRole):
        return CAMPAIGN_ROLE_PERMISSIONS.get(role, frozenset())
    if isinstance(role, ProjectRole):
        return PROJECT_ROLE_PERMISSIONS.get(role, frozenset())
    if isinstance(role, ClientRole):
        return CLIENT_ROLE_PERMISSIONS.get(role, frozenset())
    return frozenset()


def has_permission(role: Role, permission: Permission) -> bool:
    return permission in permissions_for(role)


# --- Module Notes -----------------------------------------------------------
# Matrices are frozensets so they can be shared safely across requests.
