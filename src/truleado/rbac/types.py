"""
truleado.rbac.types

Role and permission vocabularies for the authorization layer.

Responsibilities:
- Enumerate agency, campaign and client roles.
- Enumerate the actions that can be authorized.
- Describe the outcome of an access check.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass


class AgencyRole(enum.StrEnum):
    agency_admin = "agency_admin"
    account_manager = "account_manager"
    operator = "operator"
    internal_approver = "internal_approver"


class CampaignRole(enum.StrEnum):
    operator = "operator"
    approver = "approver"
    viewer = "viewer"


class ClientRole(enum.StrEnum):
    # External brand users (client contacts signing in through the client portal).
    approver = "approver"
    viewer = "viewer"


class ProjectRole(enum.StrEnum):
    # Derived from `project_users` / `project_approvers` membership; never stored as a column.
    operator = "operator"
    approver = "approver"


class Permission(enum.StrEnum):
    # Agency
    manage_agency = "manage_agency"
    view_agency = "view_agency"
    manage_agency_users = "manage_agency_users"

    # Client
    create_client = "create_client"
    view_client = "view_client"
    manage_client = "manage_client"
    manage_client_users = "manage_client_users"

    # Project
    create_project = "create_project"
    view_project = "view_project"
    manage_project = "manage_project"

    # Campaign
    create_campaign = "create_campaign"
    view_campaign = "view_campaign"
    manage_campaign = "manage_campaign"
    transition_campaign = "transition_campaign"

    # Deliverable
    create_deliverable = "create_deliverable"
    view_deliverable = "view_deliverable"
    upload_version = "upload_version"

    # Approval
    approve_internal = "approve_internal"
    approve_project = "approve_project"
    approve_client = "approve_client"

    # Creators
    manage_creator_roster = "manage_creator_roster"
    view_creator_roster = "view_creator_roster"
    invite_creator = "invite_creator"

    # Analytics
    fetch_analytics = "fetch_analytics"
    view_analytics = "view_analytics"

    # Payments
    manage_payments = "manage_payments"
    view_payments = "view_payments"

    view_notifications = "view_notifications"
    view_activity_logs = "view_activity_logs"


class AccessLevel(enum.StrEnum):
    # Ordered as the resolution chain walks them.
    campaign = "campaign"
    project = "project"
    client = "client"
    agency = "agency"


@dataclass(frozen=True, slots=True)
class AccessDecision:
    allowed: bool
    reason: str | None = None
    # Level of the chain that granted access (None when denied).
    level: AccessLevel | None = None

    @classmethod
    def grant(cls, level: AccessLevel) -> AccessDecision:
        return cls(allowed=True, level=level)

    @classmethod
    def deny(cls, reason: str) -> AccessDecision:
        return cls(allowed=False, reason=reason)
