from __future__ import annotations

import pytest

from truleado.rbac import (
    AgencyRole,
    CampaignRole,
    ClientRole,
    Permission,
    ProjectRole,
    has_permission,
    permissions_for,
)
from truleado.rbac.permissions import AGENCY_WIDE_CAMPAIGN_PERMISSIONS

P = Permission


def test_admin_holds_agency_management() -> None:
    assert has_permission(AgencyRole.agency_admin, P.manage_agency_users)
    assert not has_permission(AgencyRole.account_manager, P.manage_agency_users)


@pytest.mark.parametrize("role", list(AgencyRole))
def test_no_agency_role_approves_beyond_internal(role: AgencyRole) -> None:
    assert not has_permission(role, P.approve_project)
    assert not has_permission(role, P.approve_client)


def test_operator_cannot_transition_or_pay() -> None:
    assert not has_permission(AgencyRole.operator, P.transition_campaign)
    assert not has_permission(AgencyRole.operator, P.manage_payments)
    assert has_permission(AgencyRole.operator, P.upload_version)


def test_internal_approver_is_read_mostly() -> None:
    perms = permissions_for(AgencyRole.internal_approver)
    assert P.approve_internal in perms
    assert P.manage_campaign not in perms
    assert P.create_deliverable not in perms


def test_shared_role_values_resolve_by_scope() -> None:
    # "operator" and "approver" exist in several scopes with different grants.
    assert CampaignRole.operator.value == ProjectRole.operator.value
    assert has_permission(ProjectRole.approver, P.approve_project)
    assert not has_permission(CampaignRole.approver, P.approve_project)
    assert has_permission(ClientRole.approver, P.approve_client)
    assert not has_permission(ClientRole.viewer, P.approve_client)


def test_account_managers_get_nothing_agency_wide() -> None:
    assert AGENCY_WIDE_CAMPAIGN_PERMISSIONS[AgencyRole.account_manager] == frozenset()
    assert AGENCY_WIDE_CAMPAIGN_PERMISSIONS[AgencyRole.operator] == frozenset({P.view_campaign})
