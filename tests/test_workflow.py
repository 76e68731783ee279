from __future__ import annotations

import pytest

from truleado.errors import InvalidStateError
from truleado.workflow import campaign as cw
from truleado.workflow import deliverable as dw
from truleado.workflow.campaign import CampaignStatus
from truleado.workflow.deliverable import ApprovalLevel, Decision, DeliverableStatus

S = DeliverableStatus


def test_campaign_happy_path() -> None:
    path = [
        CampaignStatus.draft,
        CampaignStatus.active,
        CampaignStatus.in_review,
        CampaignStatus.approved,
        CampaignStatus.completed,
        CampaignStatus.archived,
    ]
    for current, target in zip(path, path[1:], strict=False):
        cw.validate_transition(current, target)


def test_campaign_review_can_be_sent_back() -> None:
    assert cw.can_transition(CampaignStatus.in_review, CampaignStatus.active)
    assert not cw.can_transition(CampaignStatus.approved, CampaignStatus.active)


def test_campaign_invalid_transition_reports_states() -> None:
    with pytest.raises(InvalidStateError) as ei:
        cw.validate_transition(CampaignStatus.draft, CampaignStatus.completed)
    assert ei.value.current_state == "draft"
    assert ei.value.attempted_transition == "completed"


def test_archived_campaign_is_frozen() -> None:
    with pytest.raises(InvalidStateError):
        cw.ensure_mutable(CampaignStatus.archived)
    cw.ensure_mutable(CampaignStatus.completed)


def test_internal_approval_skips_project_stage_without_approvers() -> None:
    target = dw.decide(
        S.internal_review, ApprovalLevel.internal, Decision.approved, project_stage_enabled=False
    )
    assert target is S.client_review


def test_internal_approval_enters_project_stage_with_approvers() -> None:
    target = dw.decide(
        S.internal_review, ApprovalLevel.internal, Decision.approved, project_stage_enabled=True
    )
    assert target is S.pending_project_approval
    target = dw.decide(target, ApprovalLevel.project, Decision.approved, project_stage_enabled=True)
    assert target is S.client_review
    target = dw.decide(target, ApprovalLevel.client, Decision.approved, project_stage_enabled=True)
    assert target is S.approved


@pytest.mark.parametrize("level", list(ApprovalLevel))
def test_rejection_at_any_level_returns_to_rejected(level: ApprovalLevel) -> None:
    current = dw.REVIEW_STAGE[level]
    assert dw.decide(current, level, Decision.rejected, project_stage_enabled=True) is S.rejected


def test_decision_at_wrong_level_is_refused() -> None:
    with pytest.raises(InvalidStateError):
        dw.decide(
            S.internal_review, ApprovalLevel.client, Decision.approved, project_stage_enabled=False
        )
    with pytest.raises(InvalidStateError):
        dw.decide(S.approved, ApprovalLevel.client, Decision.approved, project_stage_enabled=False)


def test_rejected_deliverable_can_be_resubmitted() -> None:
    dw.validate_transition(S.rejected, S.submitted)
    assert not dw.can_transition(S.approved, S.submitted)


def test_status_labels() -> None:
    assert dw.status_label("client_review") == "Pending Client Approval"
    assert dw.status_label("APPROVED") == "Fully Approved"
    assert dw.status_label("mystery_state") == "mystery state"
    assert cw.status_label("in_review") == "In Review"
