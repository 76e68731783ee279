"""
truleado.workflow.campaign

Campaign lifecycle state machine.

    draft -> active -> in_review -> approved -> completed -> archived
                          |
                          +-> active   (review sent back)
"""

from __future__ import annotations

import enum

from truleado.errors import InvalidStateError


class CampaignStatus(enum.StrEnum):
    draft = "draft"
    active = "active"
    in_review = "in_review"
    approved = "approved"
    completed = "completed"
    archived = "archived"


CAMPAIGN_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.draft: frozenset({CampaignStatus.active}),
    CampaignStatus.active: frozenset({CampaignStatus.in_review}),
    CampaignStatus.in_review: frozenset({CampaignStatus.approved, CampaignStatus.active}),
    CampaignStatus.approved: frozenset({CampaignStatus.completed}),
    CampaignStatus.completed: frozenset({CampaignStatus.archived}),
    CampaignStatus.archived: frozenset(),
}

_LABELS: dict[CampaignStatus, str] = {
    CampaignStatus.draft: "Draft",
    CampaignStatus.active: "Active",
    CampaignStatus.in_review: "In Review",
    # Only deliverables reach "Fully Approved"; an approved campaign means its review finished.
    CampaignStatus.approved: "Review complete",
    CampaignStatus.completed: "Completed",
    CampaignStatus.archived: "Archived",
}


def can_transition(current: CampaignStatus, target: CampaignStatus) -> bool:
    return target in CAMPAIGN_TRANSITIONS.get(current, frozenset())


def validate_transition(current: CampaignStatus, target: CampaignStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot transition campaign from {current.value} to {target.value}",
            current_state=current.value,
            attempted_transition=target.value,
        )


def ensure_mutable(current: CampaignStatus) -> None:
    if current is CampaignStatus.archived:
        raise InvalidStateError("Cannot modify archived campaigns", current_state=current.value)


def status_label(status: str) -> str:
    try:
        return _LABELS[CampaignStatus(status.lower())]
    except ValueError:
        return status.replace("_", " ")
