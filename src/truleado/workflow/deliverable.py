"""
truleado.workflow.deliverable

Deliverable approval state machine.

Responsibilities:
- Define deliverable statuses, review levels and decisions.
- Validate raw status transitions.
- Map an approval decision at a review level onto the next status.

Flow:

pending -> submitted -> internal_review -+-> pending_project_approval -+-> client_review -> approved
              ^                         |                            |        |
              |                         +----------------------------+        |
              +------------------- rejected <---------------------------------+

The project stage only applies when the project has named approvers.
"""

from __future__ import annotations

import enum

from truleado.errors import InvalidStateError


class DeliverableStatus(enum.StrEnum):
    pending = "pending"
    submitted = "submitted"
    internal_review = "internal_review"
    pending_project_approval = "pending_project_approval"
    client_review = "client_review"
    approved = "approved"
    rejected = "rejected"


class ApprovalLevel(enum.StrEnum):
    # internal = campaign approvers, project = project approvers, client = brand contacts.
    internal = "internal"
    project = "project"
    client = "client"


class Decision(enum.StrEnum):
    approved = "approved"
    rejected = "rejected"


S = DeliverableStatus

DELIVERABLE_TRANSITIONS: dict[DeliverableStatus, frozenset[DeliverableStatus]] = {
    S.pending: frozenset({S.submitted}),
    S.submitted: frozenset({S.internal_review}),
    S.internal_review: frozenset({S.pending_project_approval, S.client_review, S.rejected}),
    S.pending_project_approval: frozenset({S.client_review, S.rejected}),
    S.client_review: frozenset({S.approved, S.rejected}),
    # Resubmission after rejection starts a new review round.
    S.rejected: frozenset({S.submitted}),
    S.approved: frozenset(),
}

# Status a deliverable must be in for a decision at each level.
REVIEW_STAGE: dict[ApprovalLevel, DeliverableStatus] = {
    ApprovalLevel.internal: S.internal_review,
    ApprovalLevel.project: S.pending_project_approval,
    ApprovalLevel.client: S.client_review,
}

# Statuses in which files may still be replaced or removed.
EDITABLE_STATUSES: frozenset[DeliverableStatus] = frozenset({S.pending, S.rejected})
SUBMITTABLE_STATUSES: frozenset[DeliverableStatus] = frozenset({S.pending, S.rejected})

_LABELS: dict[DeliverableStatus, str] = {
    S.pending: "Pending",
    S.submitted: "Submitted",
    S.internal_review: "Pending Campaign Approval",
    S.pending_project_approval: "Pending Project Approval",
    S.client_review: "Pending Client Approval",
    S.approved: "Fully Approved",
    S.rejected: "Rejected",
}


def can_transition(current: DeliverableStatus, target: DeliverableStatus) -> bool:
    return target in DELIVERABLE_TRANSITIONS.get(current, frozenset())


def validate_transition(current: DeliverableStatus, target: DeliverableStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Cannot transition deliverable from {current.value} to {target.value}",
            current_state=current.value,
            attempted_transition=target.value,
        )


def decide(
    current: DeliverableStatus,
    level: ApprovalLevel,
    decision: Decision,
    *,
    project_stage_enabled: bool,
) -> DeliverableStatus:
    """
    Return the status reached when `decision` is recorded at `level`.

    Raises InvalidStateError when the deliverable is not waiting on that level.
    """

    expected = REVIEW_STAGE[level]
    if current is not expected:
        raise InvalidStateError(
            f"Deliverable in {current.value} status is not awaiting {level.value} approval",
            current_state=current.value,
            attempted_transition=f"{level.value}:{decision.value}",
        )

    if decision is Decision.rejected:
        target = S.rejected
    elif level is ApprovalLevel.internal:
        target = S.pending_project_approval if project_stage_enabled else S.client_review
    elif level is ApprovalLevel.project:
        target = S.client_review
    else:
        target = S.approved

    validate_transition(current, target)
    return target


def status_label(status: str) -> str:
    try:
        return _LABELS[DeliverableStatus(status.lower())]
    except ValueError:
        return status.replace("_", " ")


# --- Module Notes -----------------------------------------------------------
# Approved is terminal: no further versions, decisions or file edits are accepted.
