"""
truleado.workflow

Explicit state machines for campaigns and deliverables.

Responsibilities:
- Enumerate statuses and the transitions allowed between them.
- Compute the next deliverable status for an approval decision.
- Provide display labels shared with the client portal.
"""

# Package marker; import from `workflow.campaign` / `workflow.deliverable`.
