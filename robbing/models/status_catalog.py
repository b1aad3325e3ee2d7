"""
Component Robbing Tracker
Status catalog — the canonical transition table.

Pure lookup, no mutation. ``Admin`` is authorized for every transition and is
therefore not repeated in the role sets below. ``System`` is listed on the two
``Initiated`` edges because the automatic transition after creation goes
through the same authorization rule as any other transition.

Transitions:
    Initiated               → Pending SDS                 (CAMO Planning, System)
    Initiated               → Awaiting FTAM Approval      (CAMO Planning, System)
    Awaiting FTAM Approval  → Pending SDS                 (FTAM)
    Awaiting FTAM Approval  → Rejected                    (FTAM)
    Pending SDS             → Pending AR                  (CAMO Planning)
    Pending AR              → Pending Removal from Donor  (CAMO Technical Services)
    Pending Removal         → Removed from Donor          (AMO 145)
    Removed from Donor      → Normalization Planned       (CAMO Planning)
    Normalization Planned   → Normalized                  (AMO 145)
    Normalized, Rejected    → (terminal)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from robbing.models.robbing import Role, RobbingStatus


@dataclass(frozen=True)
class StatusTransition:
    next_status: RobbingStatus
    authorized_roles: frozenset[Role]
    label: str
    description: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.next_status.value,
            "label": self.label,
            "description": self.description,
            "authorized_roles": sorted(r.value for r in self.authorized_roles | {Role.ADMIN}),
        }


def _edge(next_status, roles, label, description=None) -> StatusTransition:
    return StatusTransition(next_status, frozenset(roles), label, description)


S = RobbingStatus

# Display order. Awaiting FTAM Approval sits right after Initiated even though
# it only occurs when the donor lacks a valid certificate.
_DISPLAY_ORDER = (
    S.INITIATED,
    S.AWAITING_FTAM_APPROVAL,
    S.PENDING_SDS,
    S.PENDING_AR,
    S.PENDING_REMOVAL,
    S.REMOVED_FROM_DONOR,
    S.NORMALIZATION_PLANNED,
    S.NORMALIZED,
    S.REJECTED,
)

STATUS_CONFIG: dict[RobbingStatus, dict] = {
    S.INITIATED: {
        "description": "Request has been created",
        "transitions": [
            _edge(S.PENDING_SDS, {Role.CAMO_PLANNING, Role.SYSTEM},
                  "Move to Pending SDS", "Donor aircraft has valid C of A"),
            _edge(S.AWAITING_FTAM_APPROVAL, {Role.CAMO_PLANNING, Role.SYSTEM},
                  "Request FTAM Approval", "Donor aircraft does not have valid C of A"),
        ],
    },
    S.AWAITING_FTAM_APPROVAL: {
        "description": "Waiting for FTAM to approve request",
        "transitions": [
            _edge(S.PENDING_SDS, {Role.FTAM},
                  "Approve Request", "Approve request and proceed to SDS"),
            _edge(S.REJECTED, {Role.FTAM},
                  "Reject Request", "Reject the request"),
        ],
    },
    S.PENDING_SDS: {
        "description": "Waiting for Spares Declaration Statement",
        "transitions": [
            _edge(S.PENDING_AR, {Role.CAMO_PLANNING},
                  "Submit SDS", "Submit Spares Declaration Statement"),
        ],
    },
    S.PENDING_AR: {
        "description": "Waiting for Acceptance Report",
        "transitions": [
            _edge(S.PENDING_REMOVAL, {Role.CAMO_TECHNICAL_SERVICES},
                  "Submit AR", "Submit Acceptance Report to proceed"),
        ],
    },
    S.PENDING_REMOVAL: {
        "description": "Component ready for removal from donor aircraft",
        "transitions": [
            _edge(S.REMOVED_FROM_DONOR, {Role.AMO_145},
                  "Confirm Removal", "Confirm component has been removed from donor aircraft"),
        ],
    },
    S.REMOVED_FROM_DONOR: {
        "description": "Component has been removed from donor aircraft",
        "transitions": [
            _edge(S.NORMALIZATION_PLANNED, {Role.CAMO_PLANNING},
                  "Plan Normalization", "Plan the normalization of the donor aircraft"),
        ],
    },
    S.NORMALIZATION_PLANNED: {
        "description": "Normalization of donor aircraft has been planned",
        "transitions": [
            _edge(S.NORMALIZED, {Role.AMO_145},
                  "Confirm Normalization", "Confirm donor aircraft has been normalized"),
        ],
    },
    S.NORMALIZED: {
        "description": "Donor aircraft has been normalized",
        "transitions": [],
    },
    S.REJECTED: {
        "description": "Request has been rejected",
        "transitions": [],
    },
}

TERMINAL_STATUSES = frozenset(s for s, cfg in STATUS_CONFIG.items() if not cfg["transitions"])


def all_statuses() -> list[RobbingStatus]:
    """All statuses in canonical display order."""
    return list(_DISPLAY_ORDER)


def display_rank(status: RobbingStatus) -> int:
    return _DISPLAY_ORDER.index(RobbingStatus(status))


def transitions_from(status: RobbingStatus) -> list[StatusTransition]:
    """Outbound transitions of a status, in catalog order."""
    return list(STATUS_CONFIG[RobbingStatus(status)]["transitions"])


def find_transition(status: RobbingStatus, next_status: RobbingStatus) -> Optional[StatusTransition]:
    for transition in transitions_from(status):
        if transition.next_status == next_status:
            return transition
    return None


def description_of(status: RobbingStatus) -> str:
    config = STATUS_CONFIG.get(status)
    return config["description"] if config else "Unknown status"


def catalog_as_dict() -> list[dict]:
    """Serializable view of the whole catalog, in display order."""
    return [
        {
            "status": status.value,
            "rank": rank,
            "description": description_of(status),
            "terminal": status in TERMINAL_STATUSES,
            "transitions": [t.to_dict() for t in transitions_from(status)],
        }
        for rank, status in enumerate(_DISPLAY_ORDER)
    ]
