"""
Robbing Request — Transition Engine

Decides which status changes a caller may make and produces the next request
value. The engine only moves the status and appends history; the domain data
attached to an edge (documents, serviceability, normalization dates) is the
job of ``robbing.services.side_effects``.

Rules:
  - The target must appear in ``transitions_from(request.status)``
    (otherwise ``IllegalTransition``)
  - The caller role must be in the edge's role set, or be ``Admin``
    (otherwise ``UnauthorizedTransition``)
  - Terminal statuses have no outbound edges, for any role

Usage:
    from robbing.services.transition_engine import apply_transition

    updated = apply_transition(req, RobbingStatus.PENDING_AR, Role.CAMO_PLANNING,
                               acting_user="John Smith", comments="SDS submitted")
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from robbing.core.exceptions import IllegalTransition, UnauthorizedTransition
from robbing.models.robbing import RobbingRequest, RobbingStatus, Role
from robbing.models.status_catalog import find_transition, transitions_from


def _role_allowed(role: Role, authorized_roles) -> bool:
    return role == Role.ADMIN or role in authorized_roles


def can_transition(request: RobbingRequest, target: RobbingStatus, role: Role) -> bool:
    """True iff ``target`` is an outbound edge of the current status and ``role`` may take it."""
    transition = find_transition(request.status, target)
    if transition is None:
        return False
    return _role_allowed(Role(role), transition.authorized_roles)


def available_transitions(request: RobbingRequest, role: Role) -> list[RobbingStatus]:
    """All targets ``role`` may move ``request`` to, in catalog order."""
    role = Role(role)
    return [
        t.next_status
        for t in transitions_from(request.status)
        if _role_allowed(role, t.authorized_roles)
    ]


def validate_transition(request: RobbingRequest, target: RobbingStatus, role: Role) -> dict:
    """
    Validate a transition without applying it.

    Returns:
        {"valid": bool, "from": str, "to": str, "reason": str|None, "error": type|None}
    """
    target, role = RobbingStatus(target), Role(role)
    current = request.status.value
    transition = find_transition(request.status, target)
    if transition is None:
        return {"valid": False, "from": current, "to": target.value,
                "reason": f"Cannot move from '{current}' to '{target.value}'",
                "error": IllegalTransition}

    if not _role_allowed(role, transition.authorized_roles):
        return {"valid": False, "from": current, "to": target.value,
                "reason": f"Role '{role.value}' may not '{transition.label}'",
                "error": UnauthorizedTransition}

    return {"valid": True, "from": current, "to": target.value, "reason": None, "error": None}


def check_transition(request: RobbingRequest, target: RobbingStatus, role: Role) -> None:
    """Raise ``IllegalTransition`` or ``UnauthorizedTransition`` if the move is not allowed."""
    target, role = RobbingStatus(target), Role(role)
    validation = validate_transition(request, target, role)
    if validation["valid"]:
        return
    if validation["error"] is IllegalTransition:
        raise IllegalTransition(request.request_id, request.status.value, target.value)
    raise UnauthorizedTransition(request.request_id, target.value, role.value)


def apply_transition(
    request: RobbingRequest,
    target: RobbingStatus,
    role: Role,
    *,
    acting_user: str,
    comments: Optional[str] = None,
    now: Optional[datetime] = None,
) -> RobbingRequest:
    """
    Return a new request in ``target`` status with one history entry appended.

    The input value is not modified. Component, documentation and
    normalization data are carried over untouched.

    Raises:
        IllegalTransition, UnauthorizedTransition
    """
    target, role = RobbingStatus(target), Role(role)
    check_transition(request, target, role)
    return request.with_history(
        target,
        timestamp=now or datetime.now(timezone.utc),
        acting_user=acting_user,
        acting_role=role,
        comments=comments,
    )
