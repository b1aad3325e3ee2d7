"""
Robbing Request — Creation Service

Builds a new request from submitted fields:
  1. Validate every required field (all problems reported together)
  2. Assign CR-{year}-{seq} identity and created date
  3. Append the ``Initiated`` history entry for the caller
  4. Immediately auto-transition as System/System:
       donor has valid C of A     → Pending SDS
       donor lacks valid C of A   → Awaiting FTAM Approval

Expected fields:
    {
      "requester": {"name", "department"},
      "donor_aircraft", "recipient_aircraft", "donor_has_valid_certificate",
      "reason", "priority"?, "work_order_number",
      "component": {"description", "part_number", "serial_number", "ata_chapter"}
    }
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from robbing.core.exceptions import ValidationError
from robbing.models.robbing import (
    SYSTEM_USER,
    Caller,
    Component,
    Priority,
    Requester,
    RobbingRequest,
    RobbingStatus,
    Role,
    StatusHistoryEntry,
)
from robbing.services.code_generator import generate_request_code
from robbing.services.transition_engine import apply_transition
from robbing.utils.helpers import is_blank, utcnow

logger = logging.getLogger(__name__)

_REQUIRED_TOP = ("donor_aircraft", "recipient_aircraft", "reason", "work_order_number")
_REQUIRED_REQUESTER = ("name", "department")
_REQUIRED_COMPONENT = ("description", "part_number", "serial_number", "ata_chapter")


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _clean(value) -> str:
    return str(value).strip()


def validate_fields(fields: dict) -> dict[str, str]:
    """Return {field: problem} for every missing or invalid field (empty when valid)."""
    errors: dict[str, str] = {}
    requester = _as_dict(fields.get("requester"))
    component = _as_dict(fields.get("component"))

    for name in _REQUIRED_REQUESTER:
        if is_blank(requester.get(name)):
            errors[f"requester.{name}"] = "required"
    for name in _REQUIRED_TOP:
        if is_blank(fields.get(name)):
            errors[name] = "required"
    for name in _REQUIRED_COMPONENT:
        if is_blank(component.get(name)):
            errors[f"component.{name}"] = "required"

    if not isinstance(fields.get("donor_has_valid_certificate"), bool):
        errors["donor_has_valid_certificate"] = "required (true or false)"

    donor, recipient = fields.get("donor_aircraft"), fields.get("recipient_aircraft")
    if not is_blank(donor) and not is_blank(recipient):
        if str(donor).strip().upper() == str(recipient).strip().upper():
            errors["recipient_aircraft"] = "must differ from donor_aircraft"

    priority = fields.get("priority")
    if priority is not None and (
        not isinstance(priority, str) or priority not in {p.value for p in Priority}
    ):
        errors["priority"] = "must be Low, Medium or High"

    return errors


def build_request(
    fields: dict,
    caller: Caller,
    *,
    sequence: int,
    now: Optional[datetime] = None,
) -> RobbingRequest:
    """
    Validate ``fields`` and return the new request after its automatic transition.

    Raises:
        ValidationError — ``details`` lists every missing/invalid field
    """
    if not isinstance(fields, dict):
        raise ValidationError("Request fields must be an object", details={"fields": "invalid"})
    errors = validate_fields(fields)
    if errors:
        raise ValidationError(
            f"Invalid robbing request: {', '.join(sorted(errors))}", details=errors,
        )

    now = now or utcnow()
    requester = fields["requester"]
    component = fields["component"]
    initial = StatusHistoryEntry(
        status=RobbingStatus.INITIATED,
        timestamp=now,
        acting_user=caller.name,
        acting_role=caller.role,
        comments="Request created",
    )
    request = RobbingRequest(
        request_id=generate_request_code(now, sequence),
        status=RobbingStatus.INITIATED,
        status_history=(initial,),
        created_date=now,
        requester=Requester(
            name=_clean(requester["name"]),
            department=_clean(requester["department"]),
        ),
        donor_aircraft=_clean(fields["donor_aircraft"]),
        donor_has_valid_certificate=fields["donor_has_valid_certificate"],
        recipient_aircraft=_clean(fields["recipient_aircraft"]),
        reason=_clean(fields["reason"]),
        priority=Priority(fields.get("priority") or Priority.MEDIUM),
        work_order_number=_clean(fields["work_order_number"]),
        component=Component(
            description=_clean(component["description"]),
            part_number=_clean(component["part_number"]),
            serial_number=_clean(component["serial_number"]),
            ata_chapter=_clean(component["ata_chapter"]),
        ),
    )

    if request.donor_has_valid_certificate:
        target = RobbingStatus.PENDING_SDS
        comment = "Automatic transition: Donor aircraft has valid C of A"
    else:
        target = RobbingStatus.AWAITING_FTAM_APPROVAL
        comment = "Automatic transition: Donor aircraft does not have valid C of A"

    logger.debug("Auto-transition %s: Initiated → %s", request.request_id, target.value)
    return apply_transition(
        request, target, Role.SYSTEM,
        acting_user=SYSTEM_USER, comments=comment, now=now,
    )
