"""
Exhaustive transition-engine tests.

For every status and every role:
    - can_transition is true iff the edge exists AND (role authorized OR Admin)
    - available_transitions lists exactly those targets, in catalog order
    - apply_transition appends one history entry and never touches the input
    - illegal targets raise IllegalTransition, wrong roles UnauthorizedTransition
"""

from datetime import datetime, timezone

import pytest

from robbing.core.exceptions import IllegalTransition, UnauthorizedTransition
from robbing.models.robbing import Caller, RobbingRequest, RobbingStatus, Role
from robbing.models.status_catalog import transitions_from
from robbing.services.creation_service import build_request
from robbing.services.transition_engine import (
    apply_transition,
    available_transitions,
    can_transition,
    check_transition,
    validate_transition,
)

S = RobbingStatus
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

_FIELDS = {
    "requester": {"name": "Jane Doe", "department": "CAMO Planning"},
    "donor_aircraft": "9M-XXD",
    "recipient_aircraft": "9M-XBH",
    "donor_has_valid_certificate": True,
    "reason": "AOG",
    "work_order_number": "WO.4000001",
    "component": {"description": "APU", "part_number": "3800454-6",
                  "serial_number": "SN-100001", "ata_chapter": "49"},
}


def _at(status: RobbingStatus) -> RobbingRequest:
    """Request forced into ``status`` (bypasses the engine, keeps the history invariant)."""
    req = build_request(_FIELDS, Caller("Jane Doe", Role.CAMO_PLANNING), sequence=1, now=NOW)
    if req.status == status:
        return req
    return req.with_history(status, timestamp=NOW, acting_user="Fixture", acting_role=Role.ADMIN)


def _all_pairs():
    return [(s, t) for s in RobbingStatus for t in RobbingStatus]


class TestCanTransition:
    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("src,tgt", _all_pairs())
    def test_edge_and_role_rule(self, src, tgt, role):
        edge = next((t for t in transitions_from(src) if t.next_status == tgt), None)
        expected = edge is not None and (role == Role.ADMIN or role in edge.authorized_roles)
        assert can_transition(_at(src), tgt, role) is expected

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("terminal", [S.NORMALIZED, S.REJECTED])
    def test_terminal_has_no_actions(self, terminal, role):
        assert available_transitions(_at(terminal), role) == []

    def test_admin_sees_every_edge(self):
        req = _at(S.AWAITING_FTAM_APPROVAL)
        assert available_transitions(req, Role.ADMIN) == [S.PENDING_SDS, S.REJECTED]

    def test_role_filtered_actions(self):
        req = _at(S.PENDING_AR)
        assert available_transitions(req, Role.CAMO_TECHNICAL_SERVICES) == [S.PENDING_REMOVAL]
        assert available_transitions(req, Role.CAMO_PLANNING) == []

    def test_accepts_plain_strings(self):
        assert can_transition(_at(S.PENDING_SDS), "Pending AR", "CAMO Planning") is True


class TestValidateTransition:
    def test_valid(self):
        result = validate_transition(_at(S.PENDING_SDS), S.PENDING_AR, Role.CAMO_PLANNING)
        assert result["valid"] is True
        assert result["from"] == "Pending SDS"
        assert result["to"] == "Pending AR"

    def test_illegal_reported_before_role(self):
        result = validate_transition(_at(S.PENDING_SDS), S.NORMALIZED, Role.MATERIAL_STORE)
        assert result["valid"] is False
        assert result["error"] is IllegalTransition

    def test_unauthorized(self):
        result = validate_transition(_at(S.PENDING_SDS), S.PENDING_AR, Role.FTAM)
        assert result["valid"] is False
        assert result["error"] is UnauthorizedTransition
        assert "FTAM" in result["reason"]


class TestApplyTransition:
    def test_appends_one_entry(self):
        req = _at(S.PENDING_SDS)
        updated = apply_transition(req, S.PENDING_AR, Role.CAMO_PLANNING,
                                   acting_user="Jane Doe", comments="SDS attached", now=NOW)
        assert updated.status == S.PENDING_AR
        assert len(updated.status_history) == len(req.status_history) + 1
        last = updated.status_history[-1]
        assert last.status == S.PENDING_AR
        assert last.acting_user == "Jane Doe"
        assert last.acting_role == Role.CAMO_PLANNING
        assert last.comments == "SDS attached"
        assert last.timestamp == NOW

    def test_input_untouched(self):
        req = _at(S.PENDING_SDS)
        before = req.status_history
        apply_transition(req, S.PENDING_AR, Role.ADMIN, acting_user="Admin User", now=NOW)
        assert req.status == S.PENDING_SDS
        assert req.status_history is before

    def test_existing_entries_preserved(self):
        req = _at(S.PENDING_SDS)
        updated = apply_transition(req, S.PENDING_AR, Role.ADMIN, acting_user="Admin User", now=NOW)
        assert updated.status_history[:-1] == req.status_history

    def test_illegal_raises(self):
        with pytest.raises(IllegalTransition) as exc:
            apply_transition(_at(S.PENDING_SDS), S.NORMALIZED, Role.ADMIN, acting_user="Admin User")
        assert exc.value.current_status == "Pending SDS"
        assert exc.value.target_status == "Normalized"

    def test_wrong_role_raises(self):
        # FTAM approval attempted by CAMO Technical Services
        with pytest.raises(UnauthorizedTransition):
            check_transition(_at(S.AWAITING_FTAM_APPROVAL), S.PENDING_SDS,
                             Role.CAMO_TECHNICAL_SERVICES)

    def test_terminal_rejects_admin(self):
        with pytest.raises(IllegalTransition):
            apply_transition(_at(S.REJECTED), S.PENDING_SDS, Role.ADMIN, acting_user="Admin User")
