"""Creation service + request code generator tests."""

from datetime import datetime, timezone

import pytest

from robbing.core.exceptions import ValidationError
from robbing.models.robbing import (
    SYSTEM_USER,
    Caller,
    ComponentStatus,
    Priority,
    RobbingStatus,
    Role,
)
from robbing.services.code_generator import generate_request_code
from robbing.services.creation_service import build_request, validate_fields

S = RobbingStatus
NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
PLANNER = Caller("Jane Doe", Role.CAMO_PLANNING)


class TestCodeGenerator:
    def test_format(self):
        assert generate_request_code(NOW, 1) == "CR-2025-0001"
        assert generate_request_code(NOW, 42) == "CR-2025-0042"

    def test_sequence_must_be_positive(self):
        with pytest.raises(ValueError):
            generate_request_code(NOW, 0)


class TestValidation:
    def test_valid_fields(self, fields):
        assert validate_fields(fields()) == {}

    def test_every_problem_reported(self):
        errors = validate_fields({"donor_aircraft": "9M-XXD", "recipient_aircraft": "9m-xxd "})
        assert errors["recipient_aircraft"] == "must differ from donor_aircraft"
        for key in ("requester.name", "requester.department", "reason",
                    "work_order_number", "donor_has_valid_certificate",
                    "component.description", "component.part_number",
                    "component.serial_number", "component.ata_chapter"):
            assert key in errors

    def test_certificate_must_be_boolean(self, fields):
        errors = validate_fields(fields(donor_has_valid_certificate="yes"))
        assert "donor_has_valid_certificate" in errors

    def test_unknown_priority(self, fields):
        assert "priority" in validate_fields(fields(priority="Urgent"))

    def test_build_raises_with_details(self, fields):
        with pytest.raises(ValidationError) as exc:
            build_request(fields(reason="  "), PLANNER, sequence=1, now=NOW)
        assert exc.value.details == {"reason": "required"}


class TestBuildRequest:
    def test_valid_certificate_goes_to_pending_sds(self, fields):
        req = build_request(fields(), PLANNER, sequence=1, now=NOW)
        assert req.status == S.PENDING_SDS
        assert [e.status for e in req.status_history] == [S.INITIATED, S.PENDING_SDS]

    def test_no_certificate_goes_to_ftam(self, fields):
        req = build_request(fields(donor_has_valid_certificate=False), PLANNER, sequence=1, now=NOW)
        assert req.status == S.AWAITING_FTAM_APPROVAL
        assert len(req.status_history) == 2
        assert "does not have valid C of A" in req.status_history[-1].comments

    def test_history_attribution(self, fields):
        req = build_request(fields(), PLANNER, sequence=1, now=NOW)
        created, automatic = req.status_history
        assert created.acting_user == "Jane Doe"
        assert created.acting_role == Role.CAMO_PLANNING
        assert automatic.acting_user == SYSTEM_USER
        assert automatic.acting_role == Role.SYSTEM
        assert created.timestamp == automatic.timestamp == NOW

    def test_identity_and_defaults(self, fields):
        data = fields()
        del data["priority"]
        req = build_request(data, PLANNER, sequence=7, now=NOW)
        assert req.request_id == "CR-2025-0007"
        assert req.created_date == NOW
        assert req.priority == Priority.MEDIUM
        assert req.component.status == ComponentStatus.SERVICEABLE
        assert req.component.physical_location == "Donor Aircraft"
        assert not req.documentation.sds.is_complete

    def test_values_trimmed(self, fields):
        req = build_request(fields(donor_aircraft=" 9M-XXD "), PLANNER, sequence=1, now=NOW)
        assert req.donor_aircraft == "9M-XXD"
