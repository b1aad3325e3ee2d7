"""
Shared pytest fixtures for the Component Robbing Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - clock: settable fixed clock injected into the service
    - service: fresh RobbingService per test, installed into the app (autouse)
    - client: Flask test client (function-scoped)
    - fields / headers: creation-field and identity-header factories
    - callers: one Caller per organisational role
    - document: stores a small document and returns its handle
    - make_request: drives a new request to any lifecycle status
"""

from datetime import datetime, timedelta, timezone

import pytest

from robbing import create_app
from robbing.models.robbing import Caller, ComponentStatus, RobbingStatus, Role
from robbing.services.document_store import DocumentStore
from robbing.services.robbing_service import RobbingService

S = RobbingStatus

FIXED_NOW = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def request_fields(**overrides) -> dict:
    """Valid creation fields; keyword overrides replace top-level keys."""
    fields = {
        "requester": {"name": "Jane Doe", "department": "CAMO Planning"},
        "donor_aircraft": "9M-XXD",
        "recipient_aircraft": "9M-XBH",
        "donor_has_valid_certificate": True,
        "reason": "AOG",
        "priority": "High",
        "work_order_number": "WO.4000001",
        "component": {
            "description": "APU",
            "part_number": "3800454-6",
            "serial_number": "SN-100001",
            "ata_chapter": "49",
        },
    }
    fields.update(overrides)
    return fields


def auth_headers(caller: Caller) -> dict:
    return {"X-User-Name": caller.name, "X-User-Role": caller.role.value}


class Clock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


# ── App fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture()
def clock():
    return Clock(FIXED_NOW)


@pytest.fixture(autouse=True)
def service(app, clock):
    """Fresh service (empty store) per test, wired into the app."""
    svc = RobbingService(
        documents=DocumentStore(max_bytes=app.config["MAX_DOCUMENT_BYTES"]),
        clock=clock,
    )
    app.extensions["robbing"] = svc
    yield svc


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def fields():
    """Factory for valid creation fields (``fields(reason="...")``)."""
    return request_fields


@pytest.fixture()
def headers():
    """Identity headers for a caller when auth is disabled."""
    return auth_headers


@pytest.fixture()
def callers():
    """One caller per role, keyed by Role."""
    return {
        Role.CAMO_PLANNING: Caller("Jane Doe", Role.CAMO_PLANNING),
        Role.FTAM: Caller("Lee Wong", Role.FTAM),
        Role.CAMO_TECHNICAL_SERVICES: Caller("Aisha Rahman", Role.CAMO_TECHNICAL_SERVICES),
        Role.AMO_145: Caller("Ali Hassan", Role.AMO_145),
        Role.MATERIAL_STORE: Caller("Mei Tan", Role.MATERIAL_STORE),
        Role.ADMIN: Caller("Admin User", Role.ADMIN),
    }


@pytest.fixture()
def document(service):
    """Store a small document and return its handle."""
    def _store(name="evidence.pdf", data=b"%PDF-1.4 test"):
        return service.documents.store(name, data, content_type="application/pdf")
    return _store


@pytest.fixture()
def make_request(service, callers, document, clock):
    """
    Create a request and drive it to ``status`` through the normal
    transitions, each taken by the role the catalog authorizes.
    """
    def _make(status=S.PENDING_SDS, **overrides):
        status = RobbingStatus(status)
        fields = request_fields(
            donor_has_valid_certificate=status not in (S.AWAITING_FTAM_APPROVAL, S.REJECTED),
            **overrides,
        )
        req = service.create_request(fields, callers[Role.CAMO_PLANNING])
        rid = req.request_id

        if status == S.REJECTED:
            return service.transition(rid, S.REJECTED, callers[Role.FTAM])
        if status in (S.AWAITING_FTAM_APPROVAL, S.PENDING_SDS):
            return req

        steps = [
            (S.PENDING_AR, Role.CAMO_PLANNING,
             {"sds_reference": "SDS-001", "sds_document": document("sds.pdf")}),
            (S.PENDING_REMOVAL, Role.CAMO_TECHNICAL_SERVICES,
             {"acceptance_report_reference": "AR-001",
              "acceptance_report_document": document("ar.pdf")}),
            (S.REMOVED_FROM_DONOR, Role.AMO_145,
             {"component_status": ComponentStatus.SERVICEABLE.value}),
            (S.NORMALIZATION_PLANNED, Role.CAMO_PLANNING,
             {"target_date": (clock.now + timedelta(days=30)).isoformat()}),
            (S.NORMALIZED, Role.AMO_145,
             {"completion_work_order": "WO.4100001",
              "installed_part_number": "3800454-6",
              "installed_serial_number": "SN-999",
              "completion_evidence": document("evidence.pdf")}),
        ]
        for target, role, payload in steps:
            req = service.transition(rid, target, callers[role], payload=payload)
            if target == status:
                break
        return req

    return _make
