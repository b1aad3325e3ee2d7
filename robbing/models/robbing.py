"""
Component Robbing Tracker
Robbing request domain model.

Models:
    - StatusHistoryEntry:  one immutable audit line (status, when, who, role, comments)
    - Requester:           who raised the request
    - Component:           the robbed part and its serviceability / location
    - DocumentHandle:      opaque reference to content held by the document store
    - DocumentSlot:        reference string + optional handle for one named document
    - SdsDeclaration:      one answered declaration captured with the SDS
    - LifeRemaining:       hours / cycles remaining captured with the SDS
    - Documentation:       all document slots of a request
    - Normalization:       donor aircraft normalization plan and completion
    - RobbingRequest:      aggregate root

All records are frozen. Every change produces a new value via
``dataclasses.replace`` so a failed action never leaves a half-updated request
behind.

Lifecycle:
    Initiated → (Awaiting FTAM Approval →) Pending SDS → Pending AR
    → Pending Removal from Donor → Removed from Donor
    → Normalization Planned → Normalized  |  Awaiting FTAM Approval → Rejected
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional


# ── Enumerations ─────────────────────────────────────────────────────────────

class RobbingStatus(str, Enum):
    """Lifecycle status of a robbing request."""
    INITIATED = "Initiated"
    AWAITING_FTAM_APPROVAL = "Awaiting FTAM Approval"
    PENDING_SDS = "Pending SDS"
    PENDING_AR = "Pending AR"
    PENDING_REMOVAL = "Pending Removal from Donor"
    REMOVED_FROM_DONOR = "Removed from Donor"
    NORMALIZATION_PLANNED = "Normalization Planned"
    NORMALIZED = "Normalized"
    REJECTED = "Rejected"


class Role(str, Enum):
    """Organisational role of the acting user."""
    CAMO_PLANNING = "CAMO Planning"
    FTAM = "FTAM"
    CAMO_TECHNICAL_SERVICES = "CAMO Technical Services"
    AMO_145 = "AMO 145"
    MATERIAL_STORE = "Material Store"
    ADMIN = "Admin"
    SYSTEM = "System"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class ComponentStatus(str, Enum):
    SERVICEABLE = "Serviceable"
    UNSERVICEABLE = "Unserviceable"


class DocumentSlotName(str, Enum):
    """Named document slots on a request."""
    SDS = "sds"
    ACCEPTANCE_REPORT = "acceptance_report"
    CAAM_FORM1 = "caam_form1"
    S_LABEL = "s_label"
    NORMALIZATION_EVIDENCE = "normalization_evidence"
    EXTENSION_APPROVAL = "extension_approval"


SYSTEM_USER = "System"
LOCATION_ON_DONOR = "Donor Aircraft"
LOCATION_REMOVED = "Removed from Donor"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# ── Records ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Caller:
    """Already-authenticated acting user, resolved by the calling layer."""
    name: str
    role: Role

    def to_dict(self) -> dict:
        return {"name": self.name, "role": self.role.value}


@dataclass(frozen=True)
class StatusHistoryEntry:
    """Append-only audit line. ``status`` is the request status after the action."""
    status: RobbingStatus
    timestamp: datetime
    acting_user: str
    acting_role: Role
    comments: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "timestamp": _iso(self.timestamp),
            "acting_user": self.acting_user,
            "acting_role": self.acting_role.value,
            "comments": self.comments,
        }


@dataclass(frozen=True)
class Requester:
    name: str
    department: str

    def to_dict(self) -> dict:
        return {"name": self.name, "department": self.department}


@dataclass(frozen=True)
class Component:
    description: str
    part_number: str
    serial_number: str
    ata_chapter: str
    status: ComponentStatus = ComponentStatus.SERVICEABLE
    physical_location: str = LOCATION_ON_DONOR

    @property
    def identity(self) -> str:
        """Label used when grouping requests by component."""
        return f"{self.part_number} / {self.serial_number}"

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "part_number": self.part_number,
            "serial_number": self.serial_number,
            "ata_chapter": self.ata_chapter,
            "status": self.status.value,
            "physical_location": self.physical_location,
        }


@dataclass(frozen=True)
class DocumentHandle:
    """Opaque pointer into the document store. Content is never inspected."""
    handle_id: str
    name: str
    size: int
    content_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "handle_id": self.handle_id,
            "name": self.name,
            "size": self.size,
            "content_type": self.content_type,
        }


@dataclass(frozen=True)
class DocumentSlot:
    reference: str = ""
    document: Optional[DocumentHandle] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.reference and self.reference.strip()) and self.document is not None

    def to_dict(self) -> dict:
        return {
            "reference": self.reference,
            "document": self.document.to_dict() if self.document else None,
        }


@dataclass(frozen=True)
class SdsDeclaration:
    """One declaration answered on the Spares Declaration Statement."""
    id: str
    prompt_text: str
    answer: bool
    remarks: Optional[str] = None
    reference_slot: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prompt_text": self.prompt_text,
            "answer": "yes" if self.answer else "no",
            "remarks": self.remarks,
            "reference_slot": self.reference_slot,
        }


@dataclass(frozen=True)
class LifeRemaining:
    hours: Optional[str] = None
    cycles: Optional[str] = None

    def to_dict(self) -> dict:
        return {"hours": self.hours, "cycles": self.cycles}


@dataclass(frozen=True)
class Documentation:
    sds: DocumentSlot = field(default_factory=DocumentSlot)
    acceptance_report: DocumentSlot = field(default_factory=DocumentSlot)
    caam_form1: DocumentSlot = field(default_factory=DocumentSlot)
    s_label: DocumentSlot = field(default_factory=DocumentSlot)
    normalization_evidence: DocumentSlot = field(default_factory=DocumentSlot)
    extension_approval: DocumentSlot = field(default_factory=DocumentSlot)
    sds_declarations: tuple[SdsDeclaration, ...] = ()
    life_remaining: Optional[LifeRemaining] = None

    def slot(self, name: DocumentSlotName) -> DocumentSlot:
        return getattr(self, DocumentSlotName(name).value)

    def with_slot(
        self,
        name: DocumentSlotName,
        *,
        reference: Optional[str] = None,
        document: Optional[DocumentHandle] = None,
    ) -> "Documentation":
        """Return a copy with one slot updated; ``None`` keeps the existing value."""
        current = self.slot(name)
        updated = DocumentSlot(
            reference=current.reference if reference is None else reference,
            document=current.document if document is None else document,
        )
        return replace(self, **{DocumentSlotName(name).value: updated})

    def to_dict(self) -> dict:
        result = {slot.value: self.slot(slot).to_dict() for slot in DocumentSlotName}
        result["sds_declarations"] = [d.to_dict() for d in self.sds_declarations]
        result["life_remaining"] = self.life_remaining.to_dict() if self.life_remaining else None
        return result


@dataclass(frozen=True)
class Normalization:
    target_date: Optional[datetime] = None
    actual_completion_date: Optional[datetime] = None
    completion_work_order: Optional[str] = None
    completion_evidence: Optional[DocumentHandle] = None
    installed_part_number: Optional[str] = None
    installed_serial_number: Optional[str] = None
    approach: Optional[str] = None
    mel_reference: Optional[str] = None
    plan_document: Optional[DocumentHandle] = None

    def to_dict(self) -> dict:
        return {
            "target_date": _iso(self.target_date),
            "actual_completion_date": _iso(self.actual_completion_date),
            "completion_work_order": self.completion_work_order,
            "completion_evidence": (
                self.completion_evidence.to_dict() if self.completion_evidence else None
            ),
            "installed_part_number": self.installed_part_number,
            "installed_serial_number": self.installed_serial_number,
            "approach": self.approach,
            "mel_reference": self.mel_reference,
            "plan_document": self.plan_document.to_dict() if self.plan_document else None,
        }


# ── Aggregate root ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RobbingRequest:
    """
    One robbing request.

    Invariants:
        - ``status`` equals the status of the last ``status_history`` entry
        - ``donor_aircraft`` differs from ``recipient_aircraft``
    """
    request_id: str
    status: RobbingStatus
    status_history: tuple[StatusHistoryEntry, ...]
    created_date: datetime
    requester: Requester
    donor_aircraft: str
    donor_has_valid_certificate: bool
    recipient_aircraft: str
    reason: str
    priority: Priority
    work_order_number: str
    component: Component
    documentation: Documentation = field(default_factory=Documentation)
    normalization: Normalization = field(default_factory=Normalization)

    def __post_init__(self):
        if not self.status_history:
            raise ValueError(f"Request {self.request_id} has no status history")
        if self.status_history[-1].status != self.status:
            raise ValueError(
                f"Request {self.request_id} status {self.status.value!r} does not match "
                f"last history entry {self.status_history[-1].status.value!r}"
            )

    @property
    def is_terminal(self) -> bool:
        return self.status in (RobbingStatus.NORMALIZED, RobbingStatus.REJECTED)

    def with_history(
        self,
        status: RobbingStatus,
        *,
        timestamp: datetime,
        acting_user: str,
        acting_role: Role,
        comments: Optional[str] = None,
        **changes,
    ) -> "RobbingRequest":
        """Return a copy with ``status`` set and a matching history entry appended."""
        entry = StatusHistoryEntry(
            status=status,
            timestamp=timestamp,
            acting_user=acting_user,
            acting_role=acting_role,
            comments=comments,
        )
        return replace(
            self,
            status=status,
            status_history=self.status_history + (entry,),
            **changes,
        )

    def to_dict(self, include_history: bool = True) -> dict:
        result = {
            "request_id": self.request_id,
            "status": self.status.value,
            "created_date": _iso(self.created_date),
            "requester": self.requester.to_dict(),
            "donor_aircraft": self.donor_aircraft,
            "donor_has_valid_certificate": self.donor_has_valid_certificate,
            "recipient_aircraft": self.recipient_aircraft,
            "reason": self.reason,
            "priority": self.priority.value,
            "work_order_number": self.work_order_number,
            "component": self.component.to_dict(),
            "documentation": self.documentation.to_dict(),
            "normalization": self.normalization.to_dict(),
        }
        if include_history:
            result["status_history"] = [e.to_dict() for e in self.status_history]
        return result
