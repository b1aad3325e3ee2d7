"""
Robbing Request — Side-Effect Appliers

Each applier owns the domain action behind one lifecycle edge: checking the
mandatory data for that edge and writing it onto the request (document slots,
component serviceability and location, normalization plan/completion).

Appliers never change ``status`` and never append history. They return an
``EffectResult`` carrying the updated request plus a summary line; the caller
combines it with ``apply_transition`` and only then stores the result, so an
applier failure leaves the stored request untouched.

Edges with appliers:
    Initiated               → Awaiting FTAM Approval      optional approval document
    Awaiting FTAM Approval  → Pending SDS                 optional approval document
    Pending SDS             → Pending AR                  SDS reference + document
    Pending AR              → Pending Removal from Donor  AR reference + document
    Pending Removal         → Removed from Donor          serviceability selection
    Removed from Donor      → Normalization Planned       future target date
    Normalization Planned   → Normalized                  work order, installed P/N, S/N, evidence

Material Store actions (status unchanged, history entry on current status):
    submit_s_label       — S-Label reference + document, component Serviceable
    report_unserviceable — reason, component Unserviceable
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from robbing.core.exceptions import (
    InvalidDate,
    MissingRequiredData,
    PreconditionFailed,
    Unauthorized,
    ValidationError,
)
from robbing.models.robbing import (
    LOCATION_REMOVED,
    ComponentStatus,
    DocumentHandle,
    DocumentSlotName,
    LifeRemaining,
    RobbingRequest,
    RobbingStatus,
    Role,
    SdsDeclaration,
)
from robbing.utils.helpers import is_blank, parse_datetime

logger = logging.getLogger(__name__)

S = RobbingStatus

NORMALIZATION_APPROACHES = {"immediate", "deferred"}


@dataclass(frozen=True)
class EffectResult:
    request: RobbingRequest
    summary: Optional[str] = None


class MaterialStoreAction(str, Enum):
    SUBMIT_S_LABEL = "SubmitSLabel"
    REPORT_UNSERVICEABLE = "ReportUnserviceable"


MATERIAL_STORE_ROLES = frozenset({Role.MATERIAL_STORE, Role.ADMIN})


# ── Helpers ──────────────────────────────────────────────────────────────────

def _require(payload: dict, action: str, *fields: str) -> None:
    """Raise MissingRequiredData naming every blank field, not just the first."""
    missing = [f for f in fields if is_blank(payload.get(f))]
    if missing:
        raise MissingRequiredData(action, missing)


def _document(payload: dict, key: str) -> Optional[DocumentHandle]:
    value = payload.get(key)
    if value is None:
        return None
    if not isinstance(value, DocumentHandle):
        raise ValidationError(f"{key} must be a document handle", details={key: "invalid document"})
    return value


def _text(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if is_blank(value):
        return None
    return str(value).strip()


def _join(*parts: Optional[str]) -> str:
    return " ".join(p for p in parts if p)


def _parse_declarations(raw) -> tuple[SdsDeclaration, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise ValidationError("declarations must be a list", details={"declarations": "invalid"})
    declarations = []
    errors = {}
    for idx, item in enumerate(raw):
        if not isinstance(item, dict) or is_blank(item.get("prompt_text")):
            errors[f"declarations[{idx}]"] = "prompt_text is required"
            continue
        if not isinstance(item["prompt_text"], str):
            errors[f"declarations[{idx}]"] = "prompt_text must be text"
            continue
        answer = item.get("answer")
        if isinstance(answer, str):
            answer = answer.strip().lower()
            if answer not in ("yes", "no"):
                errors[f"declarations[{idx}]"] = "answer must be yes or no"
                continue
            answer = answer == "yes"
        elif not isinstance(answer, bool):
            errors[f"declarations[{idx}]"] = "answer must be yes or no"
            continue
        declarations.append(SdsDeclaration(
            id=str(item.get("id") or f"declaration{idx + 1}"),
            prompt_text=item["prompt_text"].strip(),
            answer=answer,
            remarks=_text(item, "remarks"),
            reference_slot=_text(item, "reference_slot"),
        ))
    if errors:
        raise ValidationError("Invalid SDS declarations", details=errors)
    return tuple(declarations)


# ── Transition appliers ──────────────────────────────────────────────────────

def _ftam_approval_document(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Awaiting FTAM Approval / FTAM approval: attach an approval document if given."""
    document = _document(payload, "approval_document")
    if document is None:
        return EffectResult(request)
    docs = request.documentation.with_slot(DocumentSlotName.EXTENSION_APPROVAL, document=document)
    return EffectResult(replace(request, documentation=docs), "Approval document attached.")


def _submit_sds(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Pending AR: SDS reference and document are mandatory."""
    _require(payload, "Submit SDS", "sds_reference", "sds_document")
    reference = _text(payload, "sds_reference")
    docs = request.documentation.with_slot(
        DocumentSlotName.SDS, reference=reference, document=_document(payload, "sds_document"),
    )
    declarations = _parse_declarations(payload.get("declarations"))
    if declarations:
        docs = replace(docs, sds_declarations=declarations)
    life = payload.get("life_remaining")
    if isinstance(life, dict) and (life.get("hours") or life.get("cycles")):
        docs = replace(docs, life_remaining=LifeRemaining(
            hours=_text(life, "hours"), cycles=_text(life, "cycles"),
        ))
    return EffectResult(
        replace(request, documentation=docs),
        f"SDS submitted. Reference: {reference}.",
    )


def _submit_acceptance_report(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Pending Removal from Donor: AR reference and document are mandatory."""
    _require(payload, "Submit AR", "acceptance_report_reference", "acceptance_report_document")
    reference = _text(payload, "acceptance_report_reference")
    docs = request.documentation.with_slot(
        DocumentSlotName.ACCEPTANCE_REPORT,
        reference=reference,
        document=_document(payload, "acceptance_report_document"),
    )
    return EffectResult(
        replace(request, documentation=docs),
        f"Acceptance Report submitted. Reference: {reference}.",
    )


def _confirm_removal(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Removed from Donor: serviceability selection is mandatory."""
    _require(payload, "Confirm Removal", "component_status")
    try:
        component_status = ComponentStatus(payload["component_status"])
    except ValueError:
        raise ValidationError(
            f"Invalid component_status: {payload['component_status']}",
            details={"component_status": "must be Serviceable or Unserviceable"},
        )
    component = replace(request.component, status=component_status,
                        physical_location=LOCATION_REMOVED)
    docs = request.documentation
    caam_reference = _text(payload, "caam_form1_reference")
    caam_document = _document(payload, "caam_form1_document")
    if caam_reference or caam_document:
        docs = docs.with_slot(DocumentSlotName.CAAM_FORM1,
                              reference=caam_reference, document=caam_document)
    s_label_document = _document(payload, "s_label_document")
    if s_label_document:
        docs = docs.with_slot(DocumentSlotName.S_LABEL, document=s_label_document)

    work_order = _text(payload, "removal_work_order")
    summary = _join(
        f"Component removed on {now.date().isoformat()}.",
        f"Work Order: {work_order}." if work_order else None,
        f"Status: {component_status.value}.",
    )
    return EffectResult(replace(request, component=component, documentation=docs), summary)


def _plan_normalization(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Normalization Planned: target date must be strictly in the future."""
    _require(payload, "Plan Normalization", "target_date")
    try:
        target_date = parse_datetime(payload["target_date"])
    except (TypeError, ValueError):
        raise InvalidDate("target_date", payload["target_date"], "not a valid date")
    if target_date <= now:
        raise InvalidDate("target_date", target_date.isoformat(), "must be in the future")

    approach = _text(payload, "approach")
    if approach and approach.lower() not in NORMALIZATION_APPROACHES:
        raise ValidationError(
            f"Invalid approach: {approach}",
            details={"approach": "must be immediate or deferred"},
        )
    approach = approach.lower() if approach else None
    mel_reference = _text(payload, "mel_reference") if approach == "deferred" else None

    normalization = replace(
        request.normalization,
        target_date=target_date,
        completion_work_order=(
            _text(payload, "completion_work_order") or request.normalization.completion_work_order
        ),
        plan_document=_document(payload, "plan_document") or request.normalization.plan_document,
        approach=approach,
        mel_reference=mel_reference,
    )
    replacement_pn = _text(payload, "replacement_part_number")
    replacement_sn = _text(payload, "replacement_serial_number")
    summary = _join(
        f"Normalization planned for {target_date.date().isoformat()}.",
        f"Approach: {approach}." if approach else None,
        f"MEL Reference: {mel_reference}." if mel_reference else None,
        f"Replacement P/N: {replacement_pn}." if replacement_pn else None,
        f"Replacement S/N: {replacement_sn}." if replacement_sn else None,
    )
    return EffectResult(replace(request, normalization=normalization), summary)


def _confirm_normalization(request: RobbingRequest, payload: dict, now: datetime) -> EffectResult:
    """→ Normalized: all completion fields and the evidence document are mandatory."""
    _require(
        payload, "Confirm Normalization",
        "completion_work_order", "installed_part_number",
        "installed_serial_number", "completion_evidence",
    )
    evidence = _document(payload, "completion_evidence")
    work_order = _text(payload, "completion_work_order")
    part_number = _text(payload, "installed_part_number")
    serial_number = _text(payload, "installed_serial_number")
    normalization = replace(
        request.normalization,
        actual_completion_date=now,
        completion_work_order=work_order,
        completion_evidence=evidence,
        installed_part_number=part_number,
        installed_serial_number=serial_number,
    )
    docs = request.documentation.with_slot(
        DocumentSlotName.NORMALIZATION_EVIDENCE, document=evidence,
    )
    return EffectResult(
        replace(request, normalization=normalization, documentation=docs),
        f"Aircraft normalized on {now.date().isoformat()}. Work Order: {work_order}. "
        f"Installed P/N: {part_number}, S/N: {serial_number}.",
    )


Applier = Callable[[RobbingRequest, dict, datetime], EffectResult]

# Keyed by (from, to) edge; edges without an entry carry no extra data.
SIDE_EFFECTS: dict[tuple[RobbingStatus, RobbingStatus], Applier] = {
    (S.INITIATED, S.AWAITING_FTAM_APPROVAL): _ftam_approval_document,
    (S.AWAITING_FTAM_APPROVAL, S.PENDING_SDS): _ftam_approval_document,
    (S.PENDING_SDS, S.PENDING_AR): _submit_sds,
    (S.PENDING_AR, S.PENDING_REMOVAL): _submit_acceptance_report,
    (S.PENDING_REMOVAL, S.REMOVED_FROM_DONOR): _confirm_removal,
    (S.REMOVED_FROM_DONOR, S.NORMALIZATION_PLANNED): _plan_normalization,
    (S.NORMALIZATION_PLANNED, S.NORMALIZED): _confirm_normalization,
}


def apply_side_effects(
    request: RobbingRequest,
    target: RobbingStatus,
    payload: Optional[dict],
    *,
    now: datetime,
) -> EffectResult:
    """Run the applier registered for ``request.status → target`` (no-op if none)."""
    applier = SIDE_EFFECTS.get((request.status, RobbingStatus(target)))
    if applier is None:
        return EffectResult(request)
    return applier(request, payload or {}, now)


# ── Material Store actions ───────────────────────────────────────────────────

def _check_material_store(request: RobbingRequest, action: MaterialStoreAction, role: Role) -> None:
    if role not in MATERIAL_STORE_ROLES:
        raise Unauthorized(request.request_id, action.value, role.value)
    if request.status != S.REMOVED_FROM_DONOR:
        raise PreconditionFailed(
            request.request_id, action.value, request.status.value, S.REMOVED_FROM_DONOR.value,
        )


def submit_s_label(
    request: RobbingRequest,
    payload: dict,
    *,
    role: Role,
    acting_user: str,
    now: datetime,
) -> RobbingRequest:
    """Record the S-Label and mark the component Serviceable."""
    action = MaterialStoreAction.SUBMIT_S_LABEL
    _check_material_store(request, action, role)
    _require(payload, "Submit S Label", "s_label_reference", "s_label_document")
    reference = _text(payload, "s_label_reference")
    docs = request.documentation.with_slot(
        DocumentSlotName.S_LABEL, reference=reference,
        document=_document(payload, "s_label_document"),
    )
    component = replace(request.component, status=ComponentStatus.SERVICEABLE)
    notes = _text(payload, "notes")
    comments = _join(
        f"S Label submitted. Reference: {reference}. Component marked as Serviceable.",
        f"Notes: {notes}" if notes else None,
    )
    logger.info("S-Label %s recorded on %s by %s", reference, request.request_id, acting_user)
    return request.with_history(
        request.status, timestamp=now, acting_user=acting_user, acting_role=role,
        comments=comments, component=component, documentation=docs,
    )


def report_unserviceable(
    request: RobbingRequest,
    payload: dict,
    *,
    role: Role,
    acting_user: str,
    now: datetime,
) -> RobbingRequest:
    """Mark the removed component Unserviceable with a reason."""
    action = MaterialStoreAction.REPORT_UNSERVICEABLE
    _check_material_store(request, action, role)
    _require(payload, "Report Unserviceable", "reason")
    component = replace(request.component, status=ComponentStatus.UNSERVICEABLE)
    logger.info("Component on %s reported unserviceable by %s", request.request_id, acting_user)
    return request.with_history(
        request.status, timestamp=now, acting_user=acting_user, acting_role=role,
        comments=f"Component reported as Unserviceable. Reason: {_text(payload, 'reason')}",
        component=component,
    )


MATERIAL_STORE_ACTIONS = {
    MaterialStoreAction.SUBMIT_S_LABEL: submit_s_label,
    MaterialStoreAction.REPORT_UNSERVICEABLE: report_unserviceable,
}
