"""
Robbing Request — Service Facade

Every externally visible operation on robbing requests. Each call is one
atomic unit:

    snapshot ──► authorize ──► applier (data checks + mutation)
             ──► status change + history ──► store.replace ──► publish event

The new value is computed from the immutable snapshot and swapped into the
store only after every check has passed, so a rejected call leaves the stored
request exactly as it was. Mutations of one request are serialized by
``RequestStore.lock_for``.

Usage:
    service = RobbingService(clock=lambda: fixed_now)
    req = service.create_request(fields, Caller("Jane", Role.CAMO_PLANNING))
    service.transition(req.request_id, "Pending AR", caller, payload={...})
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Iterable, Optional

from robbing.core.exceptions import RobbingError, ValidationError
from robbing.models.robbing import (
    Caller,
    DocumentHandle,
    DocumentSlotName,
    RobbingRequest,
    RobbingStatus,
    Role,
)
from robbing.models.status_catalog import catalog_as_dict, transitions_from
from robbing.services import request_store
from robbing.services.creation_service import build_request
from robbing.services.document_store import DocumentStore
from robbing.services.events import EventBus, RobbingEvent, log_notification
from robbing.services.request_store import RequestStore
from robbing.services.side_effects import (
    MATERIAL_STORE_ACTIONS,
    MaterialStoreAction,
    apply_side_effects,
)
from robbing.services.transition_engine import (
    apply_transition,
    available_transitions,
    check_transition,
)
from robbing.utils.helpers import is_blank, utcnow

logger = logging.getLogger(__name__)

# Payload keys that carry a document. HTTP callers send the handle id returned
# by the document upload; it is resolved to a DocumentHandle before any applier
# sees the payload.
DOCUMENT_KEYS = (
    "approval_document",
    "sds_document",
    "acceptance_report_document",
    "caam_form1_document",
    "s_label_document",
    "plan_document",
    "completion_evidence",
)


def _parse_status(value) -> RobbingStatus:
    try:
        return RobbingStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status: {value}", details={"status": "unknown status"})


def _parse_role(value) -> Role:
    try:
        return Role(value)
    except ValueError:
        raise ValidationError(f"Unknown role: {value}", details={"role": "unknown role"})


def _optional_text(value, field: str) -> Optional[str]:
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be text", details={field: "invalid"})
    return value


def _combine(*parts: Optional[str]) -> Optional[str]:
    text = " ".join(str(p).strip() for p in parts if not is_blank(p))
    return text or None


def _log_context(request_id: str, caller: Optional[Caller]) -> dict:
    return {
        "robbing_request_id": request_id,
        "acting_user": caller.name if caller else None,
        "acting_role": caller.role.value if caller else None,
    }


class RobbingService:
    """Facade over the store, engine, appliers, document store and event bus."""

    def __init__(
        self,
        store: Optional[RequestStore] = None,
        documents: Optional[DocumentStore] = None,
        events: Optional[EventBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store or RequestStore()
        self.documents = documents or DocumentStore()
        if events is None:
            events = EventBus()
            events.subscribe(log_notification)
        self.events = events
        self.clock = clock or utcnow

    # ── Queries ──────────────────────────────────────────────────────────

    def get_request(self, request_id: str) -> RobbingRequest:
        return self.store.get(request_id)

    def list_requests(
        self,
        statuses: Optional[Iterable] = None,
        sort_field: Optional[str] = "created_date",
        sort_direction: str = "desc",
        search: Optional[str] = None,
        group_by: Optional[str] = None,
    ):
        """
        Filter → search → sort; optionally grouped.

        Returns a list of requests, or an ordered {label: [requests]} mapping
        when ``group_by`` is given.
        """
        wanted = [_parse_status(s) for s in (statuses or ())]
        items = self.store.query(
            statuses=wanted, term=search,
            sort_field=sort_field, sort_direction=sort_direction,
        )
        if group_by:
            return request_store.group_by(items, group_by)
        return items

    def get_status_counts(self) -> dict[RobbingStatus, int]:
        return self.store.status_counts()

    def get_available_actions(self, request_id: str, role) -> list[dict]:
        """Transitions ``role`` may take from the request's current status."""
        request = self.store.get(request_id)
        allowed = set(available_transitions(request, _parse_role(role)))
        return [
            {"status": t.next_status.value, "label": t.label, "description": t.description}
            for t in transitions_from(request.status)
            if t.next_status in allowed
        ]

    def status_catalog(self) -> list[dict]:
        return catalog_as_dict()

    # ── Commands ─────────────────────────────────────────────────────────

    def create_request(self, fields: dict, caller: Caller) -> RobbingRequest:
        """Validate, assign identity, auto-transition out of Initiated and store."""
        now = self.clock()
        with self.store.creation_lock():
            try:
                request = build_request(
                    fields, caller, sequence=self.store.next_sequence(), now=now,
                )
            except RobbingError as exc:
                logger.warning("Create rejected for %s [%s]: %s",
                               caller.name, caller.role.value, exc)
                raise
            self.store.insert(request)

        logger.info("Robbing request %s created by %s [%s] → %s",
                    request.request_id, caller.name, caller.role.value, request.status.value,
                    extra=_log_context(request.request_id, caller))
        self._publish("created", request, None, caller, now)
        return request

    def transition(
        self,
        request_id: str,
        target,
        caller: Caller,
        payload: Optional[dict] = None,
        comments: Optional[str] = None,
    ) -> RobbingRequest:
        """
        Move a request to ``target`` with the data that edge requires.

        Raises:
            NotFoundError, ValidationError, IllegalTransition,
            UnauthorizedTransition, MissingRequiredData, InvalidDate
        """
        target = _parse_status(target)
        comments = _optional_text(comments, "comments")
        now = self.clock()
        with self.store.lock_for(request_id):
            current = self.store.get(request_id)
            try:
                check_transition(current, target, caller.role)
                effect = apply_side_effects(
                    current, target, self._resolve_documents(payload), now=now,
                )
                updated = apply_transition(
                    effect.request, target, caller.role,
                    acting_user=caller.name,
                    comments=_combine(effect.summary, comments),
                    now=now,
                )
            except RobbingError as exc:
                logger.warning("Transition %s → %s rejected for %s [%s]: %s",
                               request_id, target.value, caller.name, caller.role.value, exc)
                raise
            self.store.replace(updated)

        logger.info("Request %s: %s → %s by %s [%s]",
                    request_id, current.status.value, updated.status.value,
                    caller.name, caller.role.value,
                    extra=_log_context(request_id, caller))
        self._publish("transitioned", updated, current.status, caller, now)
        return updated

    def update_document_reference(
        self,
        request_id: str,
        slot,
        reference: Optional[str] = None,
        handle=None,
        caller: Optional[Caller] = None,
    ) -> RobbingRequest:
        """Set the reference and/or document of one slot. Status is unchanged."""
        try:
            slot = DocumentSlotName(slot)
        except ValueError:
            raise ValidationError(
                f"Unknown document slot: {slot}",
                details={"slot": f"must be one of {', '.join(s.value for s in DocumentSlotName)}"},
            )
        reference = _optional_text(reference, "reference")
        if is_blank(reference) and handle is None:
            raise ValidationError(
                "Nothing to update", details={"reference": "reference or document required"},
            )
        document = self._resolve_document(handle) if handle is not None else None

        with self.store.lock_for(request_id):
            current = self.store.get(request_id)
            docs = current.documentation.with_slot(
                slot,
                reference=None if is_blank(reference) else reference.strip(),
                document=document,
            )
            updated = self.store.replace(replace(current, documentation=docs))

        logger.info("Request %s: %s document updated by %s",
                    request_id, slot.value, caller.name if caller else "unknown",
                    extra=_log_context(request_id, caller))
        self._publish("document_updated", updated, current.status, caller, self.clock(),
                      detail=f"{slot.value} updated")
        return updated

    def material_store_action(
        self,
        request_id: str,
        action,
        payload: Optional[dict],
        caller: Caller,
    ) -> RobbingRequest:
        """
        Record an S-Label or report the removed component unserviceable.

        Raises:
            ValidationError (unknown action), Unauthorized, PreconditionFailed,
            MissingRequiredData
        """
        try:
            action = MaterialStoreAction(action)
        except ValueError:
            raise ValidationError(
                f"Unknown material store action: {action}",
                details={"action": f"must be one of {', '.join(a.value for a in MaterialStoreAction)}"},
            )
        handler = MATERIAL_STORE_ACTIONS[action]
        now = self.clock()
        with self.store.lock_for(request_id):
            current = self.store.get(request_id)
            try:
                updated = handler(
                    current, self._resolve_documents(payload),
                    role=caller.role, acting_user=caller.name, now=now,
                )
            except RobbingError as exc:
                logger.warning("%s on %s rejected for %s [%s]: %s",
                               action.value, request_id, caller.name, caller.role.value, exc)
                raise
            self.store.replace(updated)

        logger.info("Request %s: %s by %s [%s] (component %s)",
                    request_id, action.value, caller.name, caller.role.value,
                    updated.component.status.value,
                    extra=_log_context(request_id, caller))
        self._publish("material_store_action", updated, current.status, caller, now,
                      detail=action.value)
        return updated

    # ── Internals ────────────────────────────────────────────────────────

    def _resolve_document(self, value) -> DocumentHandle:
        if isinstance(value, DocumentHandle):
            return value
        if isinstance(value, dict) and value.get("handle_id"):
            value = value["handle_id"]
        if not isinstance(value, str) or is_blank(value):
            raise ValidationError("Invalid document reference", details={"document": "invalid"})
        return self.documents.resolve(value.strip())

    def _resolve_documents(self, payload: Optional[dict]) -> dict:
        resolved = dict(payload or {})
        for key in DOCUMENT_KEYS:
            if not is_blank(resolved.get(key)):
                resolved[key] = self._resolve_document(resolved[key])
            else:
                resolved.pop(key, None)
        return resolved

    def _publish(self, kind, request, previous_status, caller, now, detail=None) -> None:
        self.events.publish(RobbingEvent(
            kind=kind,
            request_id=request.request_id,
            status=request.status.value,
            previous_status=previous_status.value if previous_status else None,
            acting_user=caller.name if caller else "unknown",
            acting_role=caller.role.value if caller else "unknown",
            timestamp=now,
            detail=detail,
        ))
