"""
Robbing Request Blueprint
HTTP surface of the robbing request lifecycle.

Endpoints (prefix /api/v1/robbing):
  Requests:       GET/POST /requests, GET /requests/<id>
                  GET  /requests/<id>/actions
                  POST /requests/<id>/transition
                  PATCH /requests/<id>/documents/<slot>
                  POST /requests/<id>/material-store
  Dashboard:      GET /status-counts
  Catalog:        GET /statuses
  Documents:      POST /documents (multipart), GET /documents/<handle_id>

Every endpoint acts on behalf of ``g.caller`` (see ``robbing.auth``).
"""

import logging

from flask import Blueprint, current_app, g, jsonify, request

from robbing.auth import require_caller
from robbing.blueprints import paginate_list
from robbing.core.exceptions import RobbingError, ValidationError
from robbing.utils.errors import E, api_error, api_error_from

logger = logging.getLogger(__name__)

robbing_bp = Blueprint("robbing", __name__, url_prefix="/api/v1/robbing")


def _service():
    return current_app.extensions["robbing"]


def _json_body() -> dict:
    """JSON object body; an empty body reads as ``{}``."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object", details={"body": "invalid"})
    return data


def _status_args() -> list[str]:
    """``?status=a&status=b`` and ``?status=a,b`` are both accepted."""
    values = []
    for raw in request.args.getlist("status"):
        values.extend(s.strip() for s in raw.split(",") if s.strip())
    return values


# ── Error handlers ───────────────────────────────────────────────────────────


@robbing_bp.errorhandler(RobbingError)
def _handle_robbing_error(error: RobbingError):
    return api_error_from(error)


# ═════════════════════════════════════════════════════════════════════════
# Requests
# ═════════════════════════════════════════════════════════════════════════


@robbing_bp.route("/requests", methods=["GET"])
@require_caller
def list_requests():
    """List requests for the dashboard table.

    Query params:
        status     — repeatable or comma-separated inclusion filter
        q          — case-insensitive search term
        sort       — field name, dotted for sub-records (default created_date)
        direction  — asc | desc (default desc)
        group_by   — donor_aircraft | recipient_aircraft | component | request_id
        limit, offset
    """
    group_key = request.args.get("group_by") or None
    result = _service().list_requests(
        statuses=_status_args(),
        sort_field=request.args.get("sort") or "created_date",
        sort_direction=(request.args.get("direction") or "desc").lower(),
        search=request.args.get("q"),
        group_by=group_key,
    )
    if group_key:
        groups = [
            {
                "label": label,
                "count": len(items),
                "items": [r.to_dict(include_history=False) for r in items],
            }
            for label, items in result.items()
        ]
        return jsonify({"groups": groups, "total": sum(group["count"] for group in groups)})

    page, total = paginate_list(result)
    return jsonify({
        "items": [r.to_dict(include_history=False) for r in page],
        "total": total,
    })


@robbing_bp.route("/requests", methods=["POST"])
@require_caller
def create_request():
    """Create a request; it is immediately auto-advanced out of Initiated."""
    data = _json_body()
    created = _service().create_request(data, g.caller)
    return jsonify(created.to_dict()), 201


@robbing_bp.route("/requests/<request_id>", methods=["GET"])
@require_caller
def get_request(request_id):
    return jsonify(_service().get_request(request_id).to_dict())


@robbing_bp.route("/requests/<request_id>/actions", methods=["GET"])
@require_caller
def available_actions(request_id):
    """Transitions the caller's role may take from the current status."""
    actions = _service().get_available_actions(request_id, g.caller.role)
    return jsonify({"request_id": request_id, "role": g.caller.role.value, "actions": actions})


@robbing_bp.route("/requests/<request_id>/transition", methods=["POST"])
@require_caller
def transition_request(request_id):
    """Move a request to a new status.

    Body: {status, payload?: {...edge data, document handle ids...}, comments?}
    """
    data = _json_body()
    target = data.get("status")
    if not target:
        return api_error(E.VALIDATION_REQUIRED, "status is required", details={"status": "required"})
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        return api_error(E.VALIDATION_INVALID, "payload must be an object",
                         details={"payload": "invalid"})
    comments = data.get("comments")
    if comments is not None and not isinstance(comments, str):
        return api_error(E.VALIDATION_INVALID, "comments must be text",
                         details={"comments": "invalid"})

    updated = _service().transition(
        request_id, target, g.caller, payload=payload, comments=comments,
    )
    return jsonify(updated.to_dict())


@robbing_bp.route("/requests/<request_id>/documents/<slot>", methods=["PATCH"])
@require_caller
def update_document(request_id, slot):
    """Body: {reference?, document?: handle_id}. Status is unchanged."""
    data = _json_body()
    updated = _service().update_document_reference(
        request_id, slot,
        reference=data.get("reference"),
        handle=data.get("document"),
        caller=g.caller,
    )
    return jsonify(updated.to_dict())


@robbing_bp.route("/requests/<request_id>/material-store", methods=["POST"])
@require_caller
def material_store(request_id):
    """Body: {action: SubmitSLabel | ReportUnserviceable, payload: {...}}"""
    data = _json_body()
    action = data.get("action")
    if not action:
        return api_error(E.VALIDATION_REQUIRED, "action is required", details={"action": "required"})
    payload = data.get("payload") or {}
    if not isinstance(payload, dict):
        return api_error(E.VALIDATION_INVALID, "payload must be an object",
                         details={"payload": "invalid"})

    updated = _service().material_store_action(request_id, action, payload, g.caller)
    return jsonify(updated.to_dict())


# ═════════════════════════════════════════════════════════════════════════
# Dashboard & catalog
# ═════════════════════════════════════════════════════════════════════════


@robbing_bp.route("/status-counts", methods=["GET"])
@require_caller
def status_counts():
    counts = _service().get_status_counts()
    return jsonify({
        "counts": {status.value: count for status, count in counts.items()},
        "total": sum(counts.values()),
    })


@robbing_bp.route("/statuses", methods=["GET"])
@require_caller
def statuses():
    return jsonify({"statuses": _service().status_catalog()})


# ═════════════════════════════════════════════════════════════════════════
# Documents
# ═════════════════════════════════════════════════════════════════════════


@robbing_bp.route("/documents", methods=["POST"])
@require_caller
def upload_document():
    """Multipart upload (field ``file``). Returns the opaque handle."""
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        return api_error(E.VALIDATION_REQUIRED, "file is required", details={"file": "required"})

    documents = _service().documents
    data = upload.read(documents.max_bytes + 1)
    if len(data) > documents.max_bytes:
        return api_error(E.PAYLOAD_TOO_LARGE,
                         f"Document exceeds {documents.max_bytes} bytes",
                         details={"file": "too large"})

    handle = documents.store(upload.filename, data, content_type=upload.mimetype)
    logger.info("Document %s uploaded by %s", handle.handle_id, g.caller.name)
    return jsonify(handle.to_dict()), 201


@robbing_bp.route("/documents/<handle_id>", methods=["GET"])
@require_caller
def get_document(handle_id):
    return jsonify(_service().documents.resolve(handle_id).to_dict())
