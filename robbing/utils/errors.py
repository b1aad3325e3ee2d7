"""Standardised API error responses.

Usage
-----
    from robbing.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Request not found")
    return api_error(E.VALIDATION_REQUIRED, "reason is required")
    return api_error_from(exc)      # any RobbingError
"""

from __future__ import annotations

from flask import jsonify


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHENTICATED = "ERR_UNAUTHENTICATED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"
    UNAUTHORIZED_TRANSITION = "ERR_UNAUTHORIZED_TRANSITION"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Lifecycle conflicts – HTTP 409
    ILLEGAL_TRANSITION = "ERR_ILLEGAL_TRANSITION"
    PRECONDITION_FAILED = "ERR_PRECONDITION_FAILED"

    # Gated data – HTTP 422
    MISSING_REQUIRED_DATA = "ERR_MISSING_REQUIRED_DATA"
    INVALID_DATE = "ERR_INVALID_DATE"

    # Upload – HTTP 413
    PAYLOAD_TOO_LARGE = "ERR_PAYLOAD_TOO_LARGE"

    # Server – HTTP 500
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHENTICATED: 401,
    E.FORBIDDEN: 403,
    E.UNAUTHORIZED_TRANSITION: 403,
    E.NOT_FOUND: 404,
    E.ILLEGAL_TRANSITION: 409,
    E.PRECONDITION_FAILED: 409,
    E.MISSING_REQUIRED_DATA: 422,
    E.INVALID_DATE: 422,
    E.PAYLOAD_TOO_LARGE: 413,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Field-level breakdown (missing fields, offending status, ...).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


def api_error_from(exc):
    """Translate a ``RobbingError`` into the standard response."""
    return api_error(exc.code, str(exc), details=getattr(exc, "details", None))
