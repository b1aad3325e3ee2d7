"""
Component Robbing Tracker
Caller identity resolution.

Provides:
    - API key authentication via X-API-Key header
    - Resolution of the acting caller (name + organisational role) into g.caller
    - Content-Type enforcement for state-changing requests

Security model:
    - Every /api/v1/robbing/* endpoint acts on behalf of a resolved caller
    - With auth enabled the role comes only from the API key mapping; a
      self-reported role header is ignored
    - The System role is reserved for automatic transitions and can never be
      claimed by an HTTP caller

Configuration:
    API_KEYS          — comma-separated "<key>:<role>:<name>" entries
                        e.g. "k1:CAMO Planning:Jane Doe,k2:AMO 145:Ali Hassan"
    API_AUTH_ENABLED  — "false" to identify callers from X-User-Name /
                        X-User-Role headers (development and testing only)
"""

import functools
import logging
from typing import Optional

from flask import current_app, g, request

from robbing.models.robbing import Caller, Role
from robbing.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Roles an HTTP caller may act as
CLAIMABLE_ROLES = frozenset(r for r in Role if r != Role.SYSTEM)

_ROLE_LOOKUP = {r.value.lower(): r for r in Role}


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Case-insensitive role lookup; None for unknown or System."""
    if not value:
        return None
    role = _ROLE_LOOKUP.get(value.strip().lower())
    if role not in CLAIMABLE_ROLES:
        return None
    return role


def parse_api_keys(raw: str) -> dict[str, Caller]:
    """
    Parse API_KEYS into {key: Caller} mapping.

    Format: "key1:CAMO Planning:Jane Doe,key2:FTAM:Lee Wong"
    Entries with an unknown or reserved role are skipped.
    """
    keys: dict[str, Caller] = {}
    if not raw or not raw.strip():
        return keys

    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        parts = entry.split(":", 2)
        if len(parts) != 3 or not parts[0].strip() or not parts[2].strip():
            logger.warning("Malformed API key entry ignored (expected key:role:name)")
            continue
        key, role_name, name = (p.strip() for p in parts)
        role = parse_role(role_name)
        if role is None:
            logger.warning("Unknown role '%s' for API key, entry ignored", role_name)
            continue
        keys[key] = Caller(name=name, role=role)
    return keys


def _is_auth_enabled() -> bool:
    value = str(current_app.config.get("API_AUTH_ENABLED", "true"))
    return value.lower() not in ("false", "0", "no", "off")


def _caller_from_api_key():
    api_key = request.headers.get("X-API-Key", "").strip()
    if not api_key:
        return None, api_error(E.UNAUTHENTICATED, "Authentication required. Provide X-API-Key header.")

    api_keys = parse_api_keys(current_app.config.get("API_KEYS", ""))
    if not api_keys:
        logger.error("API_KEYS is not configured but API_AUTH_ENABLED=true")
        return None, api_error(E.INTERNAL, "Server authentication not configured")

    caller = api_keys.get(api_key)
    if caller is None:
        logger.warning("Invalid API key attempt: %s...", api_key[:8])
        return None, api_error(E.UNAUTHENTICATED, "Invalid API key")
    return caller, None


def _caller_from_headers():
    name = request.headers.get("X-User-Name", "").strip()
    role_name = request.headers.get("X-User-Role", "").strip()
    if not name or not role_name:
        return None, api_error(
            E.VALIDATION_REQUIRED,
            "X-User-Name and X-User-Role headers are required",
            details={k: "required" for k, v in
                     (("X-User-Name", name), ("X-User-Role", role_name)) if not v},
        )
    role = parse_role(role_name)
    if role is None:
        return None, api_error(
            E.VALIDATION_INVALID, f"Unknown role: {role_name}",
            details={"X-User-Role": f"must be one of {', '.join(sorted(r.value for r in CLAIMABLE_ROLES))}"},
        )
    return Caller(name=name, role=role), None


def _check_content_type():
    """
    State-changing requests with a body must be JSON (or multipart for
    uploads). HTML forms cannot send application/json, which keeps plain
    cross-site form posts out.
    """
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        ct = request.content_type or ""
        if ("application/json" not in ct and "multipart/form-data" not in ct
                and request.content_length and request.content_length > 0):
            return api_error(
                E.VALIDATION_INVALID,
                "Content-Type must be application/json for state-changing requests",
                status=415,
            )
    return None


def require_caller(f):
    """
    Decorator: resolve the acting caller into ``g.caller``.

    Rejects the request before the view runs when no caller can be resolved.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        error = _check_content_type()
        if error:
            return error

        if _is_auth_enabled():
            caller, error = _caller_from_api_key()
        else:
            caller, error = _caller_from_headers()
        if error:
            return error

        g.caller = caller
        return f(*args, **kwargs)

    return decorated
