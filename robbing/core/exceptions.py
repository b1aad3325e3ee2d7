"""
Canonical exception hierarchy for the robbing lifecycle.

Every service raises one of these types; the API blueprint registers one
handler against ``RobbingError`` and maps each subclass to its HTTP status.
All of them are local and recoverable: the request being acted on is left
exactly as it was before the call.

Usage:
    from robbing.core.exceptions import MissingRequiredData, UnauthorizedTransition

    raise MissingRequiredData("Pending AR", ["sds_reference", "sds_document"])
    raise UnauthorizedTransition(request_id, "Pending SDS", "CAMO Technical Services")
"""

from __future__ import annotations


class RobbingError(Exception):
    """Base class for every rejected lifecycle call."""

    code = "ERR_ROBBING"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ValidationError(RobbingError):
    """Raised when submitted fields are missing or malformed.

    ``details`` maps every offending field to a description, never just the
    first one found.
    """

    code = "ERR_VALIDATION_REQUIRED"


class NotFoundError(RobbingError):
    """Raised when a request id or document handle is unknown."""

    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" {resource_id}"
        msg += " not found"
        super().__init__(msg)


class IllegalTransition(RobbingError):
    """Raised when the target status is not reachable from the current one at all."""

    code = "ERR_ILLEGAL_TRANSITION"

    def __init__(self, request_id: str, current: str, target: str) -> None:
        self.request_id = request_id
        self.current_status = current
        self.target_status = target
        super().__init__(
            f"Request {request_id} cannot move from '{current}' to '{target}'",
            details={"from": current, "to": target},
        )


class Unauthorized(RobbingError):
    """Raised when the caller's role may not perform an action."""

    code = "ERR_FORBIDDEN"

    def __init__(self, request_id: str, action: str, role: str) -> None:
        self.request_id = request_id
        self.action = action
        self.role = role
        super().__init__(
            f"Role '{role}' is not permitted to '{action}' on request {request_id}",
            details={"action": action, "role": role},
        )


class UnauthorizedTransition(Unauthorized):
    """Raised when the edge exists but the caller's role is not authorized for it."""

    code = "ERR_UNAUTHORIZED_TRANSITION"

    def __init__(self, request_id: str, target: str, role: str) -> None:
        super().__init__(request_id, f"move to {target}", role)
        self.target_status = target


class MissingRequiredData(RobbingError):
    """Raised when a gated action is attempted without its mandatory data."""

    code = "ERR_MISSING_REQUIRED_DATA"

    def __init__(self, action: str, missing: list[str]) -> None:
        self.action = action
        self.missing = list(missing)
        super().__init__(
            f"Cannot '{action}': missing {', '.join(self.missing)}",
            details={name: "required" for name in self.missing},
        )


class InvalidDate(RobbingError):
    """Raised when a normalization target date is not strictly in the future."""

    code = "ERR_INVALID_DATE"

    def __init__(self, field: str, value, reason: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field} {value}: {reason}", details={field: reason})


class PreconditionFailed(RobbingError):
    """Raised when a status-gated side action is attempted from the wrong status."""

    code = "ERR_PRECONDITION_FAILED"

    def __init__(self, request_id: str, action: str, current: str, required: str) -> None:
        self.request_id = request_id
        self.action = action
        self.current_status = current
        super().__init__(
            f"Cannot '{action}' request {request_id} (status={current}); "
            f"requires status '{required}'",
            details={"status": current, "required_status": required},
        )
