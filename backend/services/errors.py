"""
Error taxonomy for the case/task core

Scoping predicates and lifecycle tables never raise these for expected
denials; services raise them, and main.py maps them onto HTTP responses.
"""
from typing import Optional, List, Dict, Any


class GBVError(Exception):
    """Base exception for domain errors surfaced to the caller."""
    status_code = 500
    code = "server_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message}


class Unauthenticated(GBVError):
    """Missing, invalid or expired identity claims."""
    status_code = 401
    code = "unauthenticated"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)


class NotVisible(GBVError):
    """Record missing or outside the actor's scope; the two are indistinguishable."""
    status_code = 404
    code = "not_found"

    def __init__(self, resource: str = "Record"):
        super().__init__(f"{resource} not found")
        self.resource = resource


class PermissionDenied(GBVError):
    """Record visible to the actor but the requested action is not theirs to take."""
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(message)


class ValidationError(GBVError):
    """Field-level problems on create/update."""
    status_code = 422
    code = "validation_error"

    def __init__(self, details: List[str], message: str = "Invalid data"):
        super().__init__(message)
        self.details = list(details)

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, "details": self.details}


class InvalidTransition(GBVError):
    """Requested status change is not in the lifecycle table."""
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current_status: str, attempted_status: str, resource: str = "Record"):
        super().__init__(
            f"{resource} cannot move from '{current_status}' to '{attempted_status}'"
        )
        self.current_status = current_status
        self.attempted_status = attempted_status

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "current_status": self.current_status,
            "attempted_status": self.attempted_status,
        }


class Conflict(InvalidTransition):
    """The record changed underneath the caller and the transition no longer holds."""
    code = "conflict"

    def __init__(self, current_status: str, attempted_status: str, resource: str = "Record"):
        super().__init__(current_status, attempted_status, resource)
        self.message = (
            f"{resource} was modified concurrently (now '{current_status}'); "
            f"re-fetch before moving it to '{attempted_status}'"
        )
        self.args = (self.message,)


class ServerError(GBVError):
    """Unexpected persistence failure; not retried by the core."""

    def __init__(self, message: str = "Internal server error", cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class AccountLocked(GBVError):
    """Too many failed logins; the account refuses credentials until lock_until."""
    status_code = 423
    code = "account_locked"

    def __init__(self, minutes_left: int):
        super().__init__(f"Account locked. Try again in {minutes_left} minutes.")
        self.minutes_left = minutes_left
