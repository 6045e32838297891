"""Error taxonomy for Team Tasks.

Services raise these; the HTTP boundary maps them to responses in
``app.core.exception_handlers``.
"""

from __future__ import annotations

from typing import Any


class TeamTasksError(Exception):
    """Base exception for all Team Tasks errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (field errors, resource ids, reasons).
    """

    status_code = 500

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(TeamTasksError):
    """Malformed or missing input. Carries per-field messages."""

    status_code = 400

    def __init__(self, message: str, errors: dict[str, str] | None = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", {"errors": errors or {}})

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, {field: message})


class AuthenticationError(TeamTasksError):
    """Missing, invalid, revoked or expired credential."""

    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message, "AUTHENTICATION_ERROR")


class AuthorizationError(TeamTasksError):
    """Authenticated, but the access engine denied the action."""

    status_code = 403

    def __init__(
        self,
        reason: str,
        resource: str | None = None,
        action: str | None = None,
        message: str | None = None,
    ) -> None:
        self.reason = reason
        if message is None:
            message = (
                f"Permission denied: {action} on {resource}"
                if resource and action
                else "Permission denied"
            )
        details: dict[str, Any] = {"reason": reason}
        if resource:
            details["resource"] = resource
        if action:
            details["action"] = action
        super().__init__(message, "AUTHORIZATION_ERROR", details)


class NotFoundError(TeamTasksError):
    """A referenced entity does not exist (or is outside the caller's scope)."""

    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        details: dict[str, Any] = {"resource": resource}
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        super().__init__(f"{resource} not found", "NOT_FOUND", details)
