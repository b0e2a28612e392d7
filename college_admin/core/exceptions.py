"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes and stable messages everywhere.

Usage:
    from college_admin.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="CertificateRequest", resource_id=42)
    raise ValidationError("Reason is required", details={"reason": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404.

    Args:
        resource: Human-readable model/entity name (e.g. "Student").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is missing a required field or carries an invalid value.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidTransitionError(Exception):
    """Raised when a workflow action is not allowed from the current state.

    Covers "request already finished", "not your turn to act" and
    "another advisor or HOD owns this student".
    Maps to HTTP 409.
    """

    TERMINAL = "This request has already been finalised and cannot be acted on"
    WRONG_ROLE = "It is not your turn to act on this request"
    NOT_ASSIGNED = "This request is assigned to another reviewer"

    def __init__(
        self,
        certificate_id: int,
        current_status: str,
        role: str | None,
        reason: str,
    ) -> None:
        self.certificate_id = certificate_id
        self.current_status = current_status
        self.role = role
        self.reason = reason
        super().__init__(reason)


class InvalidStateError(Exception):
    """Raised when generation or download is requested in the wrong state.

    Maps to HTTP 409.
    """

    def __init__(self, certificate_id: int, message: str) -> None:
        self.certificate_id = certificate_id
        super().__init__(message)


class UpstreamFailureError(Exception):
    """Raised when a collaborator outside the workflow (document
    generator) fails for reasons the caller cannot fix by changing input.

    Maps to HTTP 502. State is left unchanged so the call can be retried.
    """

    def __init__(self, collaborator: str, message: str) -> None:
        self.collaborator = collaborator
        super().__init__(message)
