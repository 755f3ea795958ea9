"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from audit_portal.core.exceptions import NotFoundError, PreconditionFailedError

    raise NotFoundError(resource="ReviewWorkflow", resource_id=workflow_id)
    raise PreconditionFailedError("Item is not under review", current_status=wf.status)
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable model/entity name (e.g. "ReviewWorkflow").
        resource_id: The key that was looked up. Included in logs, not in HTTP response.
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
    """Raised when input is malformed or outside an enumerated domain.

    Maps to HTTP 400.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class PreconditionFailedError(Exception):
    """Raised when the current workflow status does not permit an operation.

    Maps to HTTP 409.  ``current_status`` is echoed in the response body so
    clients can refresh their view of the item.
    """

    def __init__(self, message: str, current_status: str | None = None) -> None:
        self.current_status = current_status
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when a caller lacks a capability or fails an ownership check.

    Maps to HTTP 403.
    """

    def __init__(self, message: str, user_id: str | None = None, action: str | None = None) -> None:
        self.user_id = user_id
        self.action = action
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would violate a unique constraint.

    Maps to HTTP 409.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)
