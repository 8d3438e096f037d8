"""
E-filing routing exception hierarchy.

Every service raises these types so callers (the file-workflow engine, admin
surfaces, listing endpoints) can map failures once instead of parsing
messages.

Usage:
    from efiling.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="WorkflowTemplate", resource_id=42)
    raise ValidationError("name is required", details={"name": "required"})
"""


class NotFoundError(Exception):
    """Raised when a template, stage, sender or SLA rule does not resolve
    to an active record.

    Args:
        resource: Human-readable entity name (e.g. "WorkflowTemplate").
        resource_id: The key that was looked up. Included in logs.
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
    """Raised when required input is missing or malformed.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names;
                 values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate an active unique record.

    Args:
        resource: Model name.
        field: The unique field (or field tuple) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class UnauthorizedError(Exception):
    """Raised when geography scoping is requested without a verified caller."""

    def __init__(self, message: str = "Unauthorized: e-filing user session required") -> None:
        super().__init__(message)


class ForbiddenError(Exception):
    """Raised when the verified caller has no active e-filing profile."""

    def __init__(self, message: str = "No active e-filing profile found for current user") -> None:
        super().__init__(message)


class TransactionFailure(Exception):
    """Raised after a multi-statement mutation was rolled back.

    The triggering exception is always chained as ``__cause__``; nothing the
    failed operation wrote is left in the session.

    Args:
        operation: Name of the mutation (e.g. "update_template").
        resource_id: Optional id of the aggregate being mutated.
    """

    def __init__(self, operation: str, resource_id: int | str | None = None) -> None:
        self.operation = operation
        self.resource_id = resource_id
        msg = f"{operation} failed and was rolled back"
        if resource_id is not None:
            msg = f"{operation} id={resource_id} failed and was rolled back"
        super().__init__(msg)
