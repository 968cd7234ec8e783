"""
Engine-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from artifact_studio.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Document", resource_id="doc-1")
    raise ValidationError("Unknown document kind", details={"kind": "sheet"})
"""


class NotFoundError(Exception):
    """Raised when a requested document, suggestion or session does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Document", "Suggestion").
        resource_id: The id that was looked up.
    """

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input is well-formed but violates a content or engine rule.

    Examples: an unknown document kind, a suggestion whose payload does not
    match its type, an attempt to edit a non-editable field.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names or
                 content paths; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique identifier.

    Maps to HTTP 409.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class PersistenceError(Exception):
    """Raised by a document store when a save, load or truncate fails.

    The in-memory canonical document is never rolled back on this error;
    callers surface it as a notification and retry with current state.

    Args:
        document_id: The document the failed operation targeted.
        operation: "save", "load" or "truncate".
        reason: Underlying error text (logged, not shown to end users).
    """

    def __init__(self, document_id: str, operation: str, reason: str = "") -> None:
        self.document_id = document_id
        self.operation = operation
        self.reason = reason
        msg = f"Failed to {operation} document {document_id}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
