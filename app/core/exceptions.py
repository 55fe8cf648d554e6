"""
Service-layer exception types.

Services raise these; blueprints register error handlers against them
once and map them to HTTP status codes:

    NotFoundError    -> 404
    ValidationError  -> 422
    ConflictError    -> 409

TransformError never reaches a blueprint: the data-flow propagator catches
it per relationship and reports it alongside the mappings that succeeded.

Usage:
    from app.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Project", resource_id=42)
    raise ValidationError("source_step_id must be between 1 and 9",
                          details={"source_step_id": 12})
"""


class NotFoundError(Exception):
    """Raised when a resource does not exist or is not owned by the caller.

    Both cases raise the same error so a 404 never confirms that another
    user's project exists.

    Args:
        resource: Human-readable entity name (e.g. "Project", "DataFlowRelationship").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
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
    """Raised when well-formed input violates a business rule.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique resource.

    Args:
        resource: Model name.
        field: The unique field (or field group) that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        msg = f"{resource} with {field}={value!r} already exists"
        super().__init__(msg)


class TransformError(Exception):
    """Raised when a named data-flow transform cannot handle its input."""

    def __init__(self, transform_type: str, message: str) -> None:
        self.transform_type = transform_type
        super().__init__(f"{transform_type}: {message}")
