"""
Service-layer exceptions.

Services raise these and blueprints translate them through
app.utils.errors.register_service_error_handlers:

    NotFoundError    → 404
    ValidationError  → 400, or 422 for a well-formed request a business rule rejects
    ConflictError    → 409
"""


class NotFoundError(Exception):
    """A row that does not exist, or is soft-deleted."""

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        where = f" id={resource_id}" if resource_id is not None else ""
        super().__init__(f"{resource}{where} not found")


class ValidationError(Exception):
    """Malformed input (400) or a rejected business rule (``status=422``).

    ``details`` maps field names to what was wrong with them.
    """

    def __init__(self, message: str, details: dict | None = None, status: int = 400) -> None:
        self.details = details or {}
        self.status = status
        super().__init__(message)


class ConflictError(Exception):
    """A commit would duplicate a unique value."""

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")
