"""
Scale error taxonomy.

Services raise these; the Streamlit shell and the API catch them at the
call site and turn them into user-facing messages.
"""

from typing import Optional


class ScaleError(Exception):
    """Base class for all Scale errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)
        self.message = message or self.user_message


class ValidationError(ScaleError):
    """Input rejected before any write was attempted."""

    user_message = "Invalid input"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotFoundError(ScaleError):
    """A referenced group, object, invitation or token does not exist."""

    def __init__(self, entity: str, entity_id: str, message: Optional[str] = None):
        super().__init__(message or f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ClaimError(ScaleError):
    """Claim link problems (invalid, expired, already claimed)."""

    user_message = "Failed to claim item"


class PermissionDeniedError(ScaleError):
    """The acting user may not perform this operation."""

    user_message = "You do not have permission to do that"


class UpstreamError(ScaleError):
    """A document store or blob store call failed."""

    user_message = "The server could not save your changes. Please try again."

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        detail = f"{operation} failed"
        if cause is not None:
            detail = f"{detail}: {cause}"
        super().__init__(detail)
        self.operation = operation
        self.cause = cause
