"""
Error classification for the search subsystem.

Each error type maps to one caller-visible outcome:
- ValidationError       -> bad input, not retried (HTTP 400)
- AuthorizationError    -> caller lacks ownership or role (HTTP 403)
- NotFoundError         -> referenced record no longer exists (HTTP 404)
- IndexMaintenanceError -> index upsert/remove failed; logged only, never
                           surfaced to the entity write that triggered it
"""

from typing import Optional, Dict, Any


class SearchServiceError(Exception):
    """
    Base exception for all search-subsystem errors.

    Attributes:
        message: Human-readable error description
        details: Structured context for debugging
        status_code: HTTP status the API layer should answer with
    """

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(SearchServiceError):
    """
    Invalid request data.

    Examples:
    - Blank name or query when saving a search
    - Unknown entity type or sort order
    """

    status_code = 400


class AuthorizationError(SearchServiceError):
    """
    Caller is not allowed to perform the operation.

    Examples:
    - Deleting or editing a saved search owned by someone else
    - Triggering an index rebuild without the admin role
    """

    status_code = 403

    def __init__(self, message: str = "Unauthorized", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)


class NotFoundError(SearchServiceError):
    """Referenced record does not exist."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} {identifier} not found",
            {"resource": resource, "id": identifier},
        )
        self.resource = resource
        self.identifier = identifier


class IndexMaintenanceError(SearchServiceError):
    """
    Index upsert or remove failed.

    Raised inside the maintenance path only so that the failure can be
    logged with context; it is never propagated to the entity mutation.
    """

    def __init__(
        self,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            message,
            {"entity_type": entity_type, "entity_id": entity_id, "operation": operation},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
