"""
Catalog error taxonomy.

Every failure the catalog reports carries an ErrorKind. Services raise these
errors and let them propagate; the API layer turns the kind into a status
code in one place (see grocery_catalog.main).

Usage:
    raise NotFoundError("Supermarket", supermarket_id)
    raise ConflictError("Listing already exists", unit="500 ml")
    raise ValidationError("page must be >= 1", field="page")
"""
import enum
from typing import Any, Dict, Optional


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class CatalogError(Exception):
    """Base error with a kind and a client-safe message."""

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.kind.value, "message": self.message}
        if self.context:
            body["context"] = self.context
        return body


class ValidationError(CatalogError):
    """Malformed or out-of-range input, raised before any storage access."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, field: Optional[str] = None, **context: Any):
        if field is not None:
            context["field"] = field
        super().__init__(message, **context)
        self.field = field


class AuthenticationError(CatalogError):
    """No acting user for a write that must be attributed."""

    kind = ErrorKind.UNAUTHENTICATED


class NotFoundError(CatalogError):
    """A referenced entity does not exist. Names the entity and id."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, entity_id: Optional[str] = None, **context: Any):
        if entity_id is not None:
            message = f"{entity} with ID {entity_id} not found"
            context["id"] = entity_id
        else:
            message = f"{entity} not found"
        context["entity"] = entity
        super().__init__(message, **context)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(CatalogError):
    kind = ErrorKind.CONFLICT


class InternalError(CatalogError):
    """Unexpected storage failure. The message never carries storage details."""

    kind = ErrorKind.INTERNAL

    def __init__(self, message: str = "An unexpected error occurred"):
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind.value, "message": self.message}
