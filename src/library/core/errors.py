"""Catalog error taxonomy.

Every error carries the HTTP status it maps to; the API layer renders them
as ``{"message": ..., "errors": [...]}`` bodies.
"""

from __future__ import annotations

from typing import Any


class CatalogError(Exception):
    """Base class for errors raised by catalog operations."""

    status_code: int = 500
    default_message: str = "Catalog operation failed"

    def __init__(self, message: str | None = None, *, errors: list[str] | None = None):
        self.message = message or self.default_message
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class BookNotFoundError(CatalogError):
    status_code = 404
    default_message = "Book not found"


class BookValidationError(CatalogError):
    """Payload failed schema validation; ``errors`` lists every field problem."""

    status_code = 400
    default_message = "Validation failed"


class DuplicateKeyError(CatalogError):
    status_code = 400
    default_message = "Book with this ISBN already exists"


class OperationFailedError(CatalogError):
    """Unexpected store failure, surfaced with the status of the calling route."""

    def __init__(self, message: str | None = None, *, status_code: int = 500):
        super().__init__(message)
        self.status_code = status_code
