"""Error taxonomy shared by the reconciliation services."""

from typing import Any, Dict, List, Optional


class CatalogError(RuntimeError):
    """Base class for reconciliation failures."""


class ValidationError(CatalogError):
    """Raised for malformed input before any work begins."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.details = details or []


class NotFoundError(CatalogError):
    """Raised when a referenced venue or dish does not exist."""


class InvalidStateError(CatalogError):
    """Raised for requests that conflict with the current entity state (self-merge, re-promotion)."""


class ConflictError(CatalogError):
    """Raised when a transaction read a document that changed before commit."""
