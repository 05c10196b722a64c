"""
Error taxonomy for the editor core.

Every error is recoverable: a failed operation leaves the GraphStore exactly
as it was before the call.
"""
from __future__ import annotations


class GraphError(Exception):
    """Base class for all editor-core errors."""


class ProtectedNodeError(GraphError):
    """Raised when deleting the singleton entry-point node."""


class DuplicateEntryPointError(ProtectedNodeError):
    """Raised when a second entry-point node would be created."""


class InvalidReferenceError(GraphError, KeyError):
    """Raised when a node, edge or plugin id does not resolve."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message.
        return str(self.args[0]) if self.args else ""


class PropertyValidationError(GraphError, ValueError):
    """Raised when a property or edge value does not match its declared kind."""


class ContainmentError(GraphError, ValueError):
    """Raised when a parent/child relationship would break the nesting rules."""


class MalformedDocumentError(GraphError, ValueError):
    """Raised when a flow document fails structural validation."""


class GraphIntegrityError(GraphError):
    """Raised when a snapshot handed to the compiler violates graph invariants."""


class RemoteServiceError(GraphError):
    """Raised when the code-generation or execution service fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
