"""Custom exception hierarchy for the filevault store layer.

Every error carries a stable ``kind`` tag and a ``context`` dict of the
identifiers involved, so an API layer can map it to a response without
parsing the message.
"""

from __future__ import annotations

from typing import Any


class VaultError(Exception):
    """Base exception for all filevault errors."""

    kind = "VaultError"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context


class NotFoundError(VaultError, LookupError):
    """Raised when an entity id does not resolve."""

    kind = "NotFound"


class PermissionDeniedError(VaultError, PermissionError):
    """Raised when the access control engine returns ``Deny``."""

    kind = "PermissionDenied"


class ValidationError(VaultError, ValueError):
    """Raised on malformed input: empty names, cyclic parents, owner-targeted grants."""

    kind = "ValidationError"


class ConflictError(VaultError):
    """Raised on uniqueness violations such as a duplicate username."""

    kind = "Conflict"


class InvalidStateError(VaultError):
    """Raised on structural violations (children under a leaf, rows vanishing mid-cascade)."""

    kind = "InvalidState"


class StorageError(VaultError):
    """Raised on persistence backend failures (DB connection, constraint, I/O)."""

    kind = "StorageError"
