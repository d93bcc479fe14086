"""
auth/exceptions.py -- Storage failure signals.

Every store raises one of these instead of leaking driver exceptions, so the
service can tell "no such row" and "email already taken" apart from a broken
database without knowing which backend is in use.

Hierarchy:
  StorageError           -- any persistence failure
    NotFoundError        -- lookup matched no row
    ConflictError        -- insert hit the unique email constraint
"""


class StorageError(Exception):
    """Raised when the storage backend fails to complete an operation."""


class NotFoundError(StorageError):
    """Raised when a lookup matches no row."""


class ConflictError(StorageError):
    """Raised when an insert would duplicate a unique key (the email)."""
