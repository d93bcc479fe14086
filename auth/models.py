"""
auth/models.py -- Domain dataclass for the user account.

Pattern: Data class (pure data container, zero logic). The validator, service
and stores do the work; this module only owns the domain shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account, identified by its email address.

    id is None until the store persists the record and assigns one.
    password is an opaque string at this layer -- it is stored and compared
    exactly as received.

    created_at is stamped by the store on insert; last_login stays None until
    something records a login (nothing in this service does yet).
    """

    email: str
    password: str
    id: int | None = None
    created_at: str | None = None  # ISO 8601, set by store on insert
    last_login: str | None = None  # ISO 8601
