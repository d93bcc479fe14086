"""
API request and response models for the auth backend.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclass in auth/models.py, which owns the
internal domain representation. Route handlers map between the two.

Request models are deliberately lenient: missing or null fields become empty
strings so the service's own rules report them with the field-keyed error map
(400) instead of FastAPI's generic 422.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from auth.models import User
from auth.validation import MAX_LENGTH

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class Credentials(BaseModel):
    """Request body for POST /login."""

    model_config = ConfigDict(extra="ignore")

    email: str = ""
    password: str = ""

    @field_validator("email", "password", mode="before")
    @classmethod
    def none_to_empty(cls, value: object) -> object:
        """Treat an explicit JSON null like a missing field."""
        return "" if value is None else value

    @field_validator("email", "password")
    @classmethod
    def encodable(cls, value: str) -> str:
        return _require_utf8(value)


class SignupRequest(Credentials):
    """Request body for POST /signup.

    password2 is advertised by the OPTIONS schema for client-side forms but
    is not compared against password here.
    """

    password2: str = ""

    @field_validator("password2", mode="before")
    @classmethod
    def password2_none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @field_validator("password2")
    @classmethod
    def password2_encodable(cls, value: str) -> str:
        return _require_utf8(value)


def _require_utf8(value: str) -> str:
    """Reject strings the database driver cannot store.

    JSON allows lone surrogate escapes ("\\ud800") that decode to a valid
    Python str but have no UTF-8 encoding.
    """
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise ValueError("contains characters that cannot be encoded as UTF-8") from exc
    return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class SignupResponse(BaseModel):
    """Response for POST /signup -- the new id and nothing else."""

    model_config = ConfigDict(frozen=True)

    id: int


class UserResponse(BaseModel):
    """Response for POST /login. The stored password is never included."""

    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    created_at: Optional[str] = None
    last_login: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            created_at=user.created_at,
            last_login=user.last_login,
        )


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "healthy"
    version: str
    components: dict[str, str]


# ---------------------------------------------------------------------------
# Form schema documents (OPTIONS /signup, OPTIONS /login)
#
# Static descriptions a client can turn into a form. Values are strings to
# keep the document shape flat: {"type", "required", "maxLength"}.
# ---------------------------------------------------------------------------


def _field(kind: str) -> dict[str, str]:
    return {"type": kind, "required": "1", "maxLength": str(MAX_LENGTH)}


LOGIN_SCHEMA: dict[str, dict[str, str]] = {
    "email": _field("string"),
    "password": _field("password"),
}

SIGNUP_SCHEMA: dict[str, dict[str, str]] = {
    "email": _field("string"),
    "password": _field("password"),
    "password2": _field("password"),
}
