"""
auth/service.py -- Signup and login pipelines.

Both flows are linear and stateless:

    validate -> (conditional) lookup -> decide -> (signup only) persist -> respond

Nothing is retried and nothing is held between requests; the storage backend
is the only shared state. Failures are collected into a ValidationErrors map
and raised as AuthError, which the HTTP layer renders as JSON.

Security:
  Login answers every failure (unknown email, wrong password, broken lookup)
  with the same NON_FIELD_ERRORS message so the response does not reveal
  which of the two credentials was wrong. Passwords are compared with
  hmac.compare_digest.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import hmac
import logging

from auth.exceptions import ConflictError, NotFoundError, StorageError
from auth.models import User
from auth.store import UserStorage
from auth.validation import LOGIN_RULES, NON_FIELD_ERRORS, SIGNUP_RULES, ValidationErrors, validate

logger = logging.getLogger("authbackend.auth")

EMAIL_TAKEN_MESSAGE = "address already exists, do you want to reset password?"
CREATE_FAILED_MESSAGE = "cannot create user, please try again in few minutes"
BAD_CREDENTIALS_MESSAGE = "email or password do not match"


class AuthError(Exception):
    """Raised when a signup or login request cannot succeed.

    errors holds every problem found, keyed by field. status_code is 400 for
    anything the client can fix and 500 when storage failed underneath us.
    """

    def __init__(self, errors: ValidationErrors, status_code: int = 400) -> None:
        super().__init__(repr(errors))
        self.errors = errors
        self.status_code = status_code


class AuthService:
    """Orchestrates validation and storage for the two account flows.

    Usage:
        service = AuthService(MemoryUserStore())
        user_id = service.signup("new@user.com", "123123")
        user = service.login("new@user.com", "123123")
    """

    def __init__(self, store: UserStorage) -> None:
        self.store = store

    def signup(self, email: str, password: str) -> int:
        """Register a new account and return its id.

        The availability lookup is skipped when the email is already known to
        be invalid. A NotFoundError from that lookup is the good outcome.
        Raises AuthError with every collected problem otherwise.
        """
        errors = validate({"email": email, "password": password}, SIGNUP_RULES)

        if not errors.has("email"):
            try:
                self.store.get_user_by_email(email)
            except NotFoundError:
                pass
            except StorageError as exc:
                errors.add("email", str(exc))
            else:
                errors.add("email", EMAIL_TAKEN_MESSAGE)

        if errors:
            raise AuthError(errors)

        try:
            user_id = self.store.create_user(User(email=email, password=password))
        except ConflictError as exc:
            # Another request registered the same email after our lookup.
            errors.add("email", str(exc))
            raise AuthError(errors) from exc
        except StorageError as exc:
            logger.exception("insert users error for %r", email)
            errors.add(NON_FIELD_ERRORS, CREATE_FAILED_MESSAGE)
            raise AuthError(errors, status_code=500) from exc

        logger.info("Created user %d", user_id)
        return user_id

    def login(self, email: str, password: str) -> User:
        """Return the stored user whose email and password match.

        Raises AuthError with field errors for blank input, or with a single
        generic NON_FIELD_ERRORS message for any credential mismatch.
        """
        errors = validate({"email": email, "password": password}, LOGIN_RULES)
        if errors:
            raise AuthError(errors)

        try:
            user = self.store.get_user_by_email(email)
        except NotFoundError:
            user = None
        except StorageError:
            logger.warning("Login lookup failed for %r", email, exc_info=True)
            user = None

        if user is None or not hmac.compare_digest(user.password.encode("utf-8"), password.encode("utf-8")):
            errors.add(NON_FIELD_ERRORS, BAD_CREDENTIALS_MESSAGE)
            raise AuthError(errors)

        return user
