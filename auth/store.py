"""
auth/store.py -- Persistence layer for user accounts.

Pattern: Repository + Data Mapper. UserStorage is the repository contract the
service depends on; UserStore (SQLAlchemy Core) and MemoryUserStore (process
memory) are the two implementations. _row_to_user is the mapper. Service and
route code never touch SQL directly.

Failure signals:
  Lookups that match nothing raise NotFoundError. Inserts that collide with the
  UNIQUE(email) constraint raise ConflictError carrying the backend's own
  message. Any other driver error is re-raised as StorageError. Driver
  exceptions never escape this module.

Security:
  All queries use bound parameters. No f-strings in SQL.

Concurrency:
  The email availability check and the insert are two separate calls. The
  database's unique constraint (or the lock in MemoryUserStore) is what
  rejects a racing duplicate, not the caller.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.exceptions import ConflictError, NotFoundError, StorageError
from auth.models import User
from core.config import Settings

logger = logging.getLogger("authbackend.auth")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password", Text, nullable=False),
    Column("created_at", DateTime(timezone=True)),
    Column("last_login", DateTime(timezone=True)),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: datetime | str | None) -> str | None:
    # SQLite hands DateTime columns back as naive datetimes; PostgreSQL as aware ones.
    # Values are always written in UTC, so a naive one is UTC.
    if value is None or isinstance(value, str):
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# ---------------------------------------------------------------------------
# Repository contract
# ---------------------------------------------------------------------------


class UserStorage(Protocol):
    """What the auth service needs from a persistence backend."""

    def get_user_by_email(self, email: str) -> User:
        """Return the user with exactly this email. Raises NotFoundError if none."""
        ...

    def create_user(self, user: User) -> int:
        """Persist a new user and return its id. Raises ConflictError on a duplicate email."""
        ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------


class UserStore:
    """SQL-backed repository for User records.

    Works against any SQLAlchemy URL: PostgreSQL in production, SQLite for
    local development and tests.

    Usage:
        store = UserStore("postgresql+psycopg2://app:secret@db/app")
        user_id = store.create_user(User(email="a@example.com", password="secret"))
        user = store.get_user_by_email("a@example.com")
        store.close()
    """

    def __init__(self, db_url: str | URL) -> None:
        url_text = db_url if isinstance(db_url, str) else db_url.drivername
        connect_args: dict = {}
        if url_text.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)
        if url_text.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def get_user_by_email(self, email: str) -> User:
        """Look up a user by exact email (case-sensitive).

        Raises NotFoundError when no row matches, StorageError on any other
        database failure.
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_users.select().where(_users.c.email == email)).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot look up user: {exc}") from exc
        if row is None:
            raise NotFoundError(f"no user with email {email!r}")
        return _row_to_user(row)

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises ConflictError with the driver's message if the email already
        exists. A concurrent signup that passed the availability check lands
        here.
        """
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    _users.insert().values(
                        email=user.email,
                        password=user.password,
                        created_at=_now(),
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise ConflictError(str(exc.orig).strip()) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"cannot create user: {exc}") from exc
        return result.inserted_primary_key[0]

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------


class MemoryUserStore:
    """Process-local repository keyed by email.

    Same contract as UserStore: sequential ids from 1, NotFoundError on a miss,
    ConflictError on a duplicate email. A lock serializes writers so the
    uniqueness check and the insert are atomic. Returned users are copies.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def get_user_by_email(self, email: str) -> User:
        with self._lock:
            user = self._users.get(email)
            if user is None:
                raise NotFoundError(f"no user with email {email!r}")
            return dataclasses.replace(user)

    def create_user(self, user: User) -> int:
        with self._lock:
            if user.email in self._users:
                raise ConflictError(f"user with email {user.email!r} already exists")
            user_id = self._next_id
            self._next_id += 1
            self._users[user.email] = User(
                id=user_id,
                email=user.email,
                password=user.password,
                created_at=_now().isoformat(),
            )
        return user_id

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        with self._lock:
            self._users.clear()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_store(settings: Settings) -> UserStorage:
    """Return the storage backend selected by STORAGE_BACKEND."""
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory user storage -- accounts will not survive a restart")
        return MemoryUserStore()
    return UserStore(settings.sqlalchemy_url())


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        password=row.password,
        created_at=_isoformat(row.created_at),
        last_login=_isoformat(row.last_login),
    )
