"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the auth backend happen here. No module
should call os.getenv() or os.environ.get() directly -- import get_settings()
instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. db_host -> DB_HOST, port -> PORT). Type coercion is built in.

  @model_validator(mode="after"): Cross-field validation of the database
      settings. The SQL backend needs a host, a user and a database name unless
      an explicit DATABASE_URL is given.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

logger = logging.getLogger("authbackend.config")

_DEV_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'authbackend_dev.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Every field has a default so Settings() can be built in tests without a
    .env file. The model_validator refuses incomplete database settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    host: str = "0.0.0.0"  # noqa: S104 # nosec B104 -- container deployments bind all interfaces
    port: int = 8000
    allowed_hosts: list[str] = ["*"]

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    # "sql" talks to DATABASE_URL or the DB_* PostgreSQL settings below.
    # "memory" keeps users in process memory -- lost on restart.
    storage_backend: Literal["sql", "memory"] = "sql"

    # Explicit SQLAlchemy URL. Takes precedence over the DB_* fields.
    database_url: str = ""

    db_host: str = ""
    db_username: str = ""
    db_password: str = ""
    db_name: str = ""
    db_sslmode: str = "disable"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_database(self) -> "Settings":
        """Refuse to start with a half-configured SQL backend.

        Dev mode (DEBUG=true) without DB_HOST falls back to a local SQLite
        file with a warning. Production mode requires DB_HOST. DB_USERNAME and
        DB_NAME are always required once a host is set.
        """
        if self.storage_backend != "sql" or self.database_url:
            return self
        if not self.db_host:
            if self.debug:
                self.database_url = _DEV_DB_URL
                logger.warning("WARNING: DB_HOST not set, using local SQLite database %s", _DEV_DB_URL)
                return self
            raise ValueError("Empty host string, set DB_HOST in your environment or .env file.")
        if not self.db_username:
            raise ValueError("Empty user string, set DB_USERNAME in your environment or .env file.")
        if not self.db_name:
            raise ValueError("Empty dbname string, set DB_NAME in your environment or .env file.")
        return self

    def sqlalchemy_url(self) -> str | URL:
        """Return the SQLAlchemy URL for the SQL backend.

        URL.create() escapes the password, so credentials containing '@' or
        '/' survive intact.
        """
        if self.database_url:
            return self.database_url
        return URL.create(
            "postgresql+psycopg2",
            username=self.db_username,
            password=self.db_password or None,
            host=self.db_host,
            database=self.db_name,
            query={"sslmode": self.db_sslmode},
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    All modules should call get_settings() rather than constructing Settings()
    directly. In tests: call get_settings.cache_clear() between test cases if
    you need to inject different environment variables.
    """
    return Settings()
