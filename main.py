#!/usr/bin/env python3
"""
Auth backend -- email/password signup and login over a relational users table.

Usage:
  python main.py
  python main.py --port 9000
  python main.py --host 127.0.0.1 --reload

Environment variables (also read from .env):
  PORT             Listen port. Defaults to 8000.
  DB_HOST          PostgreSQL host. Required unless DATABASE_URL is set.
  DB_USERNAME      PostgreSQL user.
  DB_PASSWORD      PostgreSQL password.
  DB_NAME          PostgreSQL database name.
  DATABASE_URL     Any SQLAlchemy URL; overrides the DB_* settings.
  STORAGE_BACKEND  "sql" (default) or "memory".
  DEBUG            "true" falls back to a local SQLite file when DB_HOST is unset.
"""

import argparse
import sys

import uvicorn
from pydantic import ValidationError

from core.config import get_settings


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Auth backend -- signup and login HTTP API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--host", help="Interface to bind (default: HOST env or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Port to listen on (default: PORT env or 8000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    try:
        settings = get_settings()
    except ValidationError as e:
        # Settings validators raise ValueError, which pydantic wraps.
        for error in e.errors():
            print(f"  [!] {error['msg']}", file=sys.stderr)
        sys.exit(1)

    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
