"""
tests/conftest.py -- Shared test fixtures for the auth backend tests.

This module provides:
  - fake_store / memory_store: per-test store instances
  - _patch_lifespan(): wires a test store into app.state, bypassing real startup
  - client_for(): TestClient context manager around any store
  - api_client: module-scoped TestClient backed by a shared-memory SQLite UserStore

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the TestClient fixtures because sync route handlers run in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread. The named URI format shares one in-memory instance across
all connections in the same process.

STORAGE_BACKEND must be set before api.main is imported: the module reads
settings at import time and the SQL backend refuses to start without DB_HOST.
"""

from __future__ import annotations

import os
from collections.abc import Generator, Iterator
from contextlib import asynccontextmanager, contextmanager

# CRITICAL: Set before any api/ import so get_settings() does not demand DB_HOST.
os.environ.setdefault("STORAGE_BACKEND", "memory")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.store import MemoryUserStore, UserStore
from tests.fakes import FakeStorage

# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_store() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def memory_store() -> MemoryUserStore:
    return MemoryUserStore()


# ---------------------------------------------------------------------------
# App helpers
# ---------------------------------------------------------------------------


def _patch_lifespan(store):
    """Return an async context manager that replaces the real lifespan.

    Wires the given store into app.state so TestClient routes never build a
    store from the environment.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        yield

    return test_lifespan


@contextmanager
def client_for(store, **client_kwargs) -> Iterator[TestClient]:
    """Run the real app against store for the duration of the with-block.

    app.state is shared by every client of the same app, so the previous
    lifespan and store are put back on exit. A module-scoped client that is
    still open keeps seeing its own store afterwards.
    """
    previous_lifespan = app.router.lifespan_context
    previous_store = getattr(app.state, "user_store", None)
    app.router.lifespan_context = _patch_lifespan(store)
    try:
        with TestClient(app, **client_kwargs) as client:
            yield client
    finally:
        app.router.lifespan_context = previous_lifespan
        app.state.user_store = previous_store


@pytest.fixture
def make_client():
    """Return client_for, for tests that need the app over a scripted store."""
    return client_for


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, store) for API integration tests.

    The store is a real UserStore on a shared-memory SQLite database named
    after the test module, so modules never see each other's users.
    """
    name = request.module.__name__.rsplit(".", 1)[-1]
    store = UserStore(f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")

    with client_for(store, raise_server_exceptions=True) as client:
        yield client, store

    store.close()
