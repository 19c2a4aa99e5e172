"""
tests/conftest.py -- Shared test fixtures for Registry API tests.

This module provides:
  - make_stores(): creates isolated in-memory DBs for credentials + registry
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin user and its bearer token
  - empty_client: TestClient over an empty credential store (Bootstrap Policy)
  - user_store / registry: bare stores for unit tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

Environment variables must be set before any core/auth/api import because
get_settings() is cached on first use and auth/tokens.py reads it at import.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any project import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef-0123456789")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import Credential
from auth.store import UserStore
from auth.tokens import hash_password, issue_token
from registry.guards import ReferentialGuard
from registry.store import RegistryStore

ADMIN_USERNAME = "testadmin"
ADMIN_PASSWORD = "testpass123"

_db_counter = itertools.count()


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _memory_url(name: str) -> str:
    return f"sqlite:///file:{name}_{next(_db_counter)}?mode=memory&cache=shared&uri=true"


def make_stores(db_suffix: str) -> tuple[UserStore, RegistryStore]:
    """Create isolated named shared-memory SQLite stores.

    Every call gets fresh databases (a counter is appended to the name), so
    two fixtures with the same suffix never see each other's rows.
    """
    user_store = UserStore(db_url=_memory_url(f"test_users_{db_suffix}"))
    registry = RegistryStore(db_url=_memory_url(f"test_registry_{db_suffix}"))
    return user_store, registry


def _patch_lifespan(user_store: UserStore, registry: RegistryStore):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test stores into app.state so TestClient routes see
    isolated test DBs rather than the configured DATABASE_URL.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.registry = registry
        app.state.guard = ReferentialGuard(user_store, registry)
        yield

    return test_lifespan


def create_user(store: UserStore, username: str, password: str = ADMIN_PASSWORD, **fields) -> str:
    """Insert a credential directly, bypassing the API."""
    return store.create_user(Credential(username=username, hashed_password=hash_password(password), **fields))


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def user_store() -> Generator[UserStore, None, None]:
    store = UserStore("sqlite:///:memory:")
    yield store
    store.close()


@pytest.fixture()
def registry() -> Generator[RegistryStore, None, None]:
    store = RegistryStore("sqlite:///:memory:")
    yield store
    store.close()


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores.
    The admin user is created before the client starts.
    """
    user_store, registry = make_stores("api")
    uid = create_user(user_store, ADMIN_USERNAME, first_name="Test", last_name="Admin")
    token = issue_token(uid, ADMIN_USERNAME, expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, registry)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    user_store.close()
    registry.close()


@pytest.fixture()
def empty_client() -> Generator[tuple[TestClient, UserStore], None, None]:
    """Yield (client, user_store) over a credential store with no users.

    Function-scoped: every test starts in first-run state.
    """
    user_store, registry = make_stores("empty")
    app.router.lifespan_context = _patch_lifespan(user_store, registry)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, user_store

    user_store.close()
    registry.close()
