"""
tests/conftest.py -- Shared test fixtures for Gatekeeper.

This module provides:
  - FixedClock: a settable clock for expiry boundary tests
  - make_principal(): insert a principal with chosen approval/permissions
  - _make_test_stores(): isolated in-memory DBs for principals, catalog, products
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - api: module-scoped Harness (TestClient + stores + master-admin token)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process.

DEBUG and ALLOWED_HOSTS must be set before api.main is imported: the module
reads settings at import time to configure middleware.
"""

from __future__ import annotations

import os

# CRITICAL: Set before any api/core import so get_settings() can auto-generate
# SECRET_KEY and TrustedHostMiddleware accepts the TestClient host.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

from collections.abc import Generator, Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from api.main import app
from auth.catalog import PermissionCatalog
from auth.issuer import CredentialIssuer, IssuerConfig
from auth.models import Principal
from auth.notifier import LoggingNotifier
from auth.store import PrincipalStore
from products.store import ProductStore

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
MASTER_PASSWORD = "admin123"

# Tests hit /login many times. tests/test_rate_limits.py re-enables the
# limiter for its own tests through the `rate_limited` fixture.
limiter.enabled = False


class FixedClock:
    """Callable clock that returns `now` until a test moves it."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


def make_principal(
    store: PrincipalStore,
    username: str,
    password: str = "secret123",
    approved: bool = True,
    permissions: Iterable[str] = (),
    email: str | None = None,
) -> int:
    """Insert a principal directly through the store and return its id."""
    return store.create(
        Principal(
            username=username,
            email=email or f"{username}@acme.io",
            approved=approved,
            permissions=frozenset(permissions),
        ),
        password,
    )


def memory_url(name: str) -> str:
    return f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[PrincipalStore, PermissionCatalog, ProductStore]:
    """Create the three stores on one named shared-memory database.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state.
    """
    url = memory_url(f"test_gatekeeper_{db_suffix}")
    return PrincipalStore(url), PermissionCatalog(url), ProductStore(url)


def _patch_lifespan(
    store: PrincipalStore,
    catalog: PermissionCatalog,
    products: ProductStore,
    issuer: CredentialIssuer,
):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.principal_store = store
        app.state.catalog = catalog
        app.state.product_store = products
        app.state.issuer = issuer
        yield

    return test_lifespan


class Harness(NamedTuple):
    client: TestClient
    store: PrincipalStore
    catalog: PermissionCatalog
    products: ProductStore
    issuer: CredentialIssuer
    notifier: LoggingNotifier
    master_id: int
    master_token: str

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def token_for(self, principal_id: int) -> str:
        return self.issuer.issue_token(principal_id)


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api(request) -> Generator[Harness, None, None]:
    """Yield a Harness for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores. The
    catalog is seeded and a master admin exists before the client starts.
    """
    store, catalog, products = _make_test_stores(request.module.__name__.replace(".", "_"))
    catalog.seed()
    store.ensure_master_admin(username="admin", email="admin@system.com", password=MASTER_PASSWORD)
    master = store.find_by_login_identifier("admin")

    notifier = LoggingNotifier()
    issuer = CredentialIssuer(store, IssuerConfig(secret_key=TEST_SECRET), notifier)

    app.router.lifespan_context = _patch_lifespan(store, catalog, products, issuer)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield Harness(
            client=client,
            store=store,
            catalog=catalog,
            products=products,
            issuer=issuer,
            notifier=notifier,
            master_id=master.id,
            master_token=issuer.issue_token(master.id),
        )

    products.close()
    catalog.close()
    store.close()


@pytest.fixture
def store() -> Generator[PrincipalStore, None, None]:
    """Fresh in-memory PrincipalStore per test."""
    s = PrincipalStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture
def issuer(store: PrincipalStore, notifier: LoggingNotifier, clock: FixedClock) -> CredentialIssuer:
    return CredentialIssuer(
        store,
        IssuerConfig(secret_key=TEST_SECRET, token_ttl_seconds=3600, reset_ttl_seconds=600),
        notifier,
        clock=clock,
    )
