"""Pytest fixtures for LinkLens Analytics Server tests."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from psycopg import AsyncConnection
from psycopg_pool import AsyncConnectionPool

# Integration tests need TEST_DATABASE_URL; route tests run against an in-memory store
_test_db_url = os.environ.get("TEST_DATABASE_URL")
if _test_db_url:
    os.environ["DATABASE_URL"] = _test_db_url

from linklens.analytics_server import main  # noqa: E402
from linklens.analytics_server.database import get_pool  # noqa: E402
from linklens.analytics_server.models import Link, PageView, ViewSession  # noqa: E402
from linklens.analytics_server.services import contacts as contact_service  # noqa: E402
from linklens.analytics_server.services import sessions as session_service  # noqa: E402

_SCHEMA = Path(main.__file__).parent / "schema.sql"


class FakePool:
    """Stands in for the connection pool; services are patched to ignore the connection."""

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[object]:
        yield object()


class FakeStore:
    """In-memory replacement for the session and contact services."""

    def __init__(self) -> None:
        self.links: dict[str, tuple[str, Link]] = {}
        self.sessions: list[ViewSession] = []
        self.page_views: list[PageView] = []
        self.saved: list[ViewSession] = []
        self.contacts: list[dict[str, Any]] = []

    def add_link(self, account_id: str, link: Link) -> None:
        self.links[link.id] = (account_id, link)

    async def get_link(self, conn, link_id):
        entry = self.links.get(link_id)
        return entry[1] if entry else None

    async def list_account_links(self, conn, account_id):
        return [link for owner, link in self.links.values() if owner == account_id]

    async def list_sessions(self, conn, link_id, *, since=None, until=None):
        return [
            s
            for s in self.sessions
            if s.link_id == link_id
            and (since is None or s.started_at >= since)
            and (until is None or s.started_at < until)
        ]

    async def list_account_sessions(self, conn, account_id):
        owned = {link.id for owner, link in self.links.values() if owner == account_id}
        return [s for s in self.sessions if s.link_id in owned]

    async def list_page_views(self, conn, link_id):
        ids = {s.session_id for s in self.sessions if s.link_id == link_id}
        return [pv for pv in self.page_views if pv.session_id in ids]

    async def save_session(self, conn, session):
        for i, stored in enumerate(self.saved):
            if stored.session_id == session.session_id:
                self.saved[i] = session
                return False
        self.saved.append(session)
        return True

    async def upsert_contact(self, conn, account_id, viewer_key, **fields):
        self.contacts.append({"account_id": account_id, "viewer_key": viewer_key, **fields})


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> FakeStore:
    """Patch the service layer onto an empty in-memory store."""
    fake = FakeStore()
    for name in (
        "get_link",
        "list_account_links",
        "list_sessions",
        "list_account_sessions",
        "list_page_views",
        "save_session",
    ):
        monkeypatch.setattr(session_service, name, getattr(fake, name))
    monkeypatch.setattr(contact_service, "upsert_contact", fake.upsert_contact)
    return fake


@pytest_asyncio.fixture
async def client(store: FakeStore) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client backed by the in-memory store."""
    main.app.dependency_overrides[get_pool] = FakePool
    async with AsyncClient(
        transport=ASGITransport(app=main.app),
        base_url="http://test",
    ) as client:
        yield client
    main.app.dependency_overrides.clear()


# =============================================================================
# Integration fixtures (real PostgreSQL)
# =============================================================================


@pytest_asyncio.fixture
async def pool() -> AsyncIterator[AsyncConnectionPool[Any]]:
    """Create a connection pool for tests."""
    if not _test_db_url:
        pytest.skip("TEST_DATABASE_URL not set")

    pool = AsyncConnectionPool(_test_db_url, open=False, min_size=1, max_size=5)
    await pool.open(wait=True, timeout=10)

    yield pool

    await pool.close()


@pytest_asyncio.fixture
async def conn(pool: AsyncConnectionPool[Any]) -> AsyncIterator[AsyncConnection]:
    """Get a connection from the pool with the schema in place and no rows."""
    async with pool.connection() as conn:
        await conn.execute(_SCHEMA.read_text())
        await conn.execute("DELETE FROM contacts")
        await conn.execute("DELETE FROM page_views")
        await conn.execute("DELETE FROM view_sessions")
        await conn.execute("DELETE FROM links")

        yield conn
