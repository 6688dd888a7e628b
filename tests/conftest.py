"""Shared fixtures for LinkLens Analytics engine tests."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest

from linklens.analytics import ViewSession

NOW = datetime(2025, 6, 16, 12, 0, tzinfo=UTC)


def _make_session(**overrides) -> ViewSession:
    data = {
        "session_id": "s-1",
        "link_id": "deck",
        "started_at": NOW - timedelta(hours=1),
        "total_pages": 10,
    }
    data.update(overrides)
    return ViewSession(**data)


@pytest.fixture
def now() -> datetime:
    """Fixed reference time (a Monday) so aggregates are reproducible."""
    return NOW


@pytest.fixture
def make_session() -> Callable[..., ViewSession]:
    """Factory for a document session on link "deck" with sensible defaults."""
    return _make_session


@pytest.fixture
def scenario_sessions() -> list[ViewSession]:
    """Three sessions on one document: two by the same viewer, one by another."""
    return [
        _make_session(
            session_id="s-1",
            viewer_email="ana@acme.com",
            started_at=NOW - timedelta(days=2),
            total_duration_seconds=200,
            max_page_reached=10,
            download_attempted=True,
        ),
        _make_session(
            session_id="s-2",
            viewer_email="ben@globex.com",
            started_at=NOW - timedelta(days=1),
            total_duration_seconds=10,
            max_page_reached=2,
        ),
        _make_session(
            session_id="s-3",
            viewer_email="ana@acme.com",
            started_at=NOW - timedelta(hours=3),
            total_duration_seconds=130,
            max_page_reached=10,
            is_return_visit=True,
            return_visit_count=1,
        ),
    ]
