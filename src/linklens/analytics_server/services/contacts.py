"""Contact upsert applied once per closed session.

Concurrent closes for the same viewer can race, so the merge happens in a
single statement and only uses order-independent operations: sums for
views, time and engagement, OR for the hot-lead flag, GREATEST for the best
score and last-seen time. The running mean is engagement_total / view_count.
This is the SQL form of ``ViewerTotals.merge``.
"""

from datetime import datetime

from psycopg import AsyncConnection

from linklens.analytics_server.models import Contact


async def upsert_contact(
    conn: AsyncConnection,
    account_id: str,
    viewer_key: str,
    *,
    score: int,
    duration_seconds: float,
    is_hot_lead: bool,
    seen_at: datetime | None,
    viewer_email: str | None = None,
    viewer_name: str | None = None,
) -> Contact:
    """Fold one scored session into the viewer's contact record."""
    row = await conn.execute(
        """
        INSERT INTO contacts (
            account_id, viewer_key, viewer_email, viewer_name,
            view_count, total_time_seconds, engagement_total, best_score,
            is_hot_lead, last_seen_at
        )
        VALUES (%s, %s, %s, %s, 1, %s, %s, %s, %s, %s)
        ON CONFLICT (account_id, viewer_key) DO UPDATE SET
            viewer_email = COALESCE(contacts.viewer_email, EXCLUDED.viewer_email),
            viewer_name = COALESCE(contacts.viewer_name, EXCLUDED.viewer_name),
            view_count = contacts.view_count + EXCLUDED.view_count,
            total_time_seconds = contacts.total_time_seconds + EXCLUDED.total_time_seconds,
            engagement_total = contacts.engagement_total + EXCLUDED.engagement_total,
            best_score = GREATEST(contacts.best_score, EXCLUDED.best_score),
            is_hot_lead = contacts.is_hot_lead OR EXCLUDED.is_hot_lead,
            last_seen_at = GREATEST(contacts.last_seen_at, EXCLUDED.last_seen_at)
        RETURNING account_id, viewer_key, viewer_email, viewer_name,
                  view_count, total_time_seconds, engagement_total, best_score,
                  is_hot_lead, last_seen_at
        """,
        (
            account_id,
            viewer_key,
            viewer_email,
            viewer_name,
            duration_seconds,
            score,
            score,
            is_hot_lead,
            seen_at,
        ),
    )
    result = await row.fetchone()
    assert result is not None
    return _row_to_contact(result)


async def get_contact(
    conn: AsyncConnection,
    account_id: str,
    viewer_key: str,
) -> Contact | None:
    """Get one contact by account and viewer key."""
    row = await conn.execute(
        """
        SELECT account_id, viewer_key, viewer_email, viewer_name,
               view_count, total_time_seconds, engagement_total, best_score,
               is_hot_lead, last_seen_at
        FROM contacts
        WHERE account_id = %s AND viewer_key = %s
        """,
        (account_id, viewer_key),
    )
    result = await row.fetchone()
    if result is None:
        return None
    return _row_to_contact(result)


def _row_to_contact(row: tuple) -> Contact:
    """Convert a database row to a Contact model."""
    return Contact(
        account_id=row[0],
        viewer_key=row[1],
        viewer_email=row[2],
        viewer_name=row[3],
        view_count=row[4],
        total_time_seconds=row[5],
        engagement_total=row[6],
        best_score=row[7],
        is_hot_lead=row[8],
        last_seen_at=row[9],
    )
