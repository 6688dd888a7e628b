"""Read and write access to links, view sessions and page views."""

from datetime import datetime

from psycopg import AsyncConnection
from psycopg.types.json import Jsonb

from linklens.analytics.schema import VideoStats
from linklens.analytics_server.models import Link, PageView, ViewSession

_LINK_COLUMNS = "id, name, content_type, total_pages, created_at"

_SESSION_COLUMNS = """
    session_id, link_id, viewer_email, viewer_name, ip_address,
    started_at, ended_at, total_duration_seconds,
    pages_viewed_count, max_page_reached, total_pages, exit_page,
    idle_time_seconds, tab_switches_count, scroll_depth,
    download_attempted, print_attempted, copy_attempted,
    is_return_visit, return_visit_count, content_type,
    video_watch_seconds, video_duration_seconds, video_completion_percent, video_finished,
    access_method, country, city, device_type, referrer,
    engagement_score, intent_signal
"""


async def get_link(
    conn: AsyncConnection,
    link_id: str,
) -> Link | None:
    """Get a link by ID."""
    row = await conn.execute(
        f"SELECT {_LINK_COLUMNS} FROM links WHERE id = %s",
        (link_id,),
    )
    result = await row.fetchone()
    if result is None:
        return None
    return _row_to_link(result)


async def list_account_links(
    conn: AsyncConnection,
    account_id: str,
) -> list[Link]:
    """Get every link owned by an account."""
    row = await conn.execute(
        f"SELECT {_LINK_COLUMNS} FROM links WHERE account_id = %s ORDER BY created_at, id",
        (account_id,),
    )
    results = await row.fetchall()
    return [_row_to_link(r) for r in results]


async def list_sessions(
    conn: AsyncConnection,
    link_id: str,
    *,
    since: datetime | None = None,
    until: datetime | None = None,
) -> list[ViewSession]:
    """List the sessions of one link, oldest first."""
    conditions = ["link_id = %s"]
    params: list = [link_id]

    if since is not None:
        conditions.append("started_at >= %s")
        params.append(since)

    if until is not None:
        conditions.append("started_at < %s")
        params.append(until)

    query = f"""
        SELECT {_SESSION_COLUMNS}
        FROM view_sessions
        WHERE {" AND ".join(conditions)}
        ORDER BY started_at ASC
    """
    row = await conn.execute(query, tuple(params))
    results = await row.fetchall()
    return [_row_to_session(r) for r in results]


async def list_account_sessions(
    conn: AsyncConnection,
    account_id: str,
) -> list[ViewSession]:
    """List the sessions of every link of an account."""
    row = await conn.execute(
        f"""
        SELECT {_SESSION_COLUMNS}
        FROM view_sessions
        WHERE link_id IN (SELECT id FROM links WHERE account_id = %s)
        ORDER BY started_at ASC
        """,
        (account_id,),
    )
    results = await row.fetchall()
    return [_row_to_session(r) for r in results]


async def list_page_views(
    conn: AsyncConnection,
    link_id: str,
) -> list[PageView]:
    """List page dwell records for every session of one link."""
    row = await conn.execute(
        """
        SELECT pv.session_id, pv.page_number, pv.duration_seconds,
               pv.max_scroll_depth, pv.revisit_count
        FROM page_views pv
        JOIN view_sessions vs ON vs.session_id = pv.session_id
        WHERE vs.link_id = %s
        ORDER BY pv.session_id, pv.page_number
        """,
        (link_id,),
    )
    results = await row.fetchall()
    return [
        PageView(
            session_id=r[0],
            page_number=r[1],
            duration_seconds=r[2],
            max_scroll_depth=r[3],
            revisit_count=r[4],
        )
        for r in results
    ]


async def save_session(
    conn: AsyncConnection,
    session: ViewSession,
) -> bool:
    """Insert a closed session, or overwrite it when it was already stored.

    Returns:
        True when the row was inserted, False when an earlier close of the
        same session was overwritten.
    """
    video = session.video or VideoStats()
    row = await conn.execute(
        f"""
        INSERT INTO view_sessions ({_SESSION_COLUMNS})
        VALUES ({", ".join(["%s"] * 32)})
        ON CONFLICT (session_id) DO UPDATE SET
            ended_at = EXCLUDED.ended_at,
            total_duration_seconds = EXCLUDED.total_duration_seconds,
            pages_viewed_count = EXCLUDED.pages_viewed_count,
            max_page_reached = EXCLUDED.max_page_reached,
            exit_page = EXCLUDED.exit_page,
            idle_time_seconds = EXCLUDED.idle_time_seconds,
            tab_switches_count = EXCLUDED.tab_switches_count,
            scroll_depth = EXCLUDED.scroll_depth,
            download_attempted = EXCLUDED.download_attempted,
            print_attempted = EXCLUDED.print_attempted,
            copy_attempted = EXCLUDED.copy_attempted,
            video_watch_seconds = EXCLUDED.video_watch_seconds,
            video_completion_percent = EXCLUDED.video_completion_percent,
            video_finished = EXCLUDED.video_finished,
            engagement_score = EXCLUDED.engagement_score,
            intent_signal = EXCLUDED.intent_signal
        RETURNING (xmax = 0)
        """,
        (
            session.session_id,
            session.link_id,
            session.viewer_email,
            session.viewer_name,
            session.ip_address,
            session.started_at,
            session.ended_at,
            session.total_duration_seconds,
            session.pages_viewed_count,
            session.max_page_reached,
            session.total_pages,
            session.exit_page,
            session.idle_time_seconds,
            session.tab_switches_count,
            Jsonb({str(page): depth for page, depth in session.scroll_depth.items()}),
            session.download_attempted,
            session.print_attempted,
            session.copy_attempted,
            session.is_return_visit,
            session.return_visit_count,
            session.content_type,
            video.watch_time_seconds,
            video.video_duration_seconds,
            video.video_completion_percent,
            video.finished,
            session.access_method,
            session.country,
            session.city,
            session.device_type,
            session.referrer,
            session.engagement_score,
            session.intent_signal,
        ),
    )
    result = await row.fetchone()
    assert result is not None
    return bool(result[0])


def _row_to_link(row: tuple) -> Link:
    """Convert a database row to a Link model."""
    return Link(
        id=row[0],
        name=row[1],
        content_type=row[2],
        total_pages=row[3],
        created_at=row[4],
    )


def _row_to_session(row: tuple) -> ViewSession:
    """Convert a database row to a ViewSession model."""
    video = None
    if row[20] == "video":
        video = VideoStats(
            watch_time_seconds=row[21] or 0,
            video_duration_seconds=row[22] or 0,
            video_completion_percent=row[23],
            finished=bool(row[24]),
        )
    return ViewSession(
        session_id=row[0],
        link_id=row[1],
        viewer_email=row[2],
        viewer_name=row[3],
        ip_address=row[4],
        started_at=row[5],
        ended_at=row[6],
        total_duration_seconds=row[7] or 0,
        pages_viewed_count=row[8] or 0,
        max_page_reached=row[9] or 0,
        total_pages=row[10],
        exit_page=row[11],
        idle_time_seconds=row[12] or 0,
        tab_switches_count=row[13] or 0,
        scroll_depth=row[14] or {},
        download_attempted=bool(row[15]),
        print_attempted=bool(row[16]),
        copy_attempted=bool(row[17]),
        is_return_visit=bool(row[18]),
        return_visit_count=row[19] or 0,
        content_type=row[20],
        video=video,
        access_method=row[25],
        country=row[26],
        city=row[27],
        device_type=row[28],
        referrer=row[29],
        engagement_score=row[30],
        intent_signal=row[31],
    )
