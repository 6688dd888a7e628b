"""One-call pipeline from raw sessions and page views to a full link report."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from linklens.analytics._sanitize import as_utc
from linklens.analytics.breakdowns import (
    best_time_to_share,
    companies_with_multiple_viewers,
    device_breakdown,
    top_countries,
    traffic_breakdown,
)
from linklens.analytics.config import DEFAULT_CONFIG, ScoringConfig
from linklens.analytics.insights import InsightInput, generate_insights
from linklens.analytics.links import compare_windows, summarize_link
from linklens.analytics.pages import analyze_pages
from linklens.analytics.schema import Link, LinkReport, PageView, ViewSession
from linklens.analytics.viewers import summarize_viewers

logger = logging.getLogger(__name__)


def build_link_report(
    link: Link,
    sessions: Iterable[ViewSession],
    page_views: Iterable[PageView] = (),
    now: datetime | None = None,
    config: ScoringConfig | None = None,
) -> LinkReport:
    """Score, aggregate and explain one link in a single pass.

    Sessions belonging to other links are dropped with a warning. Every
    score is recomputed from raw counters; cached scores on the sessions
    are ignored.

    Args:
        link: The link being reported on.
        sessions: Its sessions, in any order.
        page_views: Its page dwell records.
        now: Reference time for trends and recency. Defaults to the latest
            session start so that the same input always gives the same report
            (the link's creation time, else the clock, when there are none).
        config: Thresholds and weights.
    """
    config = config or DEFAULT_CONFIG
    sessions = list(sessions)
    own = [s for s in sessions if s.link_id == link.id]
    if len(own) != len(sessions):
        logger.warning(
            "Dropped %d sessions not belonging to link %s", len(sessions) - len(own), link.id
        )

    if now is None:
        starts = [as_utc(s.started_at) for s in own]
        now = max(starts) if starts else as_utc(link.created_at or datetime.now(UTC))
    kind = link.content_type
    total_pages = link.total_pages if kind == "document" else None

    summary = summarize_link(own, kind, now, config)
    viewers = summarize_viewers(own, kind, "link", config)
    pages = analyze_pages(page_views, own, total_pages) if kind == "document" else []
    trend = compare_windows(own, now, None, kind, config) if own else None
    companies = companies_with_multiple_viewers(own)
    countries = top_countries(own)
    devices = device_breakdown(own)
    traffic = traffic_breakdown(own)
    share_window = best_time_to_share(own)

    bundle = generate_insights(
        InsightInput(
            summary=summary,
            content_type=kind,
            viewers=viewers,
            pages=pages,
            trend=trend,
            companies=companies,
            countries=countries,
            devices=devices,
            traffic_sources=traffic,
        )
    )

    return LinkReport(
        link=link,
        generated_at=now,
        summary=summary,
        viewers=viewers,
        pages=pages,
        trend=trend,
        companies=companies,
        countries=countries,
        devices=devices,
        traffic_sources=traffic,
        share_window=share_window,
        insights=bundle.insights,
        actions=bundle.actions,
    )
