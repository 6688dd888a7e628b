"""Link-level and account-level aggregation."""

import logging
import math
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from linklens.analytics._sanitize import as_utc, clean_number, percent
from linklens.analytics.config import DEFAULT_CONFIG, ScoringConfig
from linklens.analytics.grouping import group_by_viewer
from linklens.analytics.schema import (
    AccountSummary,
    ContentType,
    Link,
    LinkPerformance,
    LinkSummary,
    TrendComparison,
    ViewSession,
)
from linklens.analytics.scoring import score_session
from linklens.analytics.viewers import aggregate_viewer_score

logger = logging.getLogger(__name__)

# Views at which the quality part of the performance score is fully trusted
_FULL_VOLUME_VIEWS = 500
_TOP_PERFORMERS = 5

# (max days since last view, recency score), checked in order
_RECENCY_TIERS = ((1, 100), (3, 90), (7, 70), (14, 50), (30, 30), (60, 15))
# (min ratio of this week's views to last week's, velocity score)
_VELOCITY_TIERS = ((2.0, 100), (1.5, 80), (1.0, 50), (0.5, 20))


def completion_percent(session: ViewSession, content_type: ContentType | None = None) -> float:
    """How far the viewer got, 0-100, for any content type."""
    kind = content_type or session.content_type
    if kind == "track-site":
        return 0.0
    video = session.video
    if kind == "video" and video is not None:
        if video.finished:
            return 100.0
        if video.video_completion_percent is not None:
            return clean_number(video.video_completion_percent, "video_completion_percent", 0, 100)
        length = clean_number(video.video_duration_seconds, "video_duration_seconds")
        if length > 0:
            watched = clean_number(video.watch_time_seconds, "watch_time_seconds")
            return min(100.0, watched / length * 100)
    return session.completion_percentage


def summarize_link(
    sessions: Iterable[ViewSession],
    content_type: ContentType = "document",
    now: datetime | None = None,
    config: ScoringConfig | None = None,
) -> LinkSummary:
    """Fold every session of one link into its summary counters.

    Args:
        sessions: Sessions of the link.
        content_type: The link's type. Every session is scored with this
            branch, so a track-site link never averages in document scores.
        now: Reference time for "today", recency and velocity. Pass it
            explicitly for reproducible output; defaults to the current time.
        config: Thresholds and weights.

    Returns:
        The summary. With no sessions every counter is zero.
    """
    config = config or DEFAULT_CONFIG
    sessions = list(sessions)
    if not sessions:
        return LinkSummary()
    now = as_utc(now or datetime.now(UTC))

    groups = group_by_viewer(sessions, "link")
    scores = [score_session(s, config, content_type).score for s in sessions]
    hot, warm = _lead_counts(
        groups, lambda s: score_session(s, config, content_type).score, config
    )

    total = len(sessions)
    unique = len(groups)
    returning = sum(1 for group in groups.values() if len(group) >= 2)
    downloads = sum(1 for s in sessions if s.download_attempted)
    qr_scans = sum(1 for s in sessions if s.access_method == "qr_scan")
    completions = [completion_percent(s, content_type) for s in sessions]
    completed = sum(1 for c in completions if c >= config.completed_threshold)
    finished = sum(1 for s in sessions if s.video is not None and s.video.finished)
    total_time = sum(
        clean_number(s.total_duration_seconds, "total_duration_seconds") for s in sessions
    )
    started = [as_utc(s.started_at) for s in sessions]

    if content_type == "track-site":
        performance = _track_site_performance(sessions, unique, now)
    else:
        performance = _file_performance(sessions, content_type, config)

    return LinkSummary(
        total_views=total,
        unique_viewers=unique,
        avg_engagement=round(sum(scores) / total),
        performance_score=performance,
        hot_leads=hot,
        warm_leads=warm,
        cold_leads=unique - hot - warm,
        completion_rate=percent(completed, total),
        return_rate=percent(returning, unique),
        return_viewers=returning,
        qr_scans=qr_scans,
        direct_clicks=total - qr_scans,
        downloads=downloads,
        download_rate=percent(downloads, total),
        avg_time_spent=round(total_time / total),
        views_today=sum(1 for t in started if t.date() == now.date()),
        avg_completion=round(sum(completions) / total),
        finished_count=finished if content_type == "video" else 0,
        last_view_at=max(started),
    )


def compare_windows(
    sessions: Iterable[ViewSession],
    now: datetime,
    window_days: int | None = None,
    content_type: ContentType = "document",
    config: ScoringConfig | None = None,
) -> TrendComparison:
    """Summarize the two most recent equal-length windows ending at ``now``.

    The current window is ``(now - window, now]`` and the previous one is the
    same length immediately before it. Sessions after ``now`` are ignored.
    """
    config = config or DEFAULT_CONFIG
    days = window_days or config.trend_window_days
    now = as_utc(now)
    current_start = now - timedelta(days=days)
    previous_start = current_start - timedelta(days=days)

    current_sessions = []
    previous_sessions = []
    for session in sessions:
        started = as_utc(session.started_at)
        if current_start < started <= now:
            current_sessions.append(session)
        elif previous_start < started <= current_start:
            previous_sessions.append(session)

    current = summarize_link(current_sessions, content_type, now, config)
    previous = summarize_link(previous_sessions, content_type, current_start, config)

    return TrendComparison(
        window_days=days,
        current=current,
        previous=previous,
        views_change=_relative_change(current.total_views, previous.total_views),
        engagement_change=_relative_change(current.avg_engagement, previous.avg_engagement),
        return_rate_change=current.return_rate - previous.return_rate,
        hot_leads_change=current.hot_leads - previous.hot_leads,
    )


def summarize_account(
    links: Iterable[Link],
    sessions: Iterable[ViewSession],
    now: datetime | None = None,
    config: ScoringConfig | None = None,
) -> AccountSummary:
    """Roll every link of one account up into a single summary.

    Viewers are keyed at account scope, so one person reading three links
    counts once. Each session is scored with its own link's content type.
    Sessions for links not in ``links`` are skipped.
    """
    config = config or DEFAULT_CONFIG
    links = list(links)
    by_link: dict[str, list[ViewSession]] = {link.id: [] for link in links}
    skipped = 0
    for session in sessions:
        if session.link_id in by_link:
            by_link[session.link_id].append(session)
        else:
            skipped += 1
    if skipped:
        logger.warning("Skipped %d sessions for links outside the account", skipped)

    kinds = {link.id: link.content_type for link in links}
    summaries = {
        link.id: summarize_link(by_link[link.id], link.content_type, now, config) for link in links
    }

    account_sessions = [s for link in links for s in by_link[link.id]]
    if not account_sessions:
        return AccountSummary(total_links=len(links), links=summaries)

    def score_of(session: ViewSession) -> int:
        return score_session(session, config, kinds[session.link_id]).score

    scores = [score_of(s) for s in account_sessions]
    groups = group_by_viewer(account_sessions, "account")
    hot, warm = _lead_counts(groups, score_of, config)

    ranked = sorted(
        links,
        key=lambda link: (
            -summaries[link.id].performance_score,
            -summaries[link.id].total_views,
            link.id,
        ),
    )
    top = [
        LinkPerformance(
            link_id=link.id,
            name=link.name,
            performance_score=summaries[link.id].performance_score,
            total_views=summaries[link.id].total_views,
        )
        for link in ranked[:_TOP_PERFORMERS]
        if summaries[link.id].total_views > 0
    ]

    return AccountSummary(
        total_links=len(links),
        total_views=len(account_sessions),
        unique_viewers=len(groups),
        avg_engagement=round(sum(scores) / len(scores)),
        hot_leads=hot,
        warm_leads=warm,
        return_rate=percent(sum(1 for g in groups.values() if len(g) >= 2), len(groups)),
        top_performers=top,
        links=summaries,
    )


def _lead_counts(
    groups: dict[str, list[ViewSession]],
    score_of: Callable[[ViewSession], int],
    config: ScoringConfig,
) -> tuple[int, int]:
    """Hot and warm viewers by aggregated viewer score."""
    viewer_scores = [
        aggregate_viewer_score([score_of(s) for s in group], config) for group in groups.values()
    ]
    hot = sum(1 for score in viewer_scores if score >= config.hot_threshold)
    warm = sum(
        1 for score in viewer_scores if config.warm_threshold <= score < config.hot_threshold
    )
    return hot, warm


# =============================================================================
# Performance scores
# =============================================================================


def _volume(views: int) -> tuple[float, float]:
    """Log-scaled volume score and the gate applied to quality bonuses."""
    return min(100.0, 20 * math.log10(views + 1)), min(1.0, views / _FULL_VOLUME_VIEWS)


def _file_performance(
    sessions: list[ViewSession],
    content_type: ContentType,
    config: ScoringConfig,
) -> int:
    # A handful of perfect views must not outrank a widely read link.
    views = len(sessions)
    volume, gate = _volume(views)

    total_time = sum(
        clean_number(s.total_duration_seconds, "total_duration_seconds") for s in sessions
    )
    avg_time = total_time / views
    avg_completion = sum(completion_percent(s, content_type) for s in sessions) / views
    download_rate = sum(1 for s in sessions if s.download_attempted) / views * 100

    time_score = min(100.0, avg_time / config.high_engagement_seconds * 100)
    download_score = min(100.0, download_rate * 2)
    quality = time_score * 0.35 + avg_completion * 0.35 + download_score * 0.30

    return max(0, min(100, round(volume * 0.25 + quality * gate * 0.75)))


def _track_site_performance(
    sessions: list[ViewSession],
    unique: int,
    now: datetime,
) -> int:
    clicks = len(sessions)
    volume, gate = _volume(clicks)

    reach = unique / clicks * 100 * 0.20 * gate
    return_clicks = sum(1 for s in sessions if s.is_return_visit)
    returns = (return_clicks / unique * 100 if unique else 0.0) * 0.20 * gate

    last = max(as_utc(s.started_at) for s in sessions)
    days = (now - last).days
    recency_score = next((score for limit, score in _RECENCY_TIERS if days <= limit), 5)
    recency = recency_score * 0.10 * gate

    week_ago = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)
    this_week = sum(1 for s in sessions if as_utc(s.started_at) >= week_ago)
    last_week = sum(1 for s in sessions if two_weeks_ago <= as_utc(s.started_at) < week_ago)
    velocity_score = 0
    if last_week:
        ratio = this_week / last_week
        velocity_score = next((score for limit, score in _VELOCITY_TIERS if ratio >= limit), 5)
    velocity = velocity_score * 0.10 * gate

    return max(0, min(100, round(volume + reach + returns + recency + velocity)))


def _relative_change(current: float, previous: float) -> int:
    if previous <= 0:
        return 100 if current > 0 else 0
    return round((current - previous) / previous * 100)
