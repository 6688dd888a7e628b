"""Per-session engagement score, intent signal and hot-lead classification.

This is the only place an engagement score is computed. Tracking routes,
aggregators and exports all call :func:`score_session`.

Document / other (max 100):
    duration     0-30  linear, capped at ``high_engagement_seconds``
    completion   0-30  linear in max page reached / total pages
    download     0/20
    return visit 0/20

Video: duration uses watch time over video length; completion is tiered
(finished 30, >=75% 22.5, >=50% 15, >=25% 7.5).

Track-site: there are no pages, so the 30 completion points are
redistributed proportionally over the other three signals. Duration,
download and return visit are scaled by 100/70, giving caps of about
42.9, 28.6 and 28.6.
"""

from linklens.analytics._sanitize import clean_count, clean_number
from linklens.analytics.config import DEFAULT_CONFIG, ScoringConfig
from linklens.analytics.grouping import viewer_key
from linklens.analytics.schema import (
    ContentType,
    EngagementScore,
    IntentSignal,
    ScoreBreakdown,
    SessionScore,
    ViewerScope,
    ViewSession,
)


def score_session(
    session: ViewSession,
    config: ScoringConfig | None = None,
    content_type: ContentType | None = None,
) -> EngagementScore:
    """Score one session from its raw counters.

    Args:
        session: The session to score.
        config: Thresholds and weights; defaults to ``DEFAULT_CONFIG``.
        content_type: Overrides ``session.content_type``. Link aggregation
            passes the link's type so every session of a track-site link is
            scored with the track-site branch.

    Returns:
        Integer score in [0, 100], the intent signal and the sub-scores.
    """
    config = config or DEFAULT_CONFIG
    kind = content_type or session.content_type

    action = config.download_points if session.download_attempted else 0.0
    returned = session.is_return_visit or clean_count(
        session.return_visit_count, "return_visit_count"
    ) > 0
    return_points = config.return_visit_points if returned else 0.0

    if kind == "track-site":
        breakdown = _track_site_breakdown(session, action, return_points, config)
    elif kind == "video" and _video_length(session) > 0:
        breakdown = _video_breakdown(session, action, return_points, config)
    else:
        breakdown = ScoreBreakdown(
            duration=_duration_points(session.total_duration_seconds, config),
            completion=_completion_points(session, config),
            action=action,
            return_visit=return_points,
        )

    total = breakdown.duration + breakdown.completion + breakdown.action + breakdown.return_visit
    score = round(min(100.0, max(0.0, total)))
    return EngagementScore(score=score, intent=intent_for_score(score, config), breakdown=breakdown)


def intent_for_score(score: float, config: ScoringConfig | None = None) -> IntentSignal:
    """Map a 0-100 score to hot / warm / cold."""
    config = config or DEFAULT_CONFIG
    if score >= config.hot_threshold:
        return "hot"
    if score >= config.warm_threshold:
        return "warm"
    return "cold"


def is_hot_lead(
    score: float,
    downloaded: bool,
    return_visit_count: int,
    config: ScoringConfig | None = None,
) -> bool:
    """A strong signal on one axis, or a weaker one repeated, makes a hot lead.

    Hot iff score >= 80, or downloaded with score >= 50, or at least two
    prior visits.
    """
    config = config or DEFAULT_CONFIG
    if score >= config.hot_lead_score:
        return True
    if downloaded and score >= config.hot_lead_download_score:
        return True
    return return_visit_count >= config.hot_lead_return_visits


def classify_session(
    session: ViewSession,
    config: ScoringConfig | None = None,
    content_type: ContentType | None = None,
    scope: ViewerScope = "link",
) -> SessionScore:
    """Score a session and run the hot-lead classifier on it."""
    result = score_session(session, config, content_type)
    return SessionScore(
        session_id=session.session_id,
        link_id=session.link_id,
        viewer_key=viewer_key(session, scope),
        score=result.score,
        intent=result.intent,
        is_hot_lead=is_hot_lead(
            result.score,
            session.download_attempted,
            clean_count(session.return_visit_count, "return_visit_count"),
            config,
        ),
    )


def verify_cached_score(session: ViewSession, config: ScoringConfig | None = None) -> bool:
    """True when the cached score and intent match a fresh recompute."""
    result = score_session(session, config)
    return session.engagement_score == result.score and session.intent_signal == result.intent


def refresh_cached_score(session: ViewSession, config: ScoringConfig | None = None) -> ViewSession:
    """Return a copy of ``session`` with its cached score recomputed."""
    result = score_session(session, config)
    return session.model_copy(
        update={"engagement_score": result.score, "intent_signal": result.intent}
    )


# =============================================================================
# Sub-scores
# =============================================================================


def _duration_points(seconds: float, config: ScoringConfig, target: float | None = None) -> float:
    duration = clean_number(seconds, "total_duration_seconds")
    target = config.high_engagement_seconds if target is None else target
    if target <= 0:
        return config.duration_cap if duration > 0 else 0.0
    return min(config.duration_cap, config.duration_cap * duration / target)


def _completion_points(session: ViewSession, config: ScoringConfig) -> float:
    if not session.total_pages or session.total_pages <= 0:
        return 0.0
    total_pages = clean_count(session.total_pages, "total_pages")
    reached = clean_count(session.max_page_reached, "max_page_reached", high=total_pages)
    return config.completion_cap * reached / total_pages


def _video_length(session: ViewSession) -> float:
    if session.video is None:
        return 0.0
    return clean_number(session.video.video_duration_seconds, "video_duration_seconds")


def _video_breakdown(
    session: ViewSession,
    action: float,
    return_points: float,
    config: ScoringConfig,
) -> ScoreBreakdown:
    assert session.video is not None
    video = session.video
    length = _video_length(session)
    watched = clean_number(video.watch_time_seconds, "watch_time_seconds")

    if video.video_completion_percent is not None:
        completion = clean_number(
            video.video_completion_percent, "video_completion_percent", 0, 100
        )
    else:
        completion = min(100.0, watched / length * 100)

    tier = 1.0 if video.finished else 0.0
    for minimum, fraction in config.video_completion_tiers:
        if completion >= minimum:
            tier = max(tier, fraction)
            break

    return ScoreBreakdown(
        duration=_duration_points(watched, config, target=length),
        completion=config.completion_cap * tier,
        action=action,
        return_visit=return_points,
    )


def _track_site_breakdown(
    session: ViewSession,
    action: float,
    return_points: float,
    config: ScoringConfig,
) -> ScoreBreakdown:
    available = config.duration_cap + config.download_points + config.return_visit_points
    scale = 100.0 / available if available > 0 else 0.0
    return ScoreBreakdown(
        duration=_duration_points(session.total_duration_seconds, config) * scale,
        completion=0.0,
        action=action * scale,
        return_visit=return_points * scale,
    )
