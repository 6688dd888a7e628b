"""Scoring thresholds and weights shared by every engine component."""

from pydantic import BaseModel, ConfigDict


class ScoringConfig(BaseModel):
    """
    Tunable constants for the engagement engine.

    One instance is threaded through scoring, aggregation and insight
    generation so that a threshold is never duplicated with drift between
    the place that computes a score and the place that interprets it.

    Attributes:
        high_engagement_seconds: Dwell time at which the duration
            sub-score reaches its cap for documents and other files.
        duration_cap: Maximum points from dwell time.
        completion_cap: Maximum points from completion.
        download_points: Flat points for a download.
        return_visit_points: Flat points for a return visit.
        video_completion_tiers: (minimum completion percent, fraction of
            the completion cap) pairs, highest first.
        hot_threshold: Score at or above which intent is "hot".
        warm_threshold: Score at or above which intent is "warm".
        hot_lead_score: Score that alone qualifies a hot lead.
        hot_lead_download_score: Score that qualifies a hot lead when the
            viewer also downloaded.
        hot_lead_return_visits: Prior visits that alone qualify a hot lead.
        frequency_bonus_per_visit: Viewer-level bonus per session after the first.
        frequency_bonus_cap: Maximum viewer-level frequency bonus.
        completed_threshold: Completion percent counted as "completed".
        trend_window_days: Length of each window compared for trends.
    """

    model_config = ConfigDict(frozen=True)

    high_engagement_seconds: float = 120.0
    duration_cap: float = 30.0
    completion_cap: float = 30.0
    download_points: float = 20.0
    return_visit_points: float = 20.0
    video_completion_tiers: tuple[tuple[float, float], ...] = (
        (100.0, 1.0),
        (75.0, 0.75),
        (50.0, 0.5),
        (25.0, 0.25),
    )

    hot_threshold: int = 70
    warm_threshold: int = 40

    hot_lead_score: int = 80
    hot_lead_download_score: int = 50
    hot_lead_return_visits: int = 2

    frequency_bonus_per_visit: float = 10.0
    frequency_bonus_cap: float = 30.0

    completed_threshold: float = 90.0
    trend_window_days: int = 7


DEFAULT_CONFIG = ScoringConfig()
