"""Viewer-level aggregation: one score per person, not per visit."""

from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel

from linklens.analytics._sanitize import clean_number
from linklens.analytics.config import DEFAULT_CONFIG, ScoringConfig
from linklens.analytics.grouping import group_by_viewer, viewer_key
from linklens.analytics.schema import ContentType, ViewerScope, ViewerSummary, ViewSession
from linklens.analytics.scoring import classify_session, intent_for_score, is_hot_lead

__all__ = [
    "ViewerTotals",
    "aggregate_viewer_score",
    "group_by_viewer",
    "summarize_viewers",
    "viewer_key",
]


def aggregate_viewer_score(scores: Iterable[int], config: ScoringConfig | None = None) -> int:
    """Fold a viewer's session scores into one score in [0, 100].

    The result is the larger of the best single session and the mean plus a
    frequency bonus for every session after the first. One weak session
    never drags down a strong one, and several moderate sessions add up.
    Order independent.
    """
    config = config or DEFAULT_CONFIG
    values = list(scores)
    if not values:
        return 0
    best = max(values)
    bonus = min(config.frequency_bonus_cap, config.frequency_bonus_per_visit * (len(values) - 1))
    frequency = sum(values) / len(values) + bonus
    return round(min(100.0, max(best, frequency)))


class ViewerTotals(BaseModel):
    """
    Running totals for one viewer, maintained one session at a time.

    The engagement sum is kept instead of the mean so that ``add`` and
    ``merge`` are exact, commutative and associative. The same rule backs
    the contact upsert in the service.

    Attributes:
        view_count: Sessions folded in.
        total_time_seconds: Cumulative dwell time.
        engagement_sum: Sum of session scores.
        best_score: Highest session score.
        is_hot_lead: Any session classified as a hot lead.
        last_seen_at: Latest session start.
    """

    view_count: int = 0
    total_time_seconds: float = 0
    engagement_sum: int = 0
    best_score: int = 0
    is_hot_lead: bool = False
    last_seen_at: datetime | None = None

    @property
    def avg_engagement(self) -> int:
        """Running mean of session scores, rounded."""
        if self.view_count == 0:
            return 0
        return round(self.engagement_sum / self.view_count)

    def add(
        self,
        score: int,
        duration_seconds: float,
        hot: bool,
        seen_at: datetime | None,
    ) -> "ViewerTotals":
        """Return new totals with one more session folded in."""
        return self.merge(
            ViewerTotals(
                view_count=1,
                total_time_seconds=clean_number(duration_seconds, "total_duration_seconds"),
                engagement_sum=score,
                best_score=score,
                is_hot_lead=hot,
                last_seen_at=seen_at,
            )
        )

    def merge(self, other: "ViewerTotals") -> "ViewerTotals":
        """Combine two sets of totals: sum counts, OR hot, max timestamps."""
        seen = [t for t in (self.last_seen_at, other.last_seen_at) if t is not None]
        return ViewerTotals(
            view_count=self.view_count + other.view_count,
            total_time_seconds=self.total_time_seconds + other.total_time_seconds,
            engagement_sum=self.engagement_sum + other.engagement_sum,
            best_score=max(self.best_score, other.best_score),
            is_hot_lead=self.is_hot_lead or other.is_hot_lead,
            last_seen_at=max(seen) if seen else None,
        )

    @classmethod
    def from_sessions(
        cls,
        sessions: Iterable[ViewSession],
        config: ScoringConfig | None = None,
        content_type: ContentType | None = None,
    ) -> "ViewerTotals":
        """Recompute totals from scratch over a viewer's full history."""
        sessions = list(sessions)
        scored = [classify_session(s, config, content_type) for s in sessions]
        if not scored:
            return cls()
        return cls(
            view_count=len(scored),
            total_time_seconds=sum(
                clean_number(s.total_duration_seconds, "total_duration_seconds") for s in sessions
            ),
            engagement_sum=sum(s.score for s in scored),
            best_score=max(s.score for s in scored),
            is_hot_lead=any(s.is_hot_lead for s in scored),
            last_seen_at=max(s.started_at for s in sessions),
        )


def summarize_viewers(
    sessions: Iterable[ViewSession],
    content_type: ContentType | None = None,
    scope: ViewerScope = "link",
    config: ScoringConfig | None = None,
) -> list[ViewerSummary]:
    """One summary per viewer, highest aggregated score first, then by key.

    Args:
        sessions: Sessions of one link, or of every link of an account.
        content_type: Scoring branch override, normally the link's type.
        scope: Viewer key scope, see :func:`viewer_key`.
        config: Thresholds and weights.
    """
    config = config or DEFAULT_CONFIG
    summaries = []
    for key, group in group_by_viewer(sessions, scope).items():
        scored = [classify_session(s, config, content_type, scope) for s in group]
        scores = [s.score for s in scored]
        aggregated = aggregate_viewer_score(scores, config)
        downloaded = any(s.download_attempted for s in group)
        prior_visits = max(s.return_visit_count for s in group)
        email = next((s.viewer_email for s in group if s.viewer_email), None)
        name = next((s.viewer_name for s in group if s.viewer_name), None)

        summaries.append(
            ViewerSummary(
                viewer_key=key,
                viewer_email=email.strip().lower() if email else None,
                viewer_name=name,
                sessions=len(group),
                total_time_seconds=sum(
                    clean_number(s.total_duration_seconds, "total_duration_seconds") for s in group
                ),
                best_score=max(scores),
                avg_engagement=round(sum(scores) / len(scores)),
                aggregated_score=aggregated,
                intent=intent_for_score(aggregated, config),
                is_hot_lead=any(s.is_hot_lead for s in scored)
                or is_hot_lead(aggregated, downloaded, max(prior_visits, len(group) - 1), config),
                downloaded=downloaded,
                first_seen_at=min(s.started_at for s in group),
                last_seen_at=max(s.started_at for s in group),
            )
        )

    summaries.sort(key=lambda v: (-v.aggregated_score, v.viewer_key))
    return summaries
