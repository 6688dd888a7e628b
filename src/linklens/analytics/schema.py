"""
LinkLens Analytics Schema

This module defines the records the engagement engine reads and the
aggregates it produces.

The schema covers:
- Viewing sessions for documents, tracked links and videos
- Per-page dwell records
- Per-session scores and lead signals
- Per-viewer, per-link and per-account aggregates
- Page heatmap and drop-off rows
- Insights and recommended actions
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

# =============================================================================
# TYPE DEFINITIONS
# =============================================================================

ContentType = Literal[
    "document",    # Paged file (PDF, slides, docs)
    "track-site",  # URL redirect link, no pages
    "video",       # Video file with watch telemetry
    "other",       # Images, audio and anything unpaged
]
"""
Content-type discriminator for a link and its sessions.

Scoring dispatches on this value: documents score dwell and page
completion, videos score watch ratio, track-sites score only dwell,
downloads and return visits.
"""

IntentSignal = Literal["hot", "warm", "cold"]
"""
Categorical intent derived from an engagement score.

- hot: score >= 70, priority for follow-up
- warm: 40 <= score < 70
- cold: score < 40
"""

AccessMethod = Literal["direct_click", "qr_scan"]
"""How the viewer arrived at the link."""

HeatLevel = Literal["hot", "medium", "cool", "cold"]
"""Relative attention tier of a page within its own document."""

Priority = Literal["high", "medium", "low"]
"""Urgency of an insight or action. Lists are ordered high first."""

ViewerScope = Literal["link", "account"]
"""
Scope of the viewer grouping key.

- link: the same person on two links counts as two viewers
- account: the same person across all of an account's links is one viewer
"""

InsightCategory = Literal[
    "engagement", "audience", "traffic", "timing", "content", "trend", "behavior"
]


# =============================================================================
# RAW RECORDS
# =============================================================================


class VideoStats(BaseModel):
    """
    Watch telemetry for a video session.

    Attributes:
        watch_time_seconds: Seconds actually played.
        video_duration_seconds: Length of the video.
        video_completion_percent: Furthest point reached, if recorded.
        finished: Whether the player reported the end of the video.
    """

    watch_time_seconds: float = 0
    video_duration_seconds: float = 0
    video_completion_percent: float | None = None
    finished: bool = False


class ViewSession(BaseModel):
    """
    One viewer visit to one link.

    Sessions are read from the access log and never mutated by the engine.
    Numeric fields are accepted as recorded; the scorer sanitizes them.

    Attributes:
        session_id: Tracking session token, if any.
        link_id: Link the session belongs to.
        viewer_email: Viewer email when the link is gated.
        viewer_name: Display name when provided.
        ip_address: Client IP.
        started_at: Session start (UTC).
        ended_at: Session end, None while the session is open.
        total_duration_seconds: Total dwell time.
        pages_viewed_count: Distinct pages seen.
        max_page_reached: Highest page number reached.
        total_pages: Page count of the document, None when unknown.
        exit_page: Last page seen.
        idle_time_seconds: Time with no interaction.
        tab_switches_count: Times the viewer left the tab.
        scroll_depth: Page number to max scroll depth percentage.
        download_attempted: Viewer tried to download.
        print_attempted: Viewer tried to print.
        copy_attempted: Viewer tried to copy text.
        is_return_visit: Viewer had an earlier session on this link.
        return_visit_count: Number of earlier sessions.
        content_type: Discriminator for scoring.
        video: Watch telemetry, video sessions only.
        access_method: Direct click or QR scan.
        country: Geo country.
        city: Geo city.
        device_type: desktop / mobile / tablet.
        referrer: Raw referrer URL.
        engagement_score: Cached score, recomputable.
        intent_signal: Cached intent, recomputable.

    Example:
        >>> session = ViewSession(
        ...     link_id="deck-q3",
        ...     viewer_email="ana@acme.com",
        ...     started_at=datetime.now(UTC),
        ...     total_duration_seconds=150,
        ...     max_page_reached=12,
        ...     total_pages=12,
        ...     download_attempted=True,
        ... )
    """

    session_id: str | None = None
    link_id: str
    viewer_email: str | None = None
    viewer_name: str | None = None
    ip_address: str | None = None

    started_at: datetime
    ended_at: datetime | None = None
    total_duration_seconds: float = 0

    pages_viewed_count: int = 0
    max_page_reached: int = 0
    total_pages: int | None = None
    exit_page: int | None = None

    idle_time_seconds: float = 0
    tab_switches_count: int = 0
    scroll_depth: dict[int, float] = Field(default_factory=dict)

    download_attempted: bool = False
    print_attempted: bool = False
    copy_attempted: bool = False
    is_return_visit: bool = False
    return_visit_count: int = 0

    content_type: ContentType = "document"
    video: VideoStats | None = None

    access_method: AccessMethod = "direct_click"
    country: str | None = None
    city: str | None = None
    device_type: str | None = None
    referrer: str | None = None

    # Cached on write, never authoritative
    engagement_score: int | None = None
    intent_signal: IntentSignal | None = None

    @property
    def completion_percentage(self) -> float:
        """Max page reached over total pages, 0-100; 0 when pages are unknown."""
        if not self.total_pages or self.total_pages <= 0:
            return 0.0
        reached = max(0, min(self.max_page_reached, self.total_pages))
        return reached / self.total_pages * 100


class PageView(BaseModel):
    """
    Dwell record for one page within one session.

    Attributes:
        session_id: Owning session.
        page_number: 1-based page number.
        duration_seconds: Cumulative seconds on the page.
        max_scroll_depth: Deepest scroll seen, 0-100.
        revisit_count: Times the viewer came back to the page.
    """

    session_id: str | None = None
    page_number: int
    duration_seconds: float = 0
    max_scroll_depth: float = 0
    revisit_count: int = 0


class Link(BaseModel):
    """
    A shared file or tracked URL.

    Attributes:
        id: Link identifier.
        name: Display name.
        content_type: Discriminator used for every session of the link.
        total_pages: Page count for documents.
        created_at: Creation time.
    """

    id: str
    name: str | None = None
    content_type: ContentType = "document"
    total_pages: int | None = None
    created_at: datetime | None = None


# =============================================================================
# SCORES
# =============================================================================


class ScoreBreakdown(BaseModel):
    """Points contributed by each sub-score, before the final rounding."""

    duration: float = 0
    completion: float = 0
    action: float = 0
    return_visit: float = 0


class EngagementScore(BaseModel):
    """Output of the engagement scorer for one session."""

    score: int
    intent: IntentSignal
    breakdown: ScoreBreakdown = Field(default_factory=ScoreBreakdown)


class SessionScore(BaseModel):
    """Score, intent and hot-lead flag for one session."""

    session_id: str | None = None
    link_id: str
    viewer_key: str
    score: int
    intent: IntentSignal
    is_hot_lead: bool


# =============================================================================
# AGGREGATES
# =============================================================================


class ViewerSummary(BaseModel):
    """
    Aggregate of every session one viewer has on one link or account.

    ``aggregated_score`` rewards the viewer's best demonstrated engagement
    rather than their average; ``avg_engagement`` is kept for display.
    """

    viewer_key: str
    viewer_email: str | None = None
    viewer_name: str | None = None
    sessions: int
    total_time_seconds: float
    best_score: int
    avg_engagement: int
    aggregated_score: int
    intent: IntentSignal
    is_hot_lead: bool
    downloaded: bool
    first_seen_at: datetime
    last_seen_at: datetime


class LinkSummary(BaseModel):
    """Per-link counters and scores. All zeros when there are no sessions."""

    total_views: int = 0
    unique_viewers: int = 0
    avg_engagement: int = 0
    performance_score: int = 0
    hot_leads: int = 0
    warm_leads: int = 0
    cold_leads: int = 0
    completion_rate: int = 0
    return_rate: int = 0
    return_viewers: int = 0
    qr_scans: int = 0
    direct_clicks: int = 0
    downloads: int = 0
    download_rate: int = 0
    avg_time_spent: int = 0
    views_today: int = 0
    avg_completion: int = 0
    finished_count: int = 0
    last_view_at: datetime | None = None


class TrendComparison(BaseModel):
    """The two most recent equal-length windows of one link side by side."""

    window_days: int
    current: LinkSummary
    previous: LinkSummary
    views_change: int = 0
    engagement_change: int = 0
    return_rate_change: int = 0
    hot_leads_change: int = 0


class BreakdownItem(BaseModel):
    """One bucket of an audience breakdown."""

    name: str
    count: int
    percentage: int


class CompanyInterest(BaseModel):
    """Distinct viewers sharing a corporate email domain."""

    name: str
    domain: str
    viewer_count: int
    emails: list[str] = Field(default_factory=list)


class ShareWindow(BaseModel):
    """
    When the audience of a link is most active.

    Attributes:
        days: Busiest weekdays, busiest first ("Mon", "Tue", ...).
        start_hour: First hour (UTC, 0-23) of the busiest four-hour block.
        end_hour: Hour the block ends, exclusive, modulo 24.
        views: Views that fell inside the block.
    """

    days: list[str] = Field(default_factory=list)
    start_hour: int
    end_hour: int
    views: int


class PageHeat(BaseModel):
    """Attention on one page, relative to the rest of the document."""

    page: int
    view_count: int
    total_time: float
    avg_time: float
    heat_score: int
    heat_level: HeatLevel


class PageDropOff(BaseModel):
    """Viewers who reached a page and went no further."""

    page: int
    reached: int
    drop_off_count: int
    drop_off_rate: float


class PageStats(BaseModel):
    """Heatmap and drop-off for one page, merged."""

    page: int
    view_count: int = 0
    avg_time: float = 0
    heat_level: HeatLevel = "cold"
    heat_score: int = 0
    reached: int = 0
    drop_off_count: int = 0
    drop_off_rate: float = 0


class LinkPerformance(BaseModel):
    """A link ranked within an account."""

    link_id: str
    name: str | None = None
    performance_score: int
    total_views: int


class AccountSummary(BaseModel):
    """Roll-up of every link of one account."""

    total_links: int = 0
    total_views: int = 0
    unique_viewers: int = 0
    avg_engagement: int = 0
    hot_leads: int = 0
    warm_leads: int = 0
    return_rate: int = 0
    top_performers: list[LinkPerformance] = Field(default_factory=list)
    links: dict[str, LinkSummary] = Field(default_factory=dict)


# =============================================================================
# INSIGHTS & ACTIONS
# =============================================================================


class Insight(BaseModel):
    """
    Human-readable observation about a link.

    Attributes:
        id: Stable rule identifier, unique within a list.
        icon: Display icon.
        text: Headline.
        implication: What it means for the owner.
        priority: Urgency tier.
        category: Topic used for grouping in the UI.
        magnitude: Size of the deviation; orders items within a tier.
    """

    id: str
    icon: str
    text: str
    implication: str
    priority: Priority
    category: InsightCategory
    magnitude: float = 0


class ActionButton(BaseModel):
    """Suggested follow-up button. Purely descriptive, no bound command."""

    label: str
    icon: str


class Action(BaseModel):
    """Recommended follow-up for the link owner."""

    id: str
    priority: Priority
    icon: str
    title: str
    reason: str
    buttons: list[ActionButton] = Field(default_factory=list)
    magnitude: float = 0


class InsightBundle(BaseModel):
    """Ordered insights and actions for one scope."""

    insights: list[Insight] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)


class LinkReport(BaseModel):
    """Everything the dashboard shows for one link, computed in one pass."""

    link: Link
    generated_at: datetime
    summary: LinkSummary
    viewers: list[ViewerSummary] = Field(default_factory=list)
    pages: list[PageStats] = Field(default_factory=list)
    trend: TrendComparison | None = None
    companies: list[CompanyInterest] = Field(default_factory=list)
    countries: list[BreakdownItem] = Field(default_factory=list)
    devices: list[BreakdownItem] = Field(default_factory=list)
    traffic_sources: list[BreakdownItem] = Field(default_factory=list)
    share_window: ShareWindow | None = None
    insights: list[Insight] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
