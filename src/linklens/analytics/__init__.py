"""
LinkLens Analytics - viewer engagement scoring and lead qualification.

Turns raw viewing sessions of shared documents, videos and tracked links
into engagement scores, hot/warm/cold intent, per-viewer and per-link
aggregates, page heatmaps and follow-up recommendations. Every engine
function is pure; the client talks to the analytics service.

Example:
    >>> from linklens.analytics import Link, build_link_report
    >>> report = build_link_report(Link(id="deck-q3", total_pages=12), sessions)
    >>> report.summary.hot_leads
    1
"""

from linklens.analytics.breakdowns import (
    best_time_to_share,
    companies_with_multiple_viewers,
    company_from_email,
    device_breakdown,
    parse_referrer_source,
    top_countries,
    traffic_breakdown,
)
from linklens.analytics.client import Client
from linklens.analytics.config import DEFAULT_CONFIG, ScoringConfig
from linklens.analytics.insights import (
    InsightInput,
    generate_account_insights,
    generate_insights,
)
from linklens.analytics.links import compare_windows, summarize_account, summarize_link
from linklens.analytics.pages import analyze_pages, page_drop_off, page_heatmap
from linklens.analytics.report import build_link_report
from linklens.analytics.schema import (
    AccessMethod,
    AccountSummary,
    Action,
    ActionButton,
    ContentType,
    EngagementScore,
    HeatLevel,
    Insight,
    InsightBundle,
    IntentSignal,
    Link,
    LinkReport,
    LinkSummary,
    PageStats,
    PageView,
    Priority,
    SessionScore,
    TrendComparison,
    VideoStats,
    ViewerSummary,
    ViewSession,
)
from linklens.analytics.scoring import (
    classify_session,
    intent_for_score,
    is_hot_lead,
    refresh_cached_score,
    score_session,
    verify_cached_score,
)
from linklens.analytics.viewers import (
    ViewerTotals,
    aggregate_viewer_score,
    group_by_viewer,
    summarize_viewers,
    viewer_key,
)

__all__ = [
    # Client
    "Client",
    # Configuration
    "ScoringConfig",
    "DEFAULT_CONFIG",
    # Scoring
    "score_session",
    "intent_for_score",
    "is_hot_lead",
    "classify_session",
    "verify_cached_score",
    "refresh_cached_score",
    # Aggregation
    "viewer_key",
    "group_by_viewer",
    "aggregate_viewer_score",
    "summarize_viewers",
    "ViewerTotals",
    "summarize_link",
    "compare_windows",
    "summarize_account",
    # Pages
    "page_heatmap",
    "page_drop_off",
    "analyze_pages",
    # Breakdowns
    "company_from_email",
    "companies_with_multiple_viewers",
    "parse_referrer_source",
    "top_countries",
    "device_breakdown",
    "traffic_breakdown",
    "best_time_to_share",
    # Insights & reports
    "InsightInput",
    "generate_insights",
    "generate_account_insights",
    "build_link_report",
    # Type aliases
    "ContentType",
    "IntentSignal",
    "AccessMethod",
    "HeatLevel",
    "Priority",
    # Models
    "VideoStats",
    "ViewSession",
    "PageView",
    "Link",
    "EngagementScore",
    "SessionScore",
    "ViewerSummary",
    "LinkSummary",
    "TrendComparison",
    "PageStats",
    "AccountSummary",
    "Insight",
    "ActionButton",
    "Action",
    "InsightBundle",
    "LinkReport",
]
