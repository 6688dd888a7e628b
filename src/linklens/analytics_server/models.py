"""Server-side models for LinkLens Analytics."""

from datetime import datetime

from pydantic import BaseModel

# Re-export engine schema types for convenience
from linklens.analytics.schema import (
    AccountSummary,
    InsightBundle,
    Link,
    LinkReport,
    PageStats,
    PageView,
    SessionScore,
    ViewerSummary,
    ViewSession,
)

__all__ = [
    # Engine re-exports
    "AccountSummary",
    "InsightBundle",
    "Link",
    "LinkReport",
    "PageStats",
    "PageView",
    "SessionScore",
    "ViewerSummary",
    "ViewSession",
    # Server models
    "SessionClose",
    "Contact",
]


# =============================================================================
# API Input Models
# =============================================================================


class SessionClose(BaseModel):
    """Input for POST /sessions/close (matches SDK client)."""

    account_id: str
    session: ViewSession


# =============================================================================
# Database Models
# =============================================================================


class Contact(BaseModel):
    """Denormalized per-account viewer record, upserted on every session close."""

    account_id: str
    viewer_key: str
    viewer_email: str | None = None
    viewer_name: str | None = None
    view_count: int
    total_time_seconds: float
    engagement_total: int
    best_score: int
    is_hot_lead: bool
    last_seen_at: datetime | None = None

    @property
    def avg_engagement(self) -> int:
        """Running mean of the viewer's session scores."""
        if self.view_count == 0:
            return 0
        return round(self.engagement_total / self.view_count)
