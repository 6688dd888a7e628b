"""
Rule engine turning link and account aggregates into insights and actions.

Each rule looks at one aggregate and yields zero or more insights and
actions. Magnitude is how far the triggering metric sits past the rule's
threshold, so within a priority tier the largest deviation comes first.
Output is fully determined by the input: ties fall back to the id.
"""

from collections.abc import Iterator, Sequence

from pydantic import BaseModel, ConfigDict, Field

from linklens.analytics._sanitize import percent
from linklens.analytics.schema import (
    AccountSummary,
    Action,
    ActionButton,
    BreakdownItem,
    CompanyInterest,
    ContentType,
    Insight,
    InsightBundle,
    LinkSummary,
    PageStats,
    TrendComparison,
    ViewerSummary,
)

MAX_INSIGHTS = 8
MAX_ACTIONS = 6

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}

_SOCIAL_SOURCES = frozenset(
    {"facebook", "linkedin", "twitter", "instagram", "tiktok", "youtube", "reddit", "pinterest"}
)

VIEW_LEADS = ActionButton(label="View Leads", icon="👥")
EXPORT = ActionButton(label="Export", icon="📤")
REVIEW_PAGE = ActionButton(label="Review Page", icon="👁️")
EDIT_FILE = ActionButton(label="Edit File", icon="✏️")
COPY_LINK = ActionButton(label="Copy Link", icon="📋")
SHARE = ActionButton(label="Share", icon="📤")


class InsightInput(BaseModel):
    """Everything the link rules read. Built by the report pipeline."""

    model_config = ConfigDict(frozen=True)

    summary: LinkSummary
    content_type: ContentType = "document"
    viewers: Sequence[ViewerSummary] = Field(default_factory=tuple)
    pages: Sequence[PageStats] = Field(default_factory=tuple)
    trend: TrendComparison | None = None
    companies: Sequence[CompanyInterest] = Field(default_factory=tuple)
    countries: Sequence[BreakdownItem] = Field(default_factory=tuple)
    devices: Sequence[BreakdownItem] = Field(default_factory=tuple)
    traffic_sources: Sequence[BreakdownItem] = Field(default_factory=tuple)


Finding = Insight | Action


def generate_insights(data: InsightInput) -> InsightBundle:
    """Run every link rule and return ordered, de-duplicated, capped lists.

    A link with no sessions gets two empty lists.
    """
    if data.summary.total_views == 0:
        return InsightBundle()
    findings = [finding for rule in _LINK_RULES for finding in rule(data)]
    return _bundle(findings)


def generate_account_insights(account: AccountSummary) -> InsightBundle:
    """Account-wide rules over an :class:`AccountSummary`."""
    if account.total_views == 0:
        return InsightBundle()
    return _bundle(list(_account_findings(account)))


def _bundle(findings: list[Finding]) -> InsightBundle:
    insights = _ordered([f for f in findings if isinstance(f, Insight)])
    actions = _ordered([f for f in findings if isinstance(f, Action)])
    return InsightBundle(insights=insights[:MAX_INSIGHTS], actions=actions[:MAX_ACTIONS])


def _ordered(items: list[Finding]) -> list[Finding]:
    items = sorted(items, key=lambda i: (_PRIORITY_ORDER[i.priority], -i.magnitude, i.id))
    seen: set[str] = set()
    unique: list[Finding] = []
    for item in items:
        if item.id not in seen:
            seen.add(item.id)
            unique.append(item)
    return unique


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


# =============================================================================
# Link rules
# =============================================================================


def _hot_leads(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    if s.hot_leads <= 0:
        return
    share = percent(s.hot_leads, s.unique_viewers)
    yield Insight(
        id="hot-leads-ready",
        icon="🔥",
        text=f"{_plural(s.hot_leads, 'hot lead')} ready for follow-up",
        implication="High intent - prioritize outreach",
        priority="high",
        category="engagement",
        magnitude=share,
    )
    names = [
        v.viewer_name or (v.viewer_email or "").split("@")[0]
        for v in data.viewers
        if v.intent == "hot" and (v.viewer_name or v.viewer_email)
    ][:3]
    yield Action(
        id="contact-hot-leads",
        priority="high",
        icon="🔥",
        title=f"Contact {_plural(s.hot_leads, 'hot lead')}",
        reason=f"{', '.join(names)} - High intent viewers"
        if names
        else "High intent viewers ready for follow-up",
        buttons=[VIEW_LEADS, EXPORT],
        magnitude=share,
    )


def _engagement(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    if s.avg_engagement < 20 and s.total_views >= 5:
        yield Insight(
            id="low-engagement-warning",
            icon="📉",
            text=f"Low engagement score ({s.avg_engagement})",
            implication="Consider refreshing content",
            priority="high",
            category="engagement",
            magnitude=20 - s.avg_engagement,
        )
        yield Action(
            id="refresh-content",
            priority="medium",
            icon="📉",
            title="Refresh content",
            reason="Engagement below average - consider updates",
            buttons=[EDIT_FILE],
            magnitude=20 - s.avg_engagement,
        )
    elif s.avg_engagement >= 70 and s.total_views >= 3:
        yield Insight(
            id="high-engagement",
            icon="🚀",
            text=f"High engagement score ({s.avg_engagement})",
            implication="Content is resonating well",
            priority="medium",
            category="engagement",
            magnitude=s.avg_engagement - 70,
        )


def _returning(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    if s.return_rate <= 25:
        return
    text = f"{s.return_rate}% are return visitors"
    yield Insight(
        id="strong-return-visitors",
        icon="🔄",
        text=text,
        implication="Content resonating - people come back",
        priority="medium",
        category="engagement",
        magnitude=s.return_rate - 25,
    )
    yield Action(
        id="nurture-returning",
        priority="medium",
        icon="🔄",
        title="Nurture returning viewers",
        reason=f"{text} - high interest audience",
        buttons=[VIEW_LEADS, EXPORT],
        magnitude=s.return_rate - 25,
    )


def _downloads(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    if data.content_type == "track-site" or s.download_rate <= 30:
        return
    text = f"{s.download_rate}% downloaded"
    yield Insight(
        id="high-download-interest",
        icon="⬇️",
        text=text,
        implication="High interest - saving for later",
        priority="medium",
        category="engagement",
        magnitude=s.download_rate - 30,
    )
    yield Action(
        id="follow-up-downloaders",
        priority="medium",
        icon="⬇️",
        title="Follow up with downloaders",
        reason=f"{text} - ready to engage",
        buttons=[VIEW_LEADS, EXPORT],
        magnitude=s.download_rate - 30,
    )


def _trend(data: InsightInput) -> Iterator[Finding]:
    trend = data.trend
    if trend is None:
        return
    if trend.views_change < -20:
        yield Insight(
            id="views-declining",
            icon="📉",
            text=f"Views down {abs(trend.views_change)}% vs previous period",
            implication="Consider refreshing content or distribution",
            priority="high",
            category="trend",
            magnitude=abs(trend.views_change) - 20,
        )
    if trend.engagement_change > 10 and trend.previous.total_views > 0:
        yield Insight(
            id="engagement-improving",
            icon="💪",
            text=f"Engagement up {trend.engagement_change}% vs previous period",
            implication="Content optimization is working",
            priority="medium",
            category="trend",
            magnitude=trend.engagement_change - 10,
        )
    if trend.return_rate_change > 0 and trend.previous.total_views > 0:
        yield Insight(
            id="return-rate-rising",
            icon="📈",
            text=f"Return rate up {trend.return_rate_change} points "
            f"in the last {_plural(trend.window_days, 'day')}",
            implication="Interest is building",
            priority="medium",
            category="trend",
            magnitude=trend.return_rate_change,
        )
    if trend.hot_leads_change > 0:
        yield Insight(
            id="hot-leads-rising",
            icon="📈",
            text=f"{_plural(trend.hot_leads_change, 'more hot lead')} "
            f"than the previous {_plural(trend.window_days, 'day')}",
            implication="Lead quality is improving",
            priority="medium",
            category="trend",
            magnitude=trend.hot_leads_change,
        )


def _companies(data: InsightInput) -> Iterator[Finding]:
    if not data.companies:
        return
    top = data.companies[0]
    if len(data.companies) == 1:
        text = f"Multiple viewers from {top.name}"
    else:
        text = f"{len(data.companies)} companies showing strong interest"
    yield Insight(
        id="company-interest",
        icon="🏢",
        text=text,
        implication="Being shared internally - potential deal",
        priority="high",
        category="audience",
        magnitude=top.viewer_count - 1,
    )
    yield Action(
        id="follow-up-company",
        priority="medium",
        icon="🏢",
        title=f"Follow up with {top.name} team",
        reason=f"{_plural(top.viewer_count, 'viewer')} from {top.domain} - potential deal",
        buttons=[VIEW_LEADS],
        magnitude=top.viewer_count - 1,
    )


def _drop_off(data: InsightInput) -> Iterator[Finding]:
    worst: PageStats | None = None
    for page in data.pages:
        rate = page.drop_off_rate
        if rate > 30:
            priority, threshold = "high", 30
        elif rate >= 15:
            priority, threshold = "medium", 15
        else:
            continue
        yield Action(
            id=f"revise-page-{page.page}",
            priority=priority,
            icon="⚠️",
            title=f"Revise page {page.page}",
            reason=f"{rate:g}% of viewers leave here",
            buttons=[REVIEW_PAGE, EDIT_FILE],
            magnitude=round(rate - threshold, 1),
        )
        if rate > 30 and (worst is None or rate > worst.drop_off_rate):
            worst = page
    if worst is not None:
        yield Insight(
            id="high-drop-off-page",
            icon="⚠️",
            text=f"{worst.drop_off_rate:g}% drop-off at page {worst.page}",
            implication="Content may need revision",
            priority="high",
            category="content",
            magnitude=round(worst.drop_off_rate - 30, 1),
        )


def _completion(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    if data.content_type not in ("document", "video") or s.total_views < 3:
        return
    watch = data.content_type == "video"
    if s.avg_completion < 50:
        yield Insight(
            id="low-watch-completion" if watch else "low-completion-rate",
            icon="📉" if watch else "📊",
            text=f"Only {s.avg_completion}% average {'watch ' if watch else ''}completion",
            implication="Most viewers don't finish watching"
            if watch
            else "Most viewers don't finish - consider shortening",
            priority="high",
            category="content",
            magnitude=50 - s.avg_completion,
        )
    elif s.avg_completion > 80:
        yield Insight(
            id="high-watch-completion" if watch else "high-completion-rate",
            icon="🎬" if watch else "✅",
            text=f"{s.avg_completion}% average {'watch ' if watch else ''}completion",
            implication="Strong retention" if watch else "Viewers engaged through the end",
            priority="medium",
            category="content",
            magnitude=s.avg_completion - 80,
        )
    if watch and s.finished_count > 0:
        yield Insight(
            id="media-finished-count",
            icon="🏁",
            text=f"{_plural(s.finished_count, 'viewer')} finished entirely",
            implication="Content holding attention",
            priority="medium",
            category="content",
            magnitude=percent(s.finished_count, s.total_views),
        )


def _standout_page(data: InsightInput) -> Iterator[Finding]:
    timed = [p for p in data.pages if p.view_count > 0]
    if len(timed) < 2:
        return
    mean = sum(p.avg_time for p in timed) / len(timed)
    # Page 1 always gets attention, it is where everyone lands
    candidates = [p for p in timed if p.page > 1 and mean > 0 and p.avg_time >= 1.5 * mean]
    if not candidates:
        return
    best = max(candidates, key=lambda p: (p.avg_time, -p.page))
    ratio = best.avg_time / mean
    text = f"Page {best.page} gets {ratio:.1f}x more attention"
    yield Insight(
        id="most-engaging-page",
        icon="💎",
        text=text,
        implication="Strong interest in this content",
        priority="medium",
        category="content",
        magnitude=round((ratio - 1.5) * 100, 1),
    )
    yield Action(
        id=f"highlight-page-{best.page}",
        priority="low",
        icon="💎",
        title=f"Highlight page {best.page}",
        reason=f"{text} - promote this section",
        buttons=[COPY_LINK, SHARE],
        magnitude=round((ratio - 1.5) * 100, 1),
    )


def _audience(data: InsightInput) -> Iterator[Finding]:
    if data.summary.total_views < 3:
        return
    if data.countries:
        top = data.countries[0]
        if top.name != "Unknown" and top.percentage > 50:
            yield Insight(
                id="geographic-concentration",
                icon="🌍",
                text=f"{top.percentage}% of views from {top.name}",
                implication="Strong regional interest",
                priority="medium",
                category="audience",
                magnitude=top.percentage - 50,
            )
    mobile = next((d for d in data.devices if d.name == "mobile"), None)
    if mobile is not None and mobile.percentage > 60:
        yield Insight(
            id="mobile-dominant",
            icon="📱",
            text=f"{mobile.percentage}% of views on mobile",
            implication="Make sure the content reads well on small screens",
            priority="low",
            category="audience",
            magnitude=mobile.percentage - 60,
        )


def _traffic(data: InsightInput) -> Iterator[Finding]:
    s = data.summary
    social = sum(t.percentage for t in data.traffic_sources if t.name in _SOCIAL_SOURCES)
    if social > 30:
        yield Insight(
            id="social-traffic-strong",
            icon="📣",
            text=f"{social}% traffic from social",
            implication="Social sharing is working",
            priority="medium",
            category="traffic",
            magnitude=social - 30,
        )
    qr_share = percent(s.qr_scans, s.total_views)
    if qr_share > 20:
        yield Insight(
            id="qr-effective",
            icon="📲",
            text=f"{qr_share}% of views from QR scans",
            implication="Offline sharing is driving traffic",
            priority="low",
            category="traffic",
            magnitude=qr_share - 20,
        )


_LINK_RULES = (
    _hot_leads,
    _engagement,
    _returning,
    _downloads,
    _trend,
    _companies,
    _drop_off,
    _completion,
    _standout_page,
    _audience,
    _traffic,
)


# =============================================================================
# Account rules
# =============================================================================


def _account_findings(account: AccountSummary) -> Iterator[Finding]:
    if account.hot_leads > 0:
        share = percent(account.hot_leads, account.unique_viewers)
        yield Insight(
            id="hot-leads-ready",
            icon="🔥",
            text=f"{_plural(account.hot_leads, 'hot lead')} across your links",
            implication="High intent - prioritize outreach",
            priority="high",
            category="engagement",
            magnitude=share,
        )
        yield Action(
            id="contact-hot-leads",
            priority="high",
            icon="🔥",
            title=f"Contact {_plural(account.hot_leads, 'hot lead')}",
            reason="High intent viewers ready for follow-up",
            buttons=[VIEW_LEADS, EXPORT],
            magnitude=share,
        )
    if account.avg_engagement < 20 and account.total_views >= 5:
        yield Insight(
            id="low-engagement-warning",
            icon="📉",
            text=f"Low engagement score ({account.avg_engagement})",
            implication="Consider refreshing content",
            priority="high",
            category="engagement",
            magnitude=20 - account.avg_engagement,
        )
    if account.return_rate > 25:
        yield Insight(
            id="strong-return-visitors",
            icon="🔄",
            text=f"{account.return_rate}% are return visitors",
            implication="Content resonating - people come back",
            priority="medium",
            category="engagement",
            magnitude=account.return_rate - 25,
        )
    if account.top_performers and account.total_links > 1:
        top = account.top_performers[0]
        yield Insight(
            id="top-performer",
            icon="🏆",
            text=f"{top.name or top.link_id} is your top performer ({top.performance_score})",
            implication="Reuse what works in your other content",
            priority="low",
            category="content",
            magnitude=top.performance_score,
        )
    idle = sorted(link_id for link_id, s in account.links.items() if s.total_views == 0)
    if idle:
        yield Action(
            id="share-idle-links",
            priority="low",
            icon="📤",
            title=f"Share {_plural(len(idle), 'unviewed link')}",
            reason="No views yet - start sharing to collect analytics",
            buttons=[COPY_LINK, SHARE],
            magnitude=len(idle),
        )
