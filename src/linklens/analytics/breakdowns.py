"""Audience breakdowns: companies, countries, devices, traffic sources and timing."""

from collections import Counter
from collections.abc import Iterable
from urllib.parse import urlparse

from linklens.analytics._sanitize import as_utc, percent
from linklens.analytics.grouping import group_by_viewer
from linklens.analytics.schema import BreakdownItem, CompanyInterest, ShareWindow, ViewSession

GENERIC_EMAIL_DOMAINS = frozenset(
    {
        "gmail.com",
        "yahoo.com",
        "hotmail.com",
        "outlook.com",
        "icloud.com",
        "aol.com",
        "protonmail.com",
        "mail.com",
        "live.com",
        "msn.com",
        "ymail.com",
        "googlemail.com",
    }
)

# (source, host suffixes), first match wins
_REFERRER_SOURCES = (
    ("google", ("google.com",)),
    ("bing", ("bing.com",)),
    ("yahoo", ("yahoo.com",)),
    ("duckduckgo", ("duckduckgo.com",)),
    ("facebook", ("facebook.com", "fb.com")),
    ("linkedin", ("linkedin.com", "lnkd.in")),
    ("twitter", ("twitter.com", "x.com", "t.co")),
    ("instagram", ("instagram.com",)),
    ("tiktok", ("tiktok.com",)),
    ("youtube", ("youtube.com", "youtu.be")),
    ("reddit", ("reddit.com",)),
    ("pinterest", ("pinterest.com",)),
    ("slack", ("slack.com",)),
    ("discord", ("discord.com",)),
    ("telegram", ("t.me", "telegram.org")),
    ("whatsapp", ("whatsapp.com",)),
    ("notion", ("notion.so",)),
    ("github", ("github.com",)),
)

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_SHARE_BLOCK_HOURS = 4
_MIN_VIEWS_FOR_TIMING = 5


def company_from_email(email: str | None) -> tuple[str, str] | None:
    """Company name and domain for a corporate email, None for webmail."""
    if not email or "@" not in email:
        return None
    domain = email.strip().lower().rsplit("@", 1)[1]
    if not domain or domain in GENERIC_EMAIL_DOMAINS:
        return None
    parts = domain.split(".")
    if len(parts) < 2 or not parts[0]:
        return None
    return parts[0].capitalize(), domain


def companies_with_multiple_viewers(
    sessions: Iterable[ViewSession],
    min_viewers: int = 2,
) -> list[CompanyInterest]:
    """Corporate domains with at least ``min_viewers`` distinct viewers.

    Sorted by viewer count, then domain.
    """
    emails_by_domain: dict[str, set[str]] = {}
    names: dict[str, str] = {}
    for session in sessions:
        company = company_from_email(session.viewer_email)
        if company is None:
            continue
        name, domain = company
        names[domain] = name
        emails_by_domain.setdefault(domain, set()).add(session.viewer_email.strip().lower())

    interests = [
        CompanyInterest(
            name=names[domain],
            domain=domain,
            viewer_count=len(emails),
            emails=sorted(emails),
        )
        for domain, emails in emails_by_domain.items()
        if len(emails) >= min_viewers
    ]
    interests.sort(key=lambda c: (-c.viewer_count, c.domain))
    return interests


def parse_referrer_source(referrer: str | None) -> str:
    """Collapse a referrer URL into a traffic source name.

    Returns "direct" for no referrer and "other" for anything unrecognized.
    """
    if not referrer or not referrer.strip():
        return "direct"
    raw = referrer.strip().lower()
    host = urlparse(raw if "://" in raw else f"//{raw}").hostname or ""

    for source, suffixes in _REFERRER_SOURCES:
        if any(host == suffix or host.endswith(f".{suffix}") for suffix in suffixes):
            return source
    if host.startswith("mail.") or "outlook" in host or "gmail" in host:
        return "email"
    return "other"


def top_countries(sessions: Iterable[ViewSession], limit: int = 5) -> list[BreakdownItem]:
    """Views per country, most first. Sessions without a country are "Unknown"."""
    return _breakdown((s.country or "Unknown" for s in sessions), limit)


def device_breakdown(sessions: Iterable[ViewSession]) -> list[BreakdownItem]:
    """Views per device type."""
    return _breakdown((s.device_type or "unknown").lower() for s in sessions)


def traffic_breakdown(sessions: Iterable[ViewSession]) -> list[BreakdownItem]:
    """Views per traffic source. QR scans are their own source."""
    return _breakdown(
        "qr" if s.access_method == "qr_scan" else parse_referrer_source(s.referrer)
        for s in sessions
    )


def best_time_to_share(sessions: Iterable[ViewSession]) -> ShareWindow | None:
    """Busiest two weekdays and four-hour block, or None with too few views.

    One view is counted per viewer per hour so a single viewer refreshing
    the page does not define the audience's habits.
    """
    sessions = list(sessions)
    if len(sessions) < _MIN_VIEWS_FOR_TIMING:
        return None

    days: Counter[int] = Counter()
    hours: Counter[int] = Counter()
    for group in group_by_viewer(sessions, "link").values():
        seen: set[tuple[int, int]] = set()
        for session in group:
            started = as_utc(session.started_at)
            slot = (started.weekday(), started.hour)
            if slot in seen:
                continue
            seen.add(slot)
            days[started.weekday()] += 1
            hours[started.hour] += 1

    best_start, best_views = 0, -1
    for start in range(24):
        views = sum(hours[(start + offset) % 24] for offset in range(_SHARE_BLOCK_HOURS))
        if views > best_views:
            best_start, best_views = start, views

    top_days = sorted(days, key=lambda d: (-days[d], d))[:2]
    return ShareWindow(
        days=[_WEEKDAYS[d] for d in top_days],
        start_hour=best_start,
        end_hour=(best_start + _SHARE_BLOCK_HOURS) % 24,
        views=best_views,
    )


def _breakdown(names: Iterable[str], limit: int | None = None) -> list[BreakdownItem]:
    counts = Counter(names)
    total = sum(counts.values())
    items = [
        BreakdownItem(name=name, count=count, percentage=percent(count, total))
        for name, count in counts.items()
    ]
    items.sort(key=lambda item: (-item.count, item.name))
    return items[:limit] if limit is not None else items
