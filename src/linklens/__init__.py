"""
LinkLens - engagement analytics for shared documents and tracked links.

LinkLens turns raw viewing sessions into engagement scores, lead signals,
per-link performance and follow-up recommendations.

Example:
    >>> from linklens.analytics import Link, build_link_report
    >>> report = build_link_report(link, sessions, page_views, now=now)
    >>> report.summary.hot_leads
"""

__version__ = "0.1.0"
