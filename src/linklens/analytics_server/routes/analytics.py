"""Analytics read routes - public API matching the SDK."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query

from linklens.analytics.insights import generate_account_insights
from linklens.analytics.links import summarize_account
from linklens.analytics.pages import analyze_pages
from linklens.analytics.report import build_link_report
from linklens.analytics.viewers import summarize_viewers
from linklens.analytics_server.database import Pool, Scoring
from linklens.analytics_server.models import (
    AccountSummary,
    InsightBundle,
    LinkReport,
    PageStats,
    ViewerSummary,
)
from linklens.analytics_server.services import sessions as session_service

router = APIRouter(tags=["analytics"])


@router.get("/links/{link_id}/report")
async def get_link_report(
    link_id: str,
    pool: Pool,
    config: Scoring,
    since: Annotated[datetime | None, Query(description="Sessions started at or after")] = None,
    until: Annotated[datetime | None, Query(description="Sessions started before")] = None,
) -> LinkReport:
    """Full report for one link: summary, viewers, pages, trend, insights."""
    async with pool.connection() as conn:
        link = await session_service.get_link(conn, link_id)
        if link is None:
            raise HTTPException(404, "Link not found")
        sessions = await session_service.list_sessions(conn, link_id, since=since, until=until)
        page_views = await session_service.list_page_views(conn, link_id)

    return build_link_report(link, sessions, page_views, now=until, config=config)


@router.get("/links/{link_id}/viewers")
async def get_link_viewers(
    link_id: str,
    pool: Pool,
    config: Scoring,
) -> list[ViewerSummary]:
    """Per-viewer summaries for one link, hottest first."""
    async with pool.connection() as conn:
        link = await session_service.get_link(conn, link_id)
        if link is None:
            raise HTTPException(404, "Link not found")
        sessions = await session_service.list_sessions(conn, link_id)

    return summarize_viewers(sessions, link.content_type, "link", config)


@router.get("/links/{link_id}/pages")
async def get_link_pages(
    link_id: str,
    pool: Pool,
) -> list[PageStats]:
    """Page heatmap and drop-off for a document link. Empty for other types."""
    async with pool.connection() as conn:
        link = await session_service.get_link(conn, link_id)
        if link is None:
            raise HTTPException(404, "Link not found")
        if link.content_type != "document":
            return []
        sessions = await session_service.list_sessions(conn, link_id)
        page_views = await session_service.list_page_views(conn, link_id)

    return analyze_pages(page_views, sessions, link.total_pages)


@router.get("/accounts/{account_id}/summary")
async def get_account_summary(
    account_id: str,
    pool: Pool,
    config: Scoring,
) -> AccountSummary:
    """Roll-up of every link of one account."""
    async with pool.connection() as conn:
        links = await session_service.list_account_links(conn, account_id)
        sessions = await session_service.list_account_sessions(conn, account_id)

    return summarize_account(links, sessions, now=datetime.now(UTC), config=config)


@router.get("/accounts/{account_id}/insights")
async def get_account_insights(
    account_id: str,
    pool: Pool,
    config: Scoring,
) -> InsightBundle:
    """Insights and actions across every link of one account."""
    async with pool.connection() as conn:
        links = await session_service.list_account_links(conn, account_id)
        sessions = await session_service.list_account_sessions(conn, account_id)

    summary = summarize_account(links, sessions, now=datetime.now(UTC), config=config)
    return generate_account_insights(summary)
