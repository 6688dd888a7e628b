"""Per-page heatmap and drop-off for paged documents."""

import logging
import statistics
from collections.abc import Iterable

from linklens.analytics._sanitize import clean_count, clean_number
from linklens.analytics.grouping import group_by_viewer
from linklens.analytics.schema import (
    HeatLevel,
    PageDropOff,
    PageHeat,
    PageStats,
    PageView,
    ViewSession,
)

logger = logging.getLogger(__name__)


def page_heatmap(page_views: Iterable[PageView], total_pages: int | None = None) -> list[PageHeat]:
    """Average time per page, banded into heat levels by the document's own quartiles.

    Pages at or above the upper quartile are "hot", at or above the median
    "medium", at or above the lower quartile "cool", the rest "cold". When
    every page has the same average there is no spread to band, so every
    page gets "medium" ("cold" if nobody spent any time).

    Args:
        page_views: Page dwell records of one link.
        total_pages: Page count; out-of-range page numbers are clamped to it.

    Returns:
        One row per page with views, in page order. Empty when there are no
        page views or the document has no pages.
    """
    if total_pages is not None and total_pages <= 0:
        return []

    durations: dict[int, list[float]] = {}
    for view in page_views:
        page = _clamp_page(view.page_number, total_pages)
        seconds = clean_number(view.duration_seconds, "duration_seconds")
        durations.setdefault(page, []).append(seconds)
    if not durations:
        return []

    averages = {page: sum(times) / len(times) for page, times in durations.items()}
    hottest = max(averages.values())
    levels = _heat_levels(averages)

    return [
        PageHeat(
            page=page,
            view_count=len(durations[page]),
            total_time=round(sum(durations[page]), 1),
            avg_time=round(averages[page], 1),
            heat_score=round(averages[page] / hottest * 100) if hottest > 0 else 0,
            heat_level=levels[page],
        )
        for page in sorted(averages)
    ]


def page_drop_off(sessions: Iterable[ViewSession], total_pages: int | None) -> list[PageDropOff]:
    """Share of viewers who stopped at each page.

    Uses each viewer's furthest page across all their sessions, so coming
    back to an early page is not counted as reaching it again. The last
    page has nothing after it and always reports 0.
    """
    if not total_pages or total_pages <= 0:
        return []

    furthest: list[int] = []
    for group in group_by_viewer(sessions, "link").values():
        furthest.append(
            max(
                clean_count(s.max_page_reached, "max_page_reached", high=total_pages)
                for s in group
            )
        )
    if not furthest:
        return []

    rows = []
    for page in range(1, total_pages + 1):
        reached = sum(1 for last in furthest if last >= page)
        stopped = 0 if page == total_pages else sum(1 for last in furthest if last == page)
        rows.append(
            PageDropOff(
                page=page,
                reached=reached,
                drop_off_count=stopped,
                drop_off_rate=round(stopped / reached * 100, 1) if reached else 0.0,
            )
        )
    return rows


def analyze_pages(
    page_views: Iterable[PageView],
    sessions: Iterable[ViewSession],
    total_pages: int | None,
) -> list[PageStats]:
    """Heatmap and drop-off merged into one row per page."""
    heat = {row.page: row for row in page_heatmap(page_views, total_pages)}
    drops = {row.page: row for row in page_drop_off(sessions, total_pages)}
    if total_pages and total_pages > 0 and (heat or drops):
        pages = range(1, total_pages + 1)
    else:
        pages = sorted(heat)

    stats = []
    for page in pages:
        row = PageStats(page=page)
        if page in heat:
            h = heat[page]
            row = row.model_copy(
                update={
                    "view_count": h.view_count,
                    "avg_time": h.avg_time,
                    "heat_level": h.heat_level,
                    "heat_score": h.heat_score,
                }
            )
        if page in drops:
            d = drops[page]
            row = row.model_copy(
                update={
                    "reached": d.reached,
                    "drop_off_count": d.drop_off_count,
                    "drop_off_rate": d.drop_off_rate,
                }
            )
        stats.append(row)
    return stats


def _clamp_page(page: int, total_pages: int | None) -> int:
    if page < 1:
        logger.warning("Sanitized page_number: %r below 1", page)
        return 1
    if total_pages is not None and page > total_pages:
        logger.warning("Sanitized page_number: %r above %s", page, total_pages)
        return total_pages
    return page


def _heat_levels(averages: dict[int, float]) -> dict[int, HeatLevel]:
    values = list(averages.values())
    if max(values) == min(values):
        flat: HeatLevel = "medium" if values[0] > 0 else "cold"
        return {page: flat for page in averages}

    q1, median, q3 = statistics.quantiles(values, n=4, method="inclusive")
    levels: dict[int, HeatLevel] = {}
    for page, avg in averages.items():
        if avg >= q3:
            levels[page] = "hot"
        elif avg >= median:
            levels[page] = "medium"
        elif avg >= q1:
            levels[page] = "cool"
        else:
            levels[page] = "cold"
    return levels
