"""Tests for page heatmaps and drop-off."""

import logging

from linklens.analytics import PageView, analyze_pages, page_drop_off, page_heatmap


def _views(*pairs):
    return [
        PageView(session_id=f"s-{i}", page_number=page, duration_seconds=seconds)
        for i, (page, seconds) in enumerate(pairs)
    ]


class TestPageHeatmap:
    """Tests for relative page heat."""

    def test_quartile_bands(self):
        """GIVEN four pages averaging 10, 20, 30 and 40 seconds
        WHEN banded
        SHOULD spread cold, cool, medium and hot by the document's own quartiles."""
        rows = page_heatmap(_views((1, 10), (2, 20), (3, 30), (4, 40)), total_pages=4)
        assert [r.heat_level for r in rows] == ["cold", "cool", "medium", "hot"]
        assert [r.heat_score for r in rows] == [25, 50, 75, 100]

    def test_averages_per_page(self):
        """Several views of one page are averaged and totalled."""
        (row,) = page_heatmap(_views((2, 10), (2, 25)), total_pages=5)
        assert row.page == 2
        assert row.view_count == 2
        assert row.total_time == 35
        assert row.avg_time == 17.5

    def test_flat_distribution(self):
        """Equal averages have no spread, so every page is medium."""
        rows = page_heatmap(_views((1, 12), (2, 12), (3, 12)))
        assert {r.heat_level for r in rows} == {"medium"}

    def test_no_time_at_all_is_cold(self):
        """Pages opened for zero seconds are all cold."""
        rows = page_heatmap(_views((1, 0), (2, 0)))
        assert {r.heat_level for r in rows} == {"cold"}
        assert {r.heat_score for r in rows} == {0}

    def test_out_of_range_pages_are_clamped(self, caplog):
        """GIVEN page numbers outside 1..total
        WHEN banded
        SHOULD clamp them into range and log it."""
        with caplog.at_level(logging.WARNING, logger="linklens.analytics"):
            rows = page_heatmap(_views((0, 5), (9, 5)), total_pages=3)
        assert [r.page for r in rows] == [1, 3]
        assert "page_number" in caplog.text

    def test_empty(self):
        """No page views or no pages gives no rows."""
        assert page_heatmap([]) == []
        assert page_heatmap(_views((1, 5)), total_pages=0) == []


class TestPageDropOff:
    """Tests for per-page drop-off."""

    def test_furthest_page_per_viewer(self, make_session):
        """GIVEN viewers who stopped at pages 3, 1 and 2 of 3
        WHEN analyzed
        SHOULD report the share stopping at each page and 0 on the last."""
        sessions = [
            make_session(session_id="a", ip_address="10.0.0.1", max_page_reached=3),
            make_session(session_id="b", ip_address="10.0.0.2", max_page_reached=1),
            make_session(session_id="c", ip_address="10.0.0.3", max_page_reached=2),
        ]
        rows = page_drop_off(sessions, total_pages=3)
        assert [r.reached for r in rows] == [3, 2, 1]
        assert [r.drop_off_count for r in rows] == [1, 1, 0]
        assert [r.drop_off_rate for r in rows] == [33.3, 50.0, 0.0]

    def test_revisit_does_not_double_count(self, make_session):
        """A viewer returning to an early page still counts at their furthest page."""
        sessions = [
            make_session(session_id="a", viewer_email="ana@acme.com", max_page_reached=4),
            make_session(session_id="b", viewer_email="ana@acme.com", max_page_reached=1),
        ]
        rows = page_drop_off(sessions, total_pages=4)
        assert [r.reached for r in rows] == [1, 1, 1, 1]
        assert sum(r.drop_off_count for r in rows) == 0

    def test_unknown_page_count(self, make_session):
        """Without a page count there is nothing to report."""
        assert page_drop_off([make_session()], total_pages=None) == []
        assert page_drop_off([], total_pages=5) == []


class TestAnalyzePages:
    """Tests for merged page rows."""

    def test_every_page_reported(self, make_session):
        """GIVEN views on some pages of a three page document
        WHEN merged
        SHOULD return a row for every page, defaults where nobody looked."""
        sessions = [make_session(session_id="a", ip_address="10.0.0.1", max_page_reached=2)]
        rows = analyze_pages(_views((1, 30), (2, 10)), sessions, total_pages=3)

        assert [r.page for r in rows] == [1, 2, 3]
        assert rows[0].heat_level == "hot"
        assert rows[0].reached == 1
        assert rows[1].drop_off_count == 1
        assert rows[1].drop_off_rate == 100.0
        assert rows[2].view_count == 0
        assert rows[2].heat_level == "cold"
        assert rows[2].reached == 0

    def test_nothing_to_analyze(self):
        """No views and no sessions give no rows."""
        assert analyze_pages([], [], total_pages=3) == []


class TestSinglePageDocument:
    """Tests for the one-page edge case."""

    def test_single_page_never_drops_off(self, make_session):
        """The only page of a document is also the last, so its rate is 0."""
        sessions = [make_session(session_id="a", total_pages=1, max_page_reached=1)]
        (row,) = page_drop_off(sessions, total_pages=1)
        assert row.reached == 1
        assert row.drop_off_rate == 0
