"""Tests for the per-session engagement scorer and hot-lead classifier."""

import logging

import pytest

from linklens.analytics import (
    ScoringConfig,
    VideoStats,
    classify_session,
    intent_for_score,
    is_hot_lead,
    refresh_cached_score,
    score_session,
    verify_cached_score,
)


class TestDocumentScoring:
    """Tests for documents and other paged content."""

    def test_empty_session_scores_zero(self, make_session):
        """A session with no dwell, no pages and no actions is cold at 0."""
        result = score_session(make_session())
        assert result.score == 0
        assert result.intent == "cold"

    def test_linear_duration_and_completion(self, make_session):
        """GIVEN 60s on a 10 page document reaching page 5
        WHEN scored
        SHOULD give half of each sub-score."""
        result = score_session(make_session(total_duration_seconds=60, max_page_reached=5))
        assert result.breakdown.duration == pytest.approx(15)
        assert result.breakdown.completion == pytest.approx(15)
        assert result.score == 30

    def test_full_read_with_download_is_hot(self, make_session):
        """GIVEN a full read past the dwell target with a download
        WHEN scored
        SHOULD cap duration and land at 80."""
        result = score_session(
            make_session(total_duration_seconds=200, max_page_reached=10, download_attempted=True)
        )
        assert result.score == 80
        assert result.intent == "hot"

    def test_every_signal_caps_at_100(self, make_session):
        """All four sub-scores at their maximum give exactly 100."""
        session = make_session(
            total_duration_seconds=5000,
            max_page_reached=10,
            download_attempted=True,
            is_return_visit=True,
        )
        assert score_session(session).score == 100

    def test_return_visit_count_alone_counts_as_return(self, make_session):
        """A positive prior-visit counter earns the return points without the flag."""
        result = score_session(make_session(return_visit_count=3))
        assert result.breakdown.return_visit == 20
        assert result.score == 20

    def test_unknown_page_count_gives_no_completion(self, make_session):
        """Completion is 0 when the page count is unknown."""
        result = score_session(make_session(total_pages=None, max_page_reached=7))
        assert result.breakdown.completion == 0

    def test_page_beyond_total_is_clamped(self, make_session, caplog):
        """GIVEN max page 15 on a 10 page document
        WHEN scored
        SHOULD clamp to full completion and log the adjustment."""
        with caplog.at_level(logging.WARNING, logger="linklens.analytics"):
            result = score_session(make_session(max_page_reached=15))
        assert result.breakdown.completion == 30
        assert "max_page_reached" in caplog.text

    def test_malformed_duration_is_sanitized(self, make_session, caplog):
        """NaN and negative durations contribute nothing and are logged."""
        with caplog.at_level(logging.WARNING, logger="linklens.analytics"):
            nan = score_session(make_session(total_duration_seconds=float("nan")))
            negative = score_session(make_session(total_duration_seconds=-30))
        assert nan.breakdown.duration == 0
        assert negative.breakdown.duration == 0
        assert "total_duration_seconds" in caplog.text

    def test_other_content_uses_document_rules(self, make_session):
        """Unpaged "other" content scores dwell and actions like a document."""
        session = make_session(content_type="other", total_pages=None, total_duration_seconds=120)
        assert score_session(session).score == 30

    def test_custom_config_changes_dwell_target(self, make_session):
        """A shorter dwell target saturates the duration sub-score earlier."""
        config = ScoringConfig(high_engagement_seconds=60)
        result = score_session(make_session(total_duration_seconds=60), config)
        assert result.breakdown.duration == 30


class TestVideoScoring:
    """Tests for video sessions."""

    def test_half_watched(self, make_session):
        """GIVEN 50s watched of a 100s video
        WHEN scored
        SHOULD give half duration and the 50% completion tier."""
        session = make_session(
            content_type="video",
            video=VideoStats(watch_time_seconds=50, video_duration_seconds=100),
        )
        result = score_session(session)
        assert result.breakdown.duration == pytest.approx(15)
        assert result.breakdown.completion == pytest.approx(15)
        assert result.score == 30

    def test_recorded_completion_percent_wins(self, make_session):
        """A recorded completion percent selects the tier, not the watch ratio."""
        session = make_session(
            content_type="video",
            video=VideoStats(
                watch_time_seconds=10,
                video_duration_seconds=100,
                video_completion_percent=80,
            ),
        )
        assert score_session(session).breakdown.completion == pytest.approx(22.5)

    def test_finished_gives_full_completion(self, make_session):
        """A finished video earns full completion regardless of the watch ratio."""
        session = make_session(
            content_type="video",
            video=VideoStats(watch_time_seconds=10, video_duration_seconds=100, finished=True),
        )
        result = score_session(session)
        assert result.breakdown.completion == 30
        assert result.score == 33

    def test_below_lowest_tier(self, make_session):
        """Under a quarter watched earns no completion points."""
        session = make_session(
            content_type="video",
            video=VideoStats(watch_time_seconds=20, video_duration_seconds=100),
        )
        assert score_session(session).breakdown.completion == 0

    def test_missing_video_length_falls_back_to_document_rules(self, make_session):
        """Without a usable video length the session scores like a document."""
        session = make_session(
            content_type="video",
            total_pages=None,
            total_duration_seconds=120,
            video=VideoStats(watch_time_seconds=120, video_duration_seconds=0),
        )
        result = score_session(session)
        assert result.breakdown.duration == 30
        assert result.breakdown.completion == 0


class TestTrackSiteScoring:
    """Tests for track-site links, where completion does not apply."""

    def test_duration_is_rescaled(self, make_session):
        """GIVEN 120s on a track-site link
        WHEN scored
        SHOULD redistribute the completion points over duration."""
        session = make_session(content_type="track-site", total_duration_seconds=120)
        result = score_session(session)
        assert result.breakdown.completion == 0
        assert result.score == 43

    def test_download_only(self, make_session):
        """A download alone is worth 20 * 100/70 points."""
        session = make_session(content_type="track-site", download_attempted=True)
        assert score_session(session).score == 29

    def test_every_signal_reaches_100(self, make_session):
        """Dwell, download and return visit together reach the full 100."""
        session = make_session(
            content_type="track-site",
            total_duration_seconds=300,
            download_attempted=True,
            is_return_visit=True,
        )
        assert score_session(session).score == 100

    def test_content_type_override(self, make_session):
        """The override wins over the session's own content type."""
        session = make_session(total_duration_seconds=120, max_page_reached=0)
        assert score_session(session).score == 30
        assert score_session(session, content_type="track-site").score == 43


class TestIntentAndHotLead:
    """Tests for intent thresholds and the hot-lead rule."""

    @pytest.mark.parametrize(
        ("score", "intent"),
        [(100, "hot"), (70, "hot"), (69, "warm"), (40, "warm"), (39, "cold"), (0, "cold")],
    )
    def test_intent_boundaries(self, score, intent):
        """Thresholds are inclusive at 70 and 40."""
        assert intent_for_score(score) == intent

    @pytest.mark.parametrize(
        ("score", "downloaded", "visits", "expected"),
        [
            (80, False, 0, True),
            (79, False, 0, False),
            (50, True, 0, True),
            (49, True, 0, False),
            (0, False, 2, True),
            (0, False, 1, False),
        ],
    )
    def test_hot_lead_rule(self, score, downloaded, visits, expected):
        """Hot on a high score, a download with a moderate score, or repeat visits."""
        assert is_hot_lead(score, downloaded, visits) is expected

    def test_classify_session(self, make_session):
        """GIVEN a full read with a download
        WHEN classified
        SHOULD carry the score, intent, lead flag and link-scoped viewer key."""
        session = make_session(
            viewer_email="Ana@Acme.com ",
            total_duration_seconds=200,
            max_page_reached=10,
            download_attempted=True,
        )
        result = classify_session(session)
        assert result.score == 80
        assert result.intent == "hot"
        assert result.is_hot_lead is True
        assert result.viewer_key == "deck|email:ana@acme.com"

    def test_classify_session_account_scope(self, make_session):
        """Account scope drops the link prefix from the viewer key."""
        result = classify_session(make_session(ip_address="10.0.0.1"), scope="account")
        assert result.viewer_key == "ip:10.0.0.1"


class TestCachedScore:
    """Tests for the cached score columns."""

    def test_missing_cache_does_not_verify(self, make_session):
        """A session without a cached score fails verification."""
        assert verify_cached_score(make_session(total_duration_seconds=60)) is False

    def test_refresh_then_verify(self, make_session):
        """GIVEN a stale cached score
        WHEN refreshed
        SHOULD match a fresh recompute and leave the stale copy untouched."""
        stale = make_session(total_duration_seconds=60, engagement_score=99, intent_signal="hot")
        fresh = refresh_cached_score(stale)
        assert fresh.engagement_score == 15
        assert fresh.intent_signal == "cold"
        assert verify_cached_score(fresh) is True
        assert stale.engagement_score == 99


class TestProperties:
    """Tests for bounds, monotonicity and the three-session walkthrough."""

    def test_monotonic_in_duration_completion_and_returns(self, make_session):
        """Raising any one signal never lowers the score."""
        for kind in ("document", "track-site", "other"):
            durations = [make_session(total_duration_seconds=d) for d in (0, 30, 90, 120, 600)]
            pages = [make_session(max_page_reached=p) for p in (0, 3, 7, 10)]
            returns = [make_session(return_visit_count=n) for n in (0, 1, 4)]
            for series in (durations, pages, returns):
                scores = [score_session(s, content_type=kind).score for s in series]
                assert scores == sorted(scores)
                assert all(0 <= s <= 100 for s in scores)

    def test_three_session_walkthrough(self, scenario_sessions):
        """GIVEN the full read, the skim and the return visit
        WHEN each is scored
        SHOULD give 80, 8 and 80 under the 30/30/20/20 weights."""
        scores = [score_session(s) for s in scenario_sessions]
        assert [s.score for s in scores] == [80, 8, 80]
        assert [s.intent for s in scores] == ["hot", "cold", "hot"]
