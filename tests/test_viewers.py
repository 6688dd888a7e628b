"""Tests for viewer grouping and viewer-level aggregation."""

from datetime import timedelta
from itertools import permutations

import pytest

from linklens.analytics import (
    ViewerTotals,
    aggregate_viewer_score,
    classify_session,
    group_by_viewer,
    summarize_viewers,
    viewer_key,
)


class TestViewerKey:
    """Tests for the viewer grouping key."""

    def test_email_is_case_insensitive(self, make_session):
        """Emails differing only in case and whitespace are the same viewer."""
        a = make_session(viewer_email="Ana@Acme.com")
        b = make_session(viewer_email=" ana@acme.com ", ip_address="10.0.0.9")
        assert viewer_key(a) == viewer_key(b) == "deck|email:ana@acme.com"

    def test_precedence(self, make_session):
        """GIVEN sessions with progressively less identity
        WHEN keyed
        SHOULD fall back from email to IP to session token."""
        assert viewer_key(make_session(ip_address="10.0.0.1")) == "deck|ip:10.0.0.1"
        assert viewer_key(make_session(session_id="tok")) == "deck|session:tok"

    def test_anonymous_session_is_stable_singleton(self, make_session):
        """A session with no identity keys to itself, the same way every call."""
        a = make_session(session_id=None, total_duration_seconds=5)
        b = make_session(session_id=None, total_duration_seconds=6)
        assert viewer_key(a) == viewer_key(a)
        assert viewer_key(a).startswith("deck|anon:")
        assert viewer_key(a) != viewer_key(b)

    def test_identical_keyless_sessions_stay_separate_viewers(self, make_session):
        """GIVEN the same keyless record reported twice plus a different one
        WHEN grouped and summarized
        SHOULD count three viewers, one session each."""
        twin = make_session(session_id=None, total_duration_seconds=40)
        other = make_session(session_id=None, total_duration_seconds=41)
        sessions = [twin, other, twin.model_copy()]

        groups = group_by_viewer(sessions)

        assert viewer_key(sessions[0]) == viewer_key(sessions[2])
        assert len(groups) == 3
        assert all(len(group) == 1 for group in groups.values())
        assert f"{viewer_key(twin)}#2" in groups
        assert len(summarize_viewers(sessions)) == 3

    def test_scope(self, make_session):
        """The same email on two links is two viewers per link, one per account."""
        a = make_session(link_id="deck", viewer_email="ana@acme.com")
        b = make_session(link_id="video", viewer_email="ana@acme.com")
        assert viewer_key(a) != viewer_key(b)
        assert viewer_key(a, "account") == viewer_key(b, "account") == "email:ana@acme.com"

    def test_group_by_viewer_sorted(self, scenario_sessions):
        """Groups come back in key order, sessions in input order."""
        groups = group_by_viewer(scenario_sessions)
        assert list(groups) == ["deck|email:ana@acme.com", "deck|email:ben@globex.com"]
        assert [s.session_id for s in groups["deck|email:ana@acme.com"]] == ["s-1", "s-3"]


class TestAggregateViewerScore:
    """Tests for folding session scores into one viewer score."""

    @pytest.mark.parametrize(
        ("scores", "expected"),
        [
            ([], 0),
            ([55], 55),
            ([80, 20], 80),
            ([60, 60, 60], 80),
            ([95, 95], 100),
            ([40, 40, 40, 40, 40], 70),
        ],
    )
    def test_best_or_mean_plus_bonus(self, scores, expected):
        """The larger of the best session and the mean plus a capped frequency bonus."""
        assert aggregate_viewer_score(scores) == expected

    def test_order_independent(self):
        """Every permutation of the same scores aggregates identically."""
        results = {aggregate_viewer_score(p) for p in permutations([12, 47, 33, 90])}
        assert len(results) == 1


class TestSummarizeViewers:
    """Tests for per-viewer summaries."""

    def test_scenario(self, scenario_sessions):
        """GIVEN two visits by one viewer and a short visit by another
        WHEN summarized
        SHOULD rank the repeat viewer first as a hot lead."""
        ana, ben = summarize_viewers(scenario_sessions)

        assert ana.viewer_email == "ana@acme.com"
        assert ana.sessions == 2
        assert ana.best_score == 80
        assert ana.avg_engagement == 80
        assert ana.aggregated_score == 90
        assert ana.intent == "hot"
        assert ana.is_hot_lead is True
        assert ana.downloaded is True
        assert ana.total_time_seconds == 330
        assert ana.first_seen_at < ana.last_seen_at

        assert ben.aggregated_score == 8
        assert ben.intent == "cold"
        assert ben.is_hot_lead is False

    def test_input_order_does_not_matter(self, scenario_sessions):
        """Summaries are identical for every ordering of the sessions."""
        expected = summarize_viewers(scenario_sessions)
        for ordering in permutations(scenario_sessions):
            assert summarize_viewers(list(ordering)) == expected

    def test_repeat_visits_make_a_hot_lead(self, make_session, now):
        """Three low-scoring visits by one viewer still qualify as a hot lead."""
        sessions = [
            make_session(
                session_id=f"s-{i}",
                ip_address="10.0.0.1",
                started_at=now - timedelta(hours=i),
                total_duration_seconds=12,
            )
            for i in range(3)
        ]
        (viewer,) = summarize_viewers(sessions)
        assert viewer.sessions == 3
        assert viewer.is_hot_lead is True

    def test_empty(self):
        """No sessions, no viewers."""
        assert summarize_viewers([]) == []


class TestViewerTotals:
    """Tests for incremental viewer totals."""

    def _incremental(self, sessions):
        totals = ViewerTotals()
        for session in sessions:
            scored = classify_session(session)
            totals = totals.add(
                scored.score, session.total_duration_seconds, scored.is_hot_lead, session.started_at
            )
        return totals

    def test_incremental_matches_recompute(self, scenario_sessions):
        """GIVEN a viewer's full history
        WHEN folded one session at a time
        SHOULD equal a full recompute for every arrival order."""
        history = [s for s in scenario_sessions if s.viewer_email == "ana@acme.com"]
        expected = ViewerTotals.from_sessions(history)
        assert expected.view_count == 2
        assert expected.avg_engagement == 80
        for ordering in permutations(history):
            assert self._incremental(ordering) == expected

    def test_merge_is_commutative_and_associative(self, scenario_sessions):
        """Totals merge to the same result whichever way they are combined."""
        a, b, c = (ViewerTotals.from_sessions([s]) for s in scenario_sessions)
        assert a.merge(b) == b.merge(a)
        assert a.merge(b).merge(c) == a.merge(b.merge(c))
        assert a.merge(ViewerTotals()) == a

    def test_empty_totals(self):
        """Empty totals have no mean and no last-seen time."""
        totals = ViewerTotals.from_sessions([])
        assert totals.view_count == 0
        assert totals.avg_engagement == 0
        assert totals.last_seen_at is None
