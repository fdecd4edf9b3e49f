"""Tests for the time-windowed fuzzy matching algorithm.

These tests verify the pure business logic of matching partial events to
authoritative play history.
"""

import pytest

from loci.domain.matching import (
    find_best_match,
    levenshtein_distance,
    match_events,
    score_candidate,
    string_similarity,
)
from tests.fixtures.builders import make_partial, make_record


class TestStringSimilarity:
    """Test cases for Levenshtein-based similarity."""

    def test_classic_edit_distance(self):
        """Test the textbook kitten/sitting distance."""
        assert levenshtein_distance("kitten", "sitting") == 3

    def test_identical_strings(self):
        assert string_similarity("Mr. Brightside", "Mr. Brightside") == 1.0

    def test_case_insensitive(self):
        """Test that case differences don't affect similarity."""
        assert string_similarity("THE KILLERS", "the killers") == 1.0

    def test_single_edit_over_longest_length(self):
        """Test that one missing character costs 1/len of the longer string."""
        result = string_similarity("Neon Skyline", "Neon Skylines")
        assert result == pytest.approx(12 / 13)

    def test_empty_strings_do_not_match(self):
        assert string_similarity("", "") == 0.0
        assert string_similarity("", "abc") == 0.0


class TestFindBestMatch:
    """Test cases for selecting the best history record."""

    def test_misspelled_title_matches_within_window(self):
        """Test the Neon Skyline / Neon Skylines example."""
        partial = make_partial("Neon Skyline", "The Killers", seconds=1000)
        record = make_record("Neon Skylines", "The Killers", seconds=1010)

        result = find_best_match(partial, [record], window_seconds=180, threshold=0.8)

        assert result is record
        assert result.track.name == "Neon Skylines"
        evidence = score_candidate(partial, record)
        assert evidence.title_similarity == pytest.approx(0.923, abs=1e-3)
        assert evidence.artist_similarity == 1.0
        assert evidence.score == pytest.approx(0.946, abs=1e-3)

    def test_candidate_exactly_at_window_is_included(self):
        partial = make_partial("Halo", "Beyonce", seconds=1000)
        record = make_record("Halo", "Beyonce", seconds=1180)

        assert find_best_match(partial, [record], window_seconds=180) is record

    def test_candidate_one_second_past_window_is_excluded(self):
        partial = make_partial("Halo", "Beyonce", seconds=1000)
        record = make_record("Halo", "Beyonce", seconds=1181)

        assert find_best_match(partial, [record], window_seconds=180) is None

    def test_window_is_symmetric(self):
        """Test that records played before the partial count the same way."""
        partial = make_partial("Halo", "Beyonce", seconds=1000)
        inside = make_record("Halo", "Beyonce", seconds=820)
        outside = make_record("Halo", "Beyonce", seconds=819)

        assert find_best_match(partial, [inside], window_seconds=180) is inside
        assert find_best_match(partial, [outside], window_seconds=180) is None

    def test_score_exactly_at_threshold_is_rejected(self):
        """Test that the threshold is exclusive: 0.7 * 1.0 + 0.3 * (1/3) == 0.8."""
        partial = make_partial("Halo", "abc", seconds=1000)
        record = make_record("Halo", "axy", seconds=1000)

        assert score_candidate(partial, record).score == 0.8
        assert find_best_match(partial, [record], threshold=0.8) is None

    def test_score_just_above_threshold_is_accepted(self):
        """Test 0.7 * 1.0 + 0.3 * (2/3) == 0.9 passes."""
        partial = make_partial("Halo", "abc", seconds=1000)
        record = make_record("Halo", "abx", seconds=1000)

        assert score_candidate(partial, record).score == 0.9
        assert find_best_match(partial, [record], threshold=0.8) is record

    def test_unrelated_track_is_rejected(self):
        partial = make_partial("Paranoid Android", "Radiohead", seconds=1000)
        record = make_record("Yesterday", "The Beatles", seconds=1005)

        assert find_best_match(partial, [record]) is None

    def test_highest_score_wins_over_closer_time(self):
        partial = make_partial("Neon Skylines", "The Killers", seconds=1000)
        exact_but_later = make_record("Neon Skylines", "The Killers", seconds=1100, track_id="a")
        close_but_misspelled = make_record("Neon Skylinez", "The Killers", seconds=1001, track_id="b")

        result = find_best_match(partial, [close_but_misspelled, exact_but_later])

        assert result is exact_but_later

    def test_tie_broken_by_closest_played_at(self):
        partial = make_partial("Halo", "Beyonce", seconds=1000)
        far = make_record("Halo", "Beyonce", seconds=1030, track_id="far")
        near = make_record("Halo", "Beyonce", seconds=990, track_id="near")

        assert find_best_match(partial, [far, near]) is near

    def test_full_tie_keeps_first_candidate(self):
        partial = make_partial("Halo", "Beyonce", seconds=1000)
        first = make_record("Halo", "Beyonce", seconds=1010, track_id="first")
        second = make_record("Halo", "Beyonce", seconds=990, track_id="second")

        assert find_best_match(partial, [first, second]) is first

    def test_no_candidates(self):
        assert find_best_match(make_partial(), []) is None

    def test_deterministic(self):
        """Test that identical arguments always give identical results."""
        partial = make_partial("Neon Skyline", "The Killers", seconds=1000)
        candidates = [
            make_record("Neon Skylines", "The Killers", seconds=1010, track_id="a"),
            make_record("Neon Skyline", "Killers", seconds=1020, track_id="b"),
            make_record("Dustland", "The Killers", seconds=1005, track_id="c"),
        ]

        first = find_best_match(partial, candidates)
        second = find_best_match(partial, candidates)

        assert first is second
        assert score_candidate(partial, candidates[0]) == score_candidate(
            partial, candidates[0]
        )


class TestMatchEvents:
    """Test cases for bulk matching."""

    def test_keys_results_by_partial_id(self):
        matched = make_partial("Halo", "Beyonce", seconds=1000, event_id="p1")
        unmatched = make_partial("Creep", "Radiohead", seconds=5000, event_id="p2")
        record = make_record("Halo", "Beyonce", seconds=1020)

        result = match_events([matched, unmatched], [record])

        assert result == {"p1": record}

    def test_same_record_can_explain_two_partials(self):
        first = make_partial("Halo", "Beyonce", seconds=1000, event_id="p1")
        repeat = make_partial("Halo", "Beyonce", seconds=1060, event_id="p2")
        record = make_record("Halo", "Beyonce", seconds=1030)

        result = match_events([first, repeat], [record])

        assert result == {"p1": record, "p2": record}

    def test_empty_history(self):
        assert match_events([make_partial()], []) == {}

    def test_evidence_as_dict(self):
        partial = make_partial("Neon Skyline", "The Killers", seconds=1000)
        record = make_record("Neon Skylines", "The Killers", seconds=1010)

        evidence = score_candidate(partial, record).as_dict()

        assert evidence["artist_similarity"] == 1.0
        assert evidence["time_offset_seconds"] == 10.0
