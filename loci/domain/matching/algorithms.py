"""Pure algorithms for matching partial events against authoritative play history.

These functions have no I/O and no shared state. Given identical inputs they
always return identical outputs.
"""

from collections.abc import Iterable, Sequence

from rapidfuzz.distance import Levenshtein

from loci.domain.entities import (
    AuthoritativePlayRecord,
    PartialListeningEvent,
    seconds_between,
)

from .types import MatchScore

MATCH_CONFIG = {
    "title_weight": 0.7,
    "artist_weight": 0.3,
    # Candidates must score strictly above this
    "threshold": 0.8,
    # Symmetric, inclusive window around the partial's timestamp
    "window_seconds": 180.0,
    "score_precision": 6,
}


def levenshtein_distance(first: str, second: str) -> int:
    """Classic edit distance with unit insert, delete and substitute costs."""
    return Levenshtein.distance(first, second)


def string_similarity(first: str, second: str) -> float:
    """Case-insensitive ``1 - distance / max_len`` similarity in [0, 1].

    Two empty strings compare as 0.0: nothing was captured, so nothing matched.
    """
    first, second = first.lower(), second.lower()
    longest = max(len(first), len(second))
    if longest == 0:
        return 0.0
    return 1.0 - levenshtein_distance(first, second) / longest


def score_candidate(
    partial: PartialListeningEvent,
    candidate: AuthoritativePlayRecord,
) -> MatchScore:
    """Weighted title/artist similarity for a single candidate."""
    title_similarity = string_similarity(partial.track_name, candidate.name)
    artist_similarity = string_similarity(partial.artist_name, candidate.artist)
    score = round(
        MATCH_CONFIG["title_weight"] * title_similarity
        + MATCH_CONFIG["artist_weight"] * artist_similarity,
        MATCH_CONFIG["score_precision"],
    )
    return MatchScore(
        title_similarity=title_similarity,
        artist_similarity=artist_similarity,
        score=score,
        time_offset_seconds=seconds_between(candidate.played_at, partial.timestamp),
    )


def find_best_match(
    partial: PartialListeningEvent,
    candidates: Iterable[AuthoritativePlayRecord],
    window_seconds: float = MATCH_CONFIG["window_seconds"],
    threshold: float = MATCH_CONFIG["threshold"],
) -> AuthoritativePlayRecord | None:
    """Pick the history record that best explains a partial event.

    1. Keep candidates played within ``window_seconds`` of the partial (inclusive).
    2. Score each as 0.7 * title similarity + 0.3 * artist similarity.
    3. Drop scores at or below ``threshold``.
    4. Highest score wins; ties go to the smallest time offset, then to the
       earliest candidate in input order.

    Returns:
        The winning record, or None when nothing survives.
    """
    best: tuple[float, float, int] | None = None
    best_candidate: AuthoritativePlayRecord | None = None

    for position, candidate in enumerate(candidates):
        offset = seconds_between(candidate.played_at, partial.timestamp)
        if offset > window_seconds:
            continue

        evidence = score_candidate(partial, candidate)
        if evidence.score <= threshold:
            continue

        # Lower sort key wins
        key = (-evidence.score, offset, position)
        if best is None or key < best:
            best = key
            best_candidate = candidate

    return best_candidate


def match_events(
    partials: Sequence[PartialListeningEvent],
    candidates: Sequence[AuthoritativePlayRecord],
    window_seconds: float = MATCH_CONFIG["window_seconds"],
    threshold: float = MATCH_CONFIG["threshold"],
) -> dict[str, AuthoritativePlayRecord]:
    """Bulk form of ``find_best_match`` keyed by partial event id.

    Partials without a surviving candidate are absent from the result. A
    history record may explain more than one partial (repeat plays captured
    twice on device).
    """
    matches: dict[str, AuthoritativePlayRecord] = {}
    if not candidates:
        return matches

    for partial in partials:
        match = find_best_match(partial, candidates, window_seconds, threshold)
        if match is not None:
            matches[partial.id] = match
    return matches
