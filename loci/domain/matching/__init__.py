"""Time-windowed fuzzy matching of partial events against play history."""

from .algorithms import (
    MATCH_CONFIG,
    find_best_match,
    levenshtein_distance,
    match_events,
    score_candidate,
    string_similarity,
)
from .types import MatchScore

__all__ = [
    "MATCH_CONFIG",
    "MatchScore",
    "find_best_match",
    "levenshtein_distance",
    "match_events",
    "score_candidate",
    "string_similarity",
]
