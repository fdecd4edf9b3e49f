"""Pure domain types for time-windowed fuzzy matching."""

from typing import Any

from attrs import define


@define(frozen=True, slots=True)
class MatchScore:
    """Evidence behind one candidate's score against a partial event.

    ``as_dict`` gives the rounded form the engine logs for each history match.
    """

    title_similarity: float
    artist_similarity: float
    score: float
    time_offset_seconds: float

    def as_dict(self) -> dict[str, Any]:
        return {
            "title_similarity": round(self.title_similarity, 2),
            "artist_similarity": round(self.artist_similarity, 2),
            "score": round(self.score, 4),
            "time_offset_seconds": round(self.time_offset_seconds, 1),
        }
