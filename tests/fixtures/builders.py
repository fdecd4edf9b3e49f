"""Builders for listening events and catalog tracks used across test layers."""

from datetime import UTC, datetime, timedelta

from loci.domain.entities import (
    AuthoritativePlayRecord,
    CanonicalTrack,
    PartialListeningEvent,
)

BASE_TIME = datetime(2025, 3, 14, 18, 0, 0, tzinfo=UTC)


def at(seconds: float) -> datetime:
    """BASE_TIME shifted by ``seconds``."""
    return BASE_TIME + timedelta(seconds=seconds)


def make_partial(
    track_name: str = "Neon Skyline",
    artist_name: str = "The Killers",
    seconds: float = 1000,
    event_id: str | None = None,
    **overrides,
) -> PartialListeningEvent:
    fields = {
        "timestamp": at(seconds),
        "track_name": track_name,
        "artist_name": artist_name,
        "latitude": 51.5072,
        "longitude": -0.1276,
        "location_label": "British Library",
        "album_name": None,
        **overrides,
    }
    if event_id is not None:
        fields["id"] = event_id
    return PartialListeningEvent(**fields)


def make_track(
    track_id: str = "4uLU6hMCjMI75M1A2tKUQC",
    name: str = "Neon Skylines",
    artist: str = "The Killers",
    **overrides,
) -> CanonicalTrack:
    fields = {
        "id": track_id,
        "name": name,
        "artist": artist,
        "album": "Pressure Machine",
        "genre": "alternative rock",
        "duration_ms": 214000,
        "popularity": 71,
        "image_url": "https://i.scdn.co/image/abc",
        **overrides,
    }
    return CanonicalTrack(**fields)


def make_record(
    name: str = "Neon Skylines",
    artist: str = "The Killers",
    seconds: float = 1010,
    track_id: str | None = None,
) -> AuthoritativePlayRecord:
    track = make_track(
        track_id=track_id or f"sp-{name.lower().replace(' ', '-')}",
        name=name,
        artist=artist,
        genre=None,
    )
    return AuthoritativePlayRecord(track=track, played_at=at(seconds))
