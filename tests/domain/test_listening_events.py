"""Tests for listening event entities and their factories."""

from datetime import UTC, datetime

import attrs
import pytest

from loci.domain.entities import (
    EnrichmentSource,
    PartialListeningEvent,
    SessionMode,
    create_enriched_event,
    create_fallback_event,
)
from tests.fixtures.builders import make_partial, make_track


class TestPartialListeningEvent:
    def test_naive_timestamp_is_coerced_to_utc(self):
        event = PartialListeningEvent(
            timestamp=datetime(2025, 1, 1, 12, 0),
            track_name="Halo",
            artist_name="Beyonce",
        )
        assert event.timestamp.tzinfo is UTC

    def test_generates_unique_ids(self):
        first = PartialListeningEvent(
            timestamp=datetime.now(UTC), track_name="a", artist_name="b"
        )
        second = PartialListeningEvent(
            timestamp=datetime.now(UTC), track_name="a", artist_name="b"
        )
        assert first.id != second.id

    def test_is_immutable(self):
        event = make_partial()
        with pytest.raises(attrs.exceptions.FrozenInstanceError):
            event.track_name = "changed"


class TestTerminalEvents:
    def test_enriched_event_takes_names_from_canonical_track(self):
        partial = make_partial("Neon Skyline", "the killers", event_id="evt-1")
        track = make_track()

        event = create_enriched_event(
            partial, track, SessionMode.ACTIVE, EnrichmentSource.HISTORY
        )

        assert event.event_id == "evt-1"
        assert event.track_name == "Neon Skylines"
        assert event.artist_name == "The Killers"
        assert event.album_name == "Pressure Machine"
        assert event.genre == "alternative rock"
        assert event.track_id == track.id
        assert event.timestamp == partial.timestamp
        assert event.location_label == "British Library"
        assert event.session_mode is SessionMode.ACTIVE
        assert event.source is EnrichmentSource.HISTORY
        assert not event.is_fallback

    def test_fallback_event_preserves_raw_fields(self):
        partial = make_partial(
            "neon skyline (live)", "killers", event_id="evt-2", album_name="Bootleg"
        )

        event = create_fallback_event(partial, SessionMode.PASSIVE)

        assert event.track_id == "local:evt-2"
        assert event.track_name == "neon skyline (live)"
        assert event.artist_name == "killers"
        assert event.album_name == "Bootleg"
        assert event.genre is None
        assert event.latitude == partial.latitude
        assert event.session_mode is SessionMode.PASSIVE
        assert event.source is EnrichmentSource.FALLBACK
        assert event.is_fallback

    def test_enriched_and_fallback_share_shape(self):
        partial = make_partial()
        enriched = create_enriched_event(
            partial, make_track(), SessionMode.UNKNOWN, EnrichmentSource.BATCH
        )
        fallback = create_fallback_event(partial, SessionMode.UNKNOWN)

        assert type(enriched) is type(fallback)
        assert attrs.fields_dict(type(enriched)).keys() == attrs.asdict(fallback).keys()
