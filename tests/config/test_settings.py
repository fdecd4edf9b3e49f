"""Tests for settings defaults, flat key mapping and flat-key config access."""

from unittest.mock import patch

from loci.config import Settings, get_config, settings


class TestSettingsDefaults:
    def test_enrichment_defaults(self):
        config = Settings(_env_file=None)

        assert config.enrichment.batch_size == 50
        assert config.enrichment.batch_interval_seconds == 5.0
        assert config.enrichment.match_window_seconds == 180.0
        assert config.enrichment.match_threshold == 0.8
        assert config.enrichment.reconcile_timeout_seconds == 120.0

    def test_cache_and_api_defaults(self):
        config = Settings(_env_file=None)

        assert config.cache.max_entries == 5000
        assert config.cache.ttl_seconds is None
        assert config.api.spotify_batch_size == 50
        assert config.api.spotify_history_limit == 50


class TestFlatKeys:
    def test_flat_keys_map_to_groups(self):
        config = Settings(
            _env_file=None,
            enrichment_batch_size=10,
            cache_ttl_seconds=600,
            spotify_client_id="abc",
            spotify_market="GB",
        )

        assert config.enrichment.batch_size == 10
        assert config.cache.ttl_seconds == 600
        assert config.credentials.spotify_client_id == "abc"
        assert config.api.spotify_market == "GB"

    def test_flat_keys_merge_with_nested_values(self):
        config = Settings(
            _env_file=None,
            enrichment={"match_threshold": 0.9},
            enrichment_batch_size=10,
        )

        assert config.enrichment.match_threshold == 0.9
        assert config.enrichment.batch_size == 10


class TestGetConfig:
    def test_reads_live_settings(self):
        with patch.object(settings.enrichment, "batch_size", 7):
            assert get_config("ENRICHMENT_BATCH_SIZE") == 7

    def test_unknown_key_returns_default(self):
        assert get_config("NOT_A_SETTING", "fallback") == "fallback"

    def test_every_flat_key_resolves(self):
        from loci.config.settings import _FLAT_KEY_MAP

        missing = object()
        for key in _FLAT_KEY_MAP:
            assert get_config(key, missing) is not missing
