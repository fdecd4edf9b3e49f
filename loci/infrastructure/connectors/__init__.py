"""Catalog service connectors."""

from .spotify import (
    SpotifyCatalogClient,
    convert_recent_item,
    convert_spotify_track,
    parse_spotify_timestamp,
)

__all__ = [
    "SpotifyCatalogClient",
    "convert_recent_item",
    "convert_spotify_track",
    "parse_spotify_timestamp",
]
