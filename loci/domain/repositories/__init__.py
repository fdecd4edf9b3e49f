"""Storage contracts the engine depends on."""

from .interfaces import CatalogClientProtocol, TrackCacheProtocol

__all__ = ["CatalogClientProtocol", "TrackCacheProtocol"]
