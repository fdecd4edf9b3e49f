"""Application services."""

from .enrichment_engine import EnrichmentEngine

__all__ = ["EnrichmentEngine"]
