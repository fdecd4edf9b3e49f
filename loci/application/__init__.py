"""Application layer: enrichment orchestration and batching."""
