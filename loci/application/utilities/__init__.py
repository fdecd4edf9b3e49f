"""Batching utilities for the pending-enrichment queue."""

from .batching import BatchHandler, BatchScheduler, PendingEnrichment, PendingQueue

__all__ = ["BatchHandler", "BatchScheduler", "PendingEnrichment", "PendingQueue"]
