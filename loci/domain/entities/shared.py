"""Shared utilities and helper functions for domain entities.

Pure utility functions with zero external dependencies.
"""

from datetime import UTC, datetime


def to_utc(dt: datetime) -> datetime:
    """Ensure datetime is timezone-aware; naive values are taken as UTC."""
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def seconds_between(first: datetime, second: datetime) -> float:
    """Absolute distance between two instants in seconds."""
    return abs((to_utc(first) - to_utc(second)).total_seconds())
