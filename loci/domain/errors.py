"""Failure taxonomy for catalog lookups.

None of these ever reach callers of the enrichment engine. They exist so the
catalog client can tell its failure modes apart in logs before degrading the
event to the next stage of the fallback cascade.
"""


class CatalogError(Exception):
    """Base class for every failure raised while talking to the catalog."""


class NetworkFailure(CatalogError):
    """Transport error or non-success HTTP status from the catalog."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimited(NetworkFailure):
    """Catalog answered 429. Handled exactly like any other network failure."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status=429)
        self.retry_after = retry_after


class DecodeFailure(CatalogError):
    """Response payload did not have the expected shape."""


class NoMatchFound(CatalogError):
    """Search succeeded but returned no candidates."""
