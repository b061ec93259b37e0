"""
Exception hierarchy.

Only ValidationError is expected to reach callers; the query orchestrator
turns everything raised inside a query into a failed QueryResult.
"""


class GeoveilError(Exception):
    """Base class for all package errors."""


class ValidationError(GeoveilError, ValueError):
    """Coordinates, radius or POI data failed validation."""


class TokenExpiredError(GeoveilError):
    """A query token was evaluated after its expiry time."""

    def __init__(self, expires_at: int, now_ms: int):
        super().__init__(f"Query token expired at {expires_at} (now {now_ms})")
        self.expires_at = expires_at
        self.now_ms = now_ms


class QueryExecutionError(GeoveilError):
    """Unexpected failure while executing a range query."""
