"""Exception taxonomy.

Upstream data problems, configuration mistakes and malformed bucket
definitions each get their own type so callers can tell an unreachable
provider from a bug in their own input.
"""

from __future__ import annotations


class ClimateEdgeError(Exception):
    """Base exception for all climate-edge errors."""


class UpstreamDataError(ClimateEdgeError):
    """A third-party data provider failed or returned unusable data."""


class FetchError(UpstreamDataError):
    """Raised when an API fetch fails after all retries."""


class ParseError(UpstreamDataError):
    """Raised when an API response has unexpected structure."""


class UnsupportedMetricError(ClimateEdgeError, ValueError):
    """Raised for a metric key with no registered profile."""

    def __init__(self, metric: object) -> None:
        self.metric = metric
        super().__init__(f"Unsupported metric: {metric!r}")


class BucketDefinitionError(ClimateEdgeError, ValueError):
    """Raised when a bucket's bounds do not match its kind."""


class InsufficientDataError(ClimateEdgeError):
    """Not enough historical data to build the requested distribution."""
