"""
Error taxonomy for the search pipeline.

Only configuration, validation and upstream-unreachable errors leave the core;
per-call indexer failures are absorbed by the aggregation engine.
"""


class TorwatchError(Exception):
    """Base class; `status_code` is the HTTP-equivalent status for callers."""

    status_code = 500


class ConfigurationError(TorwatchError):
    """Required upstream endpoint or credentials are missing."""

    status_code = 500


class QueryValidationError(TorwatchError):
    """Request cannot be served as given (missing title, empty query text)."""

    status_code = 400


class UpstreamUnavailableError(TorwatchError):
    """The indexer aggregator itself could not be reached."""

    status_code = 502


class IndexerRequestError(TorwatchError):
    """One indexer call answered with a non-2xx status."""

    status_code = 502

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.status = status


class MalformedResponseError(TorwatchError):
    """One indexer call answered with a body that could not be parsed."""

    status_code = 502
