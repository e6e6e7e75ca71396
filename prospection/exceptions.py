"""Exceptions raised by the prospection pipeline.

Only ``InputValidationError`` is meant to reach callers. Source errors are
caught at the adapter boundary and turned into empty results.
"""


class ProspectionError(Exception):
    """Base exception for the prospection package."""
    pass


class InputValidationError(ProspectionError, ValueError):
    """Malformed identifier or missing search criteria."""
    pass


class SourceError(ProspectionError):
    """Base exception for external source failures."""

    def __init__(self, message: str, source: str = ""):
        super().__init__(message)
        self.source = source


class SourceUnavailableError(SourceError):
    """Network failure, timeout or server error from a source."""
    pass


class TransientSourceError(SourceUnavailableError):
    """Failure worth retrying (timeout, connection reset, 5xx)."""
    pass


class QuotaExceededError(SourceError):
    """Source answered with a throttling response."""
    pass


class AuthenticationError(SourceError):
    """Missing or rejected credentials."""
    pass
