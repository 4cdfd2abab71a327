"""
Exceptions raised while enriching import records
"""

from typing import Optional


class EnrichmentError(Exception):
    """
    Base class for all enrichment failures
    """


class MalformedRecordError(EnrichmentError):
    """
    Record has neither a name nor a set + collector number to look up
    """


class CardNotFoundError(EnrichmentError):
    """
    Card-data service has no record for the lookup (HTTP 404)
    """


class TransientServiceError(EnrichmentError):
    """
    Failure expected to succeed on retry (5xx, network blip)
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class RateLimitedError(TransientServiceError):
    """
    Service answered 429, optionally telling us how long to wait
    """

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message, status=429)
        self.retry_after = retry_after


class FatalServiceError(EnrichmentError):
    """
    Non-retryable client error or malformed response
    """

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status
