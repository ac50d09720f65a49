"""Custom exceptions for the MeetsMatch discovery service."""

from enum import Enum
from typing import Any, Dict, Optional


class Outcome(str, Enum):
    """Caller-visible outcome of a discovery request."""

    OK = "ok"
    NO_CANDIDATES = "no_candidates"
    QUOTA_EXCEEDED = "quota_exceeded"
    TRY_AGAIN = "try_again"


class DiscoveryError(Exception):
    """Base exception for all discovery errors."""

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the error with a message and optional details.

        Args:
            message (str): Error message describing what went wrong.
            status_code (int): HTTP status code associated with the error (default 500).
            details (Optional[Dict[str, Any]]): Additional context or debug information.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(DiscoveryError):
    """Raised when there's an issue with the application configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class DatabaseError(DiscoveryError):
    """Raised when there's an issue with the database operations."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class ValidationError(DiscoveryError):
    """Raised when data validation fails."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 400, details)


class NotFoundError(DiscoveryError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 404, details)


class QuotaExceededError(DiscoveryError):
    """Raised when a user has no interest actions left for the day.

    Terminal for the request: the caller should offer an upgrade, not retry.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 429, details)


class CandidateStoreUnavailableError(DiscoveryError):
    """Raised when the profile store cannot provide candidates. Transient."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 503, details)


class LedgerWriteFailedError(DiscoveryError):
    """Raised when a swipe decision could not be recorded. Transient.

    The swipe must be treated as not registered. Resubmitting is safe because
    recording a decision overwrites the previous one.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 503, details)


class MatchCreationConflict(DiscoveryError):
    """Raised internally when two requests create the same match concurrently."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 409, details)


def outcome_for(error: Exception) -> Outcome:
    """
    Map an exception to the outcome shown to the caller.

    Args:
        error (Exception): The exception raised by the discovery service.

    Returns:
        Outcome: ``QUOTA_EXCEEDED`` for exhausted quota, ``TRY_AGAIN`` for
        transient storage failures.

    Raises:
        Exception: `error` itself when it has no caller-visible outcome.
    """
    if isinstance(error, QuotaExceededError):
        return Outcome.QUOTA_EXCEEDED
    if isinstance(error, (CandidateStoreUnavailableError, LedgerWriteFailedError, DatabaseError)):
        return Outcome.TRY_AGAIN
    raise error
