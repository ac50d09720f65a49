"""Utility package for the MeetsMatch discovery service."""

from discovery.utils.errors import (
    CandidateStoreUnavailableError,
    ConfigurationError,
    DatabaseError,
    DiscoveryError,
    LedgerWriteFailedError,
    MatchCreationConflict,
    NotFoundError,
    Outcome,
    QuotaExceededError,
    ValidationError,
    outcome_for,
)
from discovery.utils.geo import distance_between, haversine_distance
from discovery.utils.logging import configure_logging, get_logger, log_error

__all__ = [
    "CandidateStoreUnavailableError",
    "ConfigurationError",
    "DatabaseError",
    "DiscoveryError",
    "LedgerWriteFailedError",
    "MatchCreationConflict",
    "NotFoundError",
    "Outcome",
    "QuotaExceededError",
    "ValidationError",
    "configure_logging",
    "distance_between",
    "get_logger",
    "haversine_distance",
    "log_error",
    "outcome_for",
]
