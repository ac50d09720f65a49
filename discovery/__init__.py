"""MeetsMatch discovery service: candidate feeds, swipes, quotas and matches."""

__version__ = "1.0.0"
