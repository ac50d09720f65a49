"""Models package for the MeetsMatch discovery service."""

from discovery.models.interest import Decision, InterestEdge
from discovery.models.match import (
    ConversationChannel,
    Match,
    MatchCreated,
    ParticipantSnapshot,
    SwipeResult,
    canonical_pair,
    match_id_for,
)
from discovery.models.profile import Candidate, FeedFilters, Location, Profile
from discovery.models.quota import UNLIMITED, QuotaDecision, QuotaRecord

__all__ = [
    "Candidate",
    "ConversationChannel",
    "Decision",
    "FeedFilters",
    "InterestEdge",
    "Location",
    "Match",
    "MatchCreated",
    "ParticipantSnapshot",
    "Profile",
    "QuotaDecision",
    "QuotaRecord",
    "SwipeResult",
    "UNLIMITED",
    "canonical_pair",
    "match_id_for",
]
