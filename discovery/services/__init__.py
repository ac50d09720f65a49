"""Services package for the MeetsMatch discovery service."""

from discovery.services.block_service import BlockList
from discovery.services.discovery_service import DiscoveryService, build_discovery_service
from discovery.services.ledger_service import InterestLedger
from discovery.services.match_service import MatchMaterializer
from discovery.services.notification_service import LoggingNotificationDispatcher, MatchEventBus, MatchNotifier
from discovery.services.profile_store import SqlProfileStore
from discovery.services.quota_service import QuotaTracker
from discovery.services.ranking_service import calculate_compatibility, rank
from discovery.services.tier_service import PlanTierResolver

__all__ = [
    "BlockList",
    "DiscoveryService",
    "InterestLedger",
    "LoggingNotificationDispatcher",
    "MatchEventBus",
    "MatchMaterializer",
    "MatchNotifier",
    "PlanTierResolver",
    "QuotaTracker",
    "SqlProfileStore",
    "build_discovery_service",
    "calculate_compatibility",
    "rank",
]
