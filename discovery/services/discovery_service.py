"""Discovery orchestration: feeds, swipes, unmatching and blocking."""

from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Set
from zoneinfo import ZoneInfo

import sentry_sdk
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from discovery.config import settings
from discovery.custom_types import NotificationDispatcher, ProfileStore, TierResolver
from discovery.models.interest import Decision
from discovery.models.match import Match, MatchCreated, SwipeResult
from discovery.models.profile import Candidate, FeedFilters, Profile
from discovery.services.block_service import BlockList
from discovery.services.ledger_service import InterestLedger
from discovery.services.match_service import MatchMaterializer
from discovery.services.notification_service import LoggingNotificationDispatcher, MatchEventBus, MatchNotifier
from discovery.services.profile_store import SqlProfileStore
from discovery.services.quota_service import QuotaTracker
from discovery.services.ranking_service import is_blocked_pair, rank
from discovery.services.tier_service import PlanTierResolver
from discovery.utils.cache import delete_pattern, get_cache, set_cache
from discovery.utils.database import Database, SessionFactory
from discovery.utils.errors import (
    CandidateStoreUnavailableError,
    DiscoveryError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from discovery.utils.logging import get_logger

logger = get_logger(__name__)

# Cache keys
FEED_CACHE_KEY = "feed:{user_id}:{token}"
FEED_CACHE_PATTERN = "feed:{user_id}:*"

_feed_adapter = TypeAdapter(List[Candidate])


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DiscoveryService:
    """
    Composes the ledger, quota tracker, ranker and materializer.

    Every operation takes the acting user's ID explicitly. Swipes consume
    quota strictly before writing to the ledger, so a rejected swipe never
    leaves a decision behind.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        ledger: InterestLedger,
        quota: QuotaTracker,
        materializer: MatchMaterializer,
        tier_resolver: TierResolver,
        block_list: BlockList,
        notifier: Optional[MatchNotifier] = None,
        events: Optional[MatchEventBus] = None,
        batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utc_now,
        quota_timezone: Optional[str] = None,
    ) -> None:
        self.profile_store = profile_store
        self.ledger = ledger
        self.quota = quota
        self.materializer = materializer
        self.tier_resolver = tier_resolver
        self.block_list = block_list
        self.notifier = notifier
        self.events = events or MatchEventBus()
        self.batch_size = batch_size or settings.FEED_BATCH_SIZE
        self._clock = clock
        tz_name = quota_timezone or settings.QUOTA_TIMEZONE
        self._tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)

    def today(self) -> date:
        """Calendar day that quota is counted against."""
        return self._clock().astimezone(self._tz).date()

    def default_filters(self, requester: Profile) -> FeedFilters:
        """Filters from settings, seeded with the requester's own preferences."""
        return FeedFilters(
            max_distance_km=settings.DEFAULT_MAX_DISTANCE_KM,
            min_age=settings.DEFAULT_MIN_AGE,
            max_age=settings.DEFAULT_MAX_AGE,
            interested_in=set(requester.interested_in),
            looking_for=set(requester.looking_for),
        )

    # ------------------------------------------------------------------ #
    # Feed
    # ------------------------------------------------------------------ #

    def get_feed(self, requester_id: str, filters: Optional[FeedFilters] = None) -> List[Candidate]:
        """
        Build the ranked discovery feed for a user.

        Args:
            requester_id (str): User asking for candidates.
            filters (Optional[FeedFilters]): Feed filters, defaults when omitted.

        Returns:
            List[Candidate]: Ordered candidates. Empty means "no more
            candidates right now", not an error.

        Raises:
            NotFoundError: If the requester has no profile.
            CandidateStoreUnavailableError: If the profile store fails.
        """
        with sentry_sdk.start_span(op="feed.get", name=requester_id) as span:
            requester = self._load_profile(requester_id)
            filters = filters or self.default_filters(requester)
            excluded = self.ledger.list_decided_targets(requester_id) | self.block_list.list_blocked_pairs(requester_id)

            cache_key = FEED_CACHE_KEY.format(user_id=requester_id, token=filters.cache_token())
            cached = self._read_cached_feed(cache_key, requester, excluded)
            if cached is not None:
                span.set_data("source", "cache")
                return cached

            try:
                raw = self.profile_store.list_candidate_profiles(
                    excluding=excluded | {requester_id}, limit=self.batch_size
                )
            except Exception as e:
                logger.error("Candidate store unavailable", requester=requester_id, error=str(e))
                raise CandidateStoreUnavailableError(
                    "Could not load candidates", details={"requester": requester_id, "error": str(e)}
                ) from e

            feed = rank(requester, excluded, raw, filters, today=self.today())
            if feed:
                set_cache(cache_key, _feed_adapter.dump_json(feed).decode(), expiration=settings.FEED_CACHE_TTL)

            logger.info("Feed built", requester=requester_id, fetched=len(raw), returned=len(feed))
            span.set_data("source", "store")
            span.set_data("count", len(feed))
            return feed

    def _read_cached_feed(self, cache_key: str, requester: Profile, excluded: Set[str]) -> Optional[List[Candidate]]:
        """Cached feed minus candidates decided or blocked since it was stored."""
        payload = get_cache(cache_key)
        if not payload:
            return None
        try:
            feed = _feed_adapter.validate_json(payload)
        except PydanticValidationError as e:
            logger.warning("Discarding unreadable cached feed", key=cache_key, error=str(e))
            return None
        feed = [
            candidate
            for candidate in feed
            if candidate.id not in excluded and not is_blocked_pair(requester, candidate)
        ]
        return feed or None

    def _load_profile(self, user_id: str) -> Profile:
        try:
            return self.profile_store.get_profile(user_id)
        except NotFoundError:
            raise
        except Exception as e:
            raise CandidateStoreUnavailableError(
                "Could not load profile", details={"user_id": user_id, "error": str(e)}
            ) from e

    def invalidate_feed(self, user_id: str) -> None:
        delete_pattern(FEED_CACHE_PATTERN.format(user_id=user_id))

    # ------------------------------------------------------------------ #
    # Swipes
    # ------------------------------------------------------------------ #

    def submit_swipe(self, actor_id: str, target_id: str, decision: Decision | str) -> SwipeResult:
        """
        Record a swipe and create the match when it is reciprocated.

        Args:
            actor_id (str): User swiping.
            target_id (str): User being swiped on.
            decision (Decision | str): ``interested`` or ``passed``.

        Returns:
            SwipeResult: Whether a match exists now, the match, and the quota
            left today.

        Raises:
            ValidationError: For self-swipes or unknown decisions.
            QuotaExceededError: When no quota is left. Nothing is recorded.
            LedgerWriteFailedError: When the decision could not be stored. The
                quota slot is not refunded; the caller may resubmit.
        """
        try:
            decision = Decision(decision)
        except ValueError as e:
            raise ValidationError(f"Unknown decision: {decision}") from e
        if actor_id == target_id:
            raise ValidationError("Users cannot swipe on themselves", details={"user_id": actor_id})

        with sentry_sdk.start_span(op="swipe.submit", name=f"{actor_id} -> {target_id}") as span:
            day = self.today()

            # Decisions are final once the pair has matched
            existing = self.materializer.get_match_for_pair(actor_id, target_id)
            if existing is not None:
                remaining = self.quota.get_remaining(actor_id, day, self.tier_resolver.get_swipe_ceiling(actor_id))
                logger.info("Swipe on an existing match ignored", actor=actor_id, target=target_id, match_id=existing.id)
                return SwipeResult(is_match=True, match=existing, remaining=remaining)

            ceiling = self.tier_resolver.get_swipe_ceiling(actor_id)
            quota = self.quota.try_consume(actor_id, day, ceiling)
            if not quota.allowed:
                span.set_data("outcome", "quota_exceeded")
                logger.info("Swipe rejected, quota exceeded", actor=actor_id, ceiling=ceiling)
                raise QuotaExceededError(
                    "Daily swipe limit reached",
                    details={"user_id": actor_id, "ceiling": ceiling, "day": day.isoformat()},
                )

            self.ledger.record_decision(actor_id, target_id, decision)
            self.invalidate_feed(actor_id)

            if decision == Decision.PASSED or not self.ledger.has_reciprocal(actor_id, target_id):
                span.set_data("outcome", "recorded")
                return SwipeResult(is_match=False, remaining=quota.remaining)

            match, created = self.materializer.materialize_if_absent(actor_id, target_id)
            if match is None:
                return SwipeResult(is_match=False, remaining=quota.remaining)

            if created:
                self._announce(match)
            self.invalidate_feed(target_id)

            span.set_data("outcome", "match")
            return SwipeResult(is_match=True, match=match, remaining=quota.remaining)

    def _announce(self, match: Match) -> None:
        """Publish the event and hand notifications to the notifier without waiting."""
        self.events.publish(MatchCreated(match_id=match.id, user_ids=list(match.user_ids), created_at=match.created_at))
        if self.notifier is None:
            return
        try:
            self.notifier.notify_match(match)
        except RuntimeError as e:
            logger.warning("Could not schedule match notifications", match_id=match.id, error=str(e))

    def get_swipes_remaining(self, user_id: str) -> int:
        """Swipes left today, -1 for unlimited plans."""
        return self.quota.get_remaining(user_id, self.today(), self.tier_resolver.get_swipe_ceiling(user_id))

    # ------------------------------------------------------------------ #
    # Matches, unmatching and blocking
    # ------------------------------------------------------------------ #

    def list_matches(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Match]:
        return self.materializer.list_matches(user_id, limit=limit, offset=offset)

    def unmatch(self, user_id: str, other_id: str) -> bool:
        """
        Dissolve the match between two users.

        Deletes the match, its channel and both interest edges, so the pair
        can show up in each other's feeds again and match afresh.

        Returns:
            bool: False when there was no match.
        """
        removed = self.materializer.delete_match(user_id, other_id)
        if not removed:
            return False
        self.ledger.delete_pair(user_id, other_id)
        self._invalidate_pair(user_id, other_id)
        logger.info("Users unmatched", user_id=user_id, other_id=other_id)
        return True

    def block_user(self, user_id: str, other_id: str) -> None:
        """Block `other_id`, dissolving any match. The pair stays hidden until unblocked."""
        self.block_list.block(user_id, other_id)
        self.materializer.delete_match(user_id, other_id)
        self.ledger.delete_pair(user_id, other_id)
        self._invalidate_pair(user_id, other_id)
        logger.info("User blocked", user_id=user_id, other_id=other_id)

    def unblock_user(self, user_id: str, other_id: str) -> bool:
        removed = self.block_list.unblock(user_id, other_id)
        if removed:
            self._invalidate_pair(user_id, other_id)
        return removed

    def _invalidate_pair(self, user_a: str, user_b: str) -> None:
        self.invalidate_feed(user_a)
        self.invalidate_feed(user_b)

    def get_admirers(self, user_id: str) -> List[Profile]:
        """
        Users who are interested in `user_id` and are still waiting on a decision.

        Matched users, users `user_id` already swiped on and blocked pairs are
        left out. Profiles that no longer exist are skipped.
        """
        me = self._load_profile(user_id)
        hidden = self.ledger.list_decided_targets(user_id) | self.block_list.list_blocked_pairs(user_id)

        admirers: List[Profile] = []
        for actor_id in self.ledger.list_interested_actors(user_id):
            if actor_id in hidden or me.has_blocked(actor_id):
                continue
            try:
                profile = self.profile_store.get_profile(actor_id)
            except DiscoveryError as e:
                logger.warning("Skipping admirer without profile", user_id=user_id, admirer=actor_id, error=str(e))
                continue
            if profile.has_blocked(user_id):
                continue
            admirers.append(profile)
        return admirers


def build_discovery_service(
    session_factory: Optional[SessionFactory] = None,
    profile_store: Optional[ProfileStore] = None,
    tier_resolver: Optional[TierResolver] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> DiscoveryService:
    """
    Wire a DiscoveryService from settings.

    Collaborators that are not passed in get the defaults: the configured
    database, the SQL profile store, plan-based ceilings and a dispatcher that
    only logs.
    """
    session_factory = session_factory or Database.get_session_factory()
    profile_store = profile_store or SqlProfileStore(session_factory)
    block_list = BlockList(session_factory)
    return DiscoveryService(
        profile_store=profile_store,
        ledger=InterestLedger(session_factory),
        quota=QuotaTracker(session_factory),
        materializer=MatchMaterializer(session_factory, profile_store, block_list),
        tier_resolver=tier_resolver or PlanTierResolver(profile_store),
        block_list=block_list,
        events=MatchEventBus(settings.MATCH_EVENT_QUEUE_SIZE),
        notifier=MatchNotifier(dispatcher or LoggingNotificationDispatcher(), max_workers=settings.NOTIFICATION_WORKERS),
    )
