"""Subscription tier to daily swipe ceiling resolution."""

from typing import Dict, Optional

from discovery.config import settings
from discovery.custom_types import ProfileStore
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


class PlanTierResolver:
    """
    Resolve a user's ceiling from the `subscription_tier` on their profile.

    Unknown tiers, including ``free``, get the free limit. A negative limit
    means unlimited.
    """

    def __init__(
        self,
        profile_store: ProfileStore,
        plan_limits: Optional[Dict[str, int]] = None,
        free_limit: Optional[int] = None,
    ) -> None:
        self._profile_store = profile_store
        self._plan_limits = dict(settings.PLAN_SWIPE_LIMITS if plan_limits is None else plan_limits)
        self._free_limit = settings.FREE_SWIPE_LIMIT if free_limit is None else free_limit

    def get_swipe_ceiling(self, user_id: str) -> int:
        tier = self._profile_store.get_profile(user_id).subscription_tier.lower()
        ceiling = self._plan_limits.get(tier, self._free_limit)
        logger.debug("Swipe ceiling resolved", user_id=user_id, tier=tier, ceiling=ceiling)
        return ceiling
