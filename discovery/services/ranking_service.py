"""Candidate ranking for the discovery feed.

Everything here is pure: the same requester, history, candidates, filters and
`today` always give the same feed in the same order.
"""

import math
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence

import sentry_sdk

from discovery.models.profile import Candidate, FeedFilters, Profile
from discovery.utils.geo import distance_between
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


def calculate_compatibility(requester_tags: Sequence[str], candidate_tags: Sequence[str]) -> int:
    """
    Calculate the compatibility percentage of two interest tag lists.

    Shared tags divided by the size of the larger list, as a whole percentage
    rounded half up.

    Args:
        requester_tags (Sequence[str]): Requester interest tags.
        candidate_tags (Sequence[str]): Candidate interest tags.

    Returns:
        int: Score between 0 and 100, 0 when either list is empty.
    """
    if not requester_tags or not candidate_tags:
        return 0

    shared = set(requester_tags) & set(candidate_tags)
    ratio = len(shared) / max(len(set(requester_tags)), len(set(candidate_tags)))
    return int(math.floor(ratio * 100 + 0.5))


def is_blocked_pair(requester: Profile, candidate: Profile) -> bool:
    """True when either profile has the other on its block list."""
    return requester.has_blocked(candidate.id) or candidate.has_blocked(requester.id)


def _build_candidate(
    requester: Profile,
    candidate: Profile,
    filters: FeedFilters,
    today: date,
) -> Optional[Candidate]:
    """Apply the hard filters to one candidate and compute its display values."""
    age = candidate.age(today)
    if age is None or age < filters.min_age or age > filters.max_age:
        return None

    if filters.interested_in and candidate.gender not in filters.interested_in:
        return None

    distance = distance_between(requester.location, candidate.location)
    if distance is not None and distance > filters.max_distance_km:
        return None

    shared_intents = [tag for tag in candidate.looking_for if tag in filters.looking_for]

    return Candidate(
        **candidate.model_dump(include=set(Profile.model_fields)),
        age_years=age,
        distance_km=distance if distance is not None else 0.0,
        compatibility=calculate_compatibility(requester.interests, candidate.interests),
        shared_intents=shared_intents,
    )


def rank(
    requester: Profile,
    requester_interest_history: Iterable[str],
    candidates: Sequence[Profile],
    filters: Optional[FeedFilters] = None,
    today: Optional[date] = None,
) -> List[Candidate]:
    """
    Filter and order candidates for a requester.

    Drops the requester, already-decided users, blocked pairs, candidates
    without a birth date or outside the age bounds, candidates of a gender the
    filters do not accept, and candidates further than `max_distance_km` when
    both coordinates are known. Survivors are sorted by moderator rating,
    then compatibility (both descending), then distance ascending. The sort is
    stable, so remaining ties keep the store order.

    Args:
        requester (Profile): The user asking for a feed.
        requester_interest_history (Iterable[str]): IDs the requester already decided on.
        candidates (Sequence[Profile]): Raw candidates in store order.
        filters (Optional[FeedFilters]): Feed filters, defaults when omitted.
        today (Optional[date]): Reference date for ages, today in UTC when omitted.

    Returns:
        List[Candidate]: The ordered feed, possibly empty. Never raises for bad
        filter bounds.
    """
    filters = filters or FeedFilters()
    today = today or datetime.now(timezone.utc).date()
    decided = set(requester_interest_history)

    with sentry_sdk.start_span(op="feed.rank", name=requester.id) as span:
        span.set_data("input_count", len(candidates))

        if filters.min_age > filters.max_age:
            logger.debug("Age bounds are inverted, returning empty feed", requester=requester.id)
            return []

        ranked: List[Candidate] = []
        for candidate in candidates:
            if candidate.id == requester.id or candidate.id in decided:
                continue
            if is_blocked_pair(requester, candidate):
                continue

            built = _build_candidate(requester, candidate, filters, today)
            if built is not None:
                ranked.append(built)

        ranked.sort(key=lambda c: (-c.rating, -c.compatibility, c.distance_km))

        span.set_data("output_count", len(ranked))
        logger.debug("Candidates ranked", requester=requester.id, considered=len(candidates), kept=len(ranked))
        return ranked
