"""Default SQL-backed profile store adapter."""

from typing import Iterable, List

from sqlalchemy import select

from discovery.models.profile import Location, Profile
from discovery.utils.database import ProfileDB, SessionFactory, session_scope
from discovery.utils.errors import NotFoundError
from discovery.utils.logging import get_logger

logger = get_logger(__name__)


def profile_from_row(row: ProfileDB) -> Profile:
    """Rebuild a Profile from its flattened table row."""
    location = None
    if row.location_latitude is not None and row.location_longitude is not None:
        location = Location(latitude=row.location_latitude, longitude=row.location_longitude)

    return Profile(
        id=row.id,
        first_name=row.first_name or "User",
        last_name=row.last_name or "",
        birth_date=row.birth_date,
        gender=row.gender,
        interested_in=set(row.interested_in or []),
        looking_for=list(row.looking_for or []),
        interests=list(row.interests or []),
        photos=list(row.photos or []),
        location=location,
        rating=row.rating or 0,
        blocked_ids=set(row.blocked_ids or []),
        subscription_tier=row.subscription_tier or "free",
    )


def profile_to_row(profile: Profile) -> ProfileDB:
    """Flatten a Profile into a table row. Location becomes two columns."""
    return ProfileDB(
        id=profile.id,
        first_name=profile.first_name,
        last_name=profile.last_name,
        birth_date=profile.birth_date,
        gender=profile.gender,
        interested_in=sorted(profile.interested_in),
        looking_for=list(profile.looking_for),
        interests=list(profile.interests),
        photos=list(profile.photos),
        location_latitude=profile.location.latitude if profile.location else None,
        location_longitude=profile.location.longitude if profile.location else None,
        rating=profile.rating,
        blocked_ids=sorted(profile.blocked_ids),
        subscription_tier=profile.subscription_tier,
    )


class SqlProfileStore:
    """Reads profiles of users who completed onboarding from the `profiles` table."""

    def __init__(self, session_factory: SessionFactory) -> None:
        self._session_factory = session_factory

    def get_profile(self, user_id: str) -> Profile:
        """
        Get a profile by user ID.

        Raises:
            NotFoundError: If the profile does not exist.
        """
        with session_scope(self._session_factory, "get_profile") as session:
            row = session.get(ProfileDB, user_id)
            if row is None:
                logger.warning("Profile not found", user_id=user_id)
                raise NotFoundError(f"Profile not found: {user_id}")
            return profile_from_row(row)

    def list_candidate_profiles(self, excluding: Iterable[str], limit: int) -> List[Profile]:
        """At most `limit` onboarded profiles whose IDs are not in `excluding`, in insertion order."""
        excluded = list(excluding)
        with session_scope(self._session_factory, "list_candidate_profiles") as session:
            stmt = select(ProfileDB).where(ProfileDB.onboarding_completed.is_(True))
            if excluded:
                stmt = stmt.where(ProfileDB.id.not_in(excluded))
            rows = session.scalars(stmt.order_by(ProfileDB.created_at, ProfileDB.id).limit(limit)).all()
            return [profile_from_row(row) for row in rows]

    def save_profile(self, profile: Profile) -> None:
        """Insert or replace a profile. Used by seeding scripts and tests."""
        with session_scope(self._session_factory, "save_profile") as session:
            session.merge(profile_to_row(profile))
