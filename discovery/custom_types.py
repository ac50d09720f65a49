"""Interfaces of the collaborators the discovery core depends on."""

from typing import Iterable, List, Protocol

from discovery.models.profile import Profile


class ProfileStore(Protocol):
    """Read access to user profiles. Eventually consistent."""

    def get_profile(self, user_id: str) -> Profile:
        """Raises NotFoundError when the profile does not exist."""
        ...

    def list_candidate_profiles(self, excluding: Iterable[str], limit: int) -> List[Profile]: ...


class TierResolver(Protocol):
    """Resolves the daily swipe ceiling of a user's current subscription tier."""

    def get_swipe_ceiling(self, user_id: str) -> int: ...


class NotificationDispatcher(Protocol):
    """Delivers match notifications. Owns its own retry policy."""

    def notify_match(self, user_id: str, other_user_id: str, match_id: str) -> None: ...
