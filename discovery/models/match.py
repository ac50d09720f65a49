"""Match and conversation channel models for the MeetsMatch discovery service."""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from discovery.utils.database import utcnow


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """Order a pair of user IDs so both directions address the same record."""
    return (user_a, user_b) if user_a <= user_b else (user_b, user_a)


def _escape_id(user_id: str) -> str:
    return user_id.replace("\\", "\\\\").replace("_", "\\_")


def match_id_for(user_a: str, user_b: str) -> str:
    """
    Build the deterministic match ID for a pair of users.

    Backslashes and underscores inside each ID are escaped with a backslash,
    so the first unescaped underscore always separates the two participants
    and distinct pairs never share a key.

    Args:
        user_a (str): One participant.
        user_b (str): The other participant.

    Returns:
        str: ``"<lower>_<higher>"`` regardless of argument order.
    """
    low, high = canonical_pair(user_a, user_b)
    return f"{_escape_id(low)}_{_escape_id(high)}"


class ParticipantSnapshot(BaseModel):
    """Display data copied onto a match when it is created."""

    first_name: str = "User"
    last_name: str = ""
    photo_url: Optional[str] = None


class Match(BaseModel):
    """
    Match model.

    An undirected pairing created when two users are interested in each
    other. `participants` holds a display snapshot taken at creation time so
    match lists can render without loading profiles.
    """

    id: str
    user1_id: str
    user2_id: str
    participants: Dict[str, ParticipantSnapshot] = Field(default_factory=dict)
    unread_counts: Dict[str, int] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    last_message_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def user_ids(self) -> Tuple[str, str]:
        return (self.user1_id, self.user2_id)

    def other_user(self, user_id: str) -> str:
        """Return the participant that is not `user_id`."""
        if user_id == self.user1_id:
            return self.user2_id
        if user_id == self.user2_id:
            return self.user1_id
        raise ValueError(f"User {user_id} is not part of match {self.id}")


class ConversationChannel(BaseModel):
    """Messaging thread created alongside a match; shares the match ID."""

    id: str
    user1_id: str
    user2_id: str
    created_at: datetime = Field(default_factory=utcnow)
    last_message_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SwipeResult(BaseModel):
    """Result of a swipe. `remaining` is -1 for unlimited plans."""

    is_match: bool = False
    match: Optional[Match] = None
    remaining: int = 0


class MatchCreated(BaseModel):
    """Event published once per newly materialized match."""

    match_id: str
    user_ids: List[str]
    created_at: datetime = Field(default_factory=utcnow)
