"""Profile and feed models for the MeetsMatch discovery service."""

from datetime import date
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, field_validator

from discovery.utils.errors import ValidationError


# Owner-only fields, never shown to other users
PRIVATE_FIELDS = frozenset({"blocked_ids", "subscription_tier"})


class Location(BaseModel):
    """Geographic coordinate of a user."""

    latitude: float
    longitude: float


def _normalize_tags(values: List[str]) -> List[str]:
    """Lowercase, trim and de-duplicate tags while preserving order."""
    unique: List[str] = []
    for value in values:
        tag = value.lower().strip()
        if tag and tag not in unique:
            unique.append(tag)
    return unique


class Profile(BaseModel):
    """
    Profile model.

    The subset of a user's profile that discovery needs: identity, the data
    used for filtering and ranking, and the display fields snapshotted onto a
    match when one is created.
    """

    id: str = Field(..., description="Opaque user ID")
    first_name: str = "User"
    last_name: str = ""
    birth_date: Optional[date] = None
    gender: Optional[str] = None
    interested_in: Set[str] = Field(default_factory=set)
    looking_for: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    location: Optional[Location] = None
    rating: int = 0
    blocked_ids: Set[str] = Field(default_factory=set)
    subscription_tier: str = "free"

    @field_validator("interests", "looking_for")
    @classmethod
    def validate_tags(cls, v: List[str]) -> List[str]:
        return _normalize_tags(v)

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.lower().strip() or None

    @field_validator("interested_in")
    @classmethod
    def validate_interested_in(cls, v: Set[str]) -> Set[str]:
        return {g.lower().strip() for g in v if g.strip()}

    @field_validator("rating")
    @classmethod
    def validate_rating(cls, v: int) -> int:
        """
        Validate moderator rating.

        Raises:
            ValidationError: If the rating is outside 0-5.
        """
        if v < 0 or v > 5:
            raise ValidationError("Rating must be between 0 and 5")
        return v

    def age(self, today: Optional[date] = None) -> Optional[int]:
        """Age in whole years on `today`, or None without a birth date."""
        if self.birth_date is None:
            return None
        today = today or date.today()
        years = today.year - self.birth_date.year
        if (today.month, today.day) < (self.birth_date.month, self.birth_date.day):
            years -= 1
        return years

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def primary_photo(self) -> Optional[str]:
        return self.photos[0] if self.photos else None

    def has_blocked(self, user_id: str) -> bool:
        return user_id in self.blocked_ids

    def public_dump(self) -> Dict[str, Any]:
        """JSON-ready view of the profile as other users see it."""
        return self.model_dump(mode="json", exclude=set(PRIVATE_FIELDS))


class FeedFilters(BaseModel):
    """
    Feed filter options.

    `looking_for` is advisory: it is reported back on each candidate but never
    excludes one. An empty `interested_in` disables the gender filter.
    """

    max_distance_km: float = 100.0
    min_age: int = 18
    max_age: int = 99
    interested_in: Set[str] = Field(default_factory=set)
    looking_for: Set[str] = Field(default_factory=set)

    @field_validator("interested_in", "looking_for")
    @classmethod
    def normalize(cls, v: Set[str]) -> Set[str]:
        return {item.lower().strip() for item in v if item.strip()}

    def cache_token(self) -> str:
        """Stable string identifying this filter combination."""
        return "|".join(
            [
                f"{self.max_distance_km:g}",
                str(self.min_age),
                str(self.max_age),
                ",".join(sorted(self.interested_in)),
                ",".join(sorted(self.looking_for)),
            ]
        )


class Candidate(Profile):
    """A profile as it appears in a ranked feed, with the values computed while ranking."""

    age_years: int = 0
    distance_km: float = 0.0
    compatibility: int = 0
    shared_intents: List[str] = Field(default_factory=list)
