"""Models for directional interest decisions."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from discovery.utils.database import utcnow


class Decision(str, Enum):
    INTERESTED = "interested"
    PASSED = "passed"


class InterestEdge(BaseModel):
    """A swipe from `actor_id` towards `target_id`. One per ordered pair."""

    actor_id: str
    target_id: str
    decision: Decision
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="before")
    @classmethod
    def check_self_edge(cls, values: Any) -> Any:
        if isinstance(values, dict):
            actor_id = values.get("actor_id")
            target_id = values.get("target_id")
        else:
            actor_id = getattr(values, "actor_id", None)
            target_id = getattr(values, "target_id", None)
        if actor_id and target_id and actor_id == target_id:
            raise ValueError("Actor and target cannot be the same user.")
        return values

    @field_validator("actor_id", "target_id")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("User IDs cannot be empty")
        return v

    model_config = ConfigDict(frozen=True, extra="forbid", from_attributes=True)
