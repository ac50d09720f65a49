"""Daily interest-action quota models."""

from datetime import date

from pydantic import BaseModel, ConfigDict

# Ceiling value meaning "no daily limit"
UNLIMITED = -1


class QuotaDecision(BaseModel):
    """Outcome of a consume attempt. `remaining` is -1 when the ceiling is unlimited."""

    allowed: bool
    remaining: int

    model_config = ConfigDict(frozen=True)


class QuotaRecord(BaseModel):
    user_id: str
    day: date
    count: int = 0

    model_config = ConfigDict(from_attributes=True)
