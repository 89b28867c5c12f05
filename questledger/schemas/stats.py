"""Stat and profile Pydantic schemas."""
from pydantic import Field, computed_field

from questledger.schemas.base import BaseSchema


class StatEntry(BaseSchema):
    """Reward ledger entry for one stat label."""
    label: str
    base: int
    bonus: int = 0

    @computed_field
    @property
    def total(self) -> int:
        return self.base + self.bonus


class StatsResponse(BaseSchema):
    """All ledger entries for a player, keyed by label."""
    stats: dict[str, StatEntry]


class BaseStatsRequest(BaseSchema):
    """Initial base values, typically set once after onboarding."""
    base_stats: dict[str, int] = Field(min_length=1)


class ProfileResponse(BaseSchema):
    """Player profile counters."""
    player_id: str
    completed_quests_count: int
