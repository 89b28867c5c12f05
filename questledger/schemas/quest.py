"""Quest-related Pydantic schemas."""
from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field, field_validator, model_validator

from questledger.config import get_settings
from questledger.models.quest import QuestStatus
from questledger.schemas.base import BaseSchema


class QuestProgress(BaseSchema):
    """Bounded quest progress."""
    current: int = 0
    total: int = 1

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @model_validator(mode="after")
    def check_bounds(self):
        if self.total < 1:
            raise ValueError("progress.total must be at least 1")
        if not 0 <= self.current <= self.total:
            raise ValueError(f"progress.current must be within [0, {self.total}]")
        return self


class StatIncrement(BaseSchema):
    """Reward paid into one stat category when the quest completes."""
    category: str
    amount: int

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("category")
    @classmethod
    def normalize_category(cls, value: str) -> str:
        value = value.strip().upper()
        if value == get_settings().discipline_label:
            raise ValueError("discipline is rewarded through discipline_increment_amount, not stat_increments")
        return value


class Quest(BaseSchema):
    """Immutable quest value handled by the lifecycle engine.

    Transitions never mutate a quest; they produce a new one with
    ``model_copy(update=...)``.
    """
    id: str
    title: str
    description: str = ""
    goal_id: Optional[str] = None
    stat_tags: tuple[str, ...] = Field(min_length=1, max_length=2)
    status: QuestStatus = QuestStatus.ACTIVE
    progress: QuestProgress = QuestProgress()
    stat_increments: tuple[StatIncrement, ...] = ()
    discipline_increment_amount: Optional[int] = Field(default=None, ge=0)
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator("stat_tags")
    @classmethod
    def check_stat_tags(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        tags = tuple(tag.strip().upper() for tag in value)
        if get_settings().discipline_label in tags:
            raise ValueError("stat_tags cannot include the discipline category")
        return tags

    @model_validator(mode="after")
    def check_completion_timestamp(self):
        if self.status == QuestStatus.COMPLETED and self.completed_at is None:
            raise ValueError("completed quests must carry completed_at")
        if self.status != QuestStatus.COMPLETED and self.completed_at is not None:
            raise ValueError("completed_at is only set on completed quests")
        return self

    @property
    def discipline_reward(self) -> int:
        """Discipline paid on completion; unset amounts fall back to the configured default."""
        if self.discipline_increment_amount is None:
            return get_settings().default_discipline_increment
        return self.discipline_increment_amount


class QuestCreate(BaseSchema):
    """A generated quest as delivered by the content generator."""
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(default="", max_length=1000)
    goal_id: Optional[str] = None
    stat_tags: list[str] = Field(min_length=1, max_length=2)
    progress_total: int = Field(default=1, ge=1)
    stat_increments: list[StatIncrement] = Field(default_factory=list)
    discipline_increment_amount: Optional[int] = Field(default=None, ge=0)

    @field_validator("stat_tags")
    @classmethod
    def check_stat_tags(cls, value: list[str]) -> list[str]:
        tags = [tag.strip().upper() for tag in value]
        if get_settings().discipline_label in tags:
            raise ValueError("stat_tags cannot include the discipline category")
        return tags


class QuestCreateRequest(BaseSchema):
    """Batch of generated quests to store for the current player."""
    quests: list[QuestCreate] = Field(min_length=1)


class SetProgressRequest(BaseSchema):
    """Requested progress count; clamped to the quest's bounds."""
    count: int


class QuestResponse(BaseSchema):
    """Quest response schema with the goal title joined in."""
    id: str
    title: str
    description: str
    goal_id: Optional[str] = None
    goal_title: Optional[str] = None
    stat_tags: list[str]
    status: str  # active, completed, skipped
    progress_current: int
    progress_total: int
    progress_percentage: float
    stat_increments: list[StatIncrement]
    discipline_increment_amount: int
    completed_at: Optional[datetime] = None
    can_undo: bool = False


class QuestListResponse(BaseSchema):
    """List of quests response."""
    quests: list[QuestResponse]
    total_count: int
    active_count: int
    completed_count: int
    skipped_count: int


class QuestCommandResponse(BaseSchema):
    """Outcome of a quest lifecycle command."""
    quest: QuestResponse
    changed: bool
    requires_reward_update: bool
    requires_reward_reversal: bool
