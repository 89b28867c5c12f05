"""Quest and goal models."""
from sqlalchemy import Column, String, Integer, DateTime, Index, JSON
from enum import Enum
import uuid
from datetime import datetime, UTC
from questledger.database import Base


class QuestStatus(str, Enum):
    """Quest status enumeration."""
    ACTIVE = "active"
    COMPLETED = "completed"
    SKIPPED = "skipped"


def _new_id() -> str:
    return str(uuid.uuid4())


class UserQuest(Base):
    """A daily quest instance owned by a player."""

    __tablename__ = "user_quests"

    quest_id = Column(String(36), primary_key=True, default=_new_id)
    player_id = Column(String(36), nullable=False, index=True)
    goal_id = Column(String(36), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(String(1000), nullable=False, default="")
    stat_tags = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=QuestStatus.ACTIVE.value, index=True)
    progress_current = Column(Integer, nullable=False, default=0)
    progress_total = Column(Integer, nullable=False, default=1)
    stat_increments = Column(JSON, nullable=False, default=list)
    discipline_increment_amount = Column(Integer, nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    generated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    __table_args__ = (
        Index("ix_user_quests_player_generated", "player_id", "generated_at"),
    )

    def __repr__(self):
        return f"<UserQuest(quest_id={self.quest_id}, title={self.title!r}, status={self.status})>"


class Goal(Base):
    """Long-term goal a quest contributes to. Only the title is read by this service."""

    __tablename__ = "goals"

    goal_id = Column(String(36), primary_key=True, default=_new_id)
    player_id = Column(String(36), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    category = Column(String(20), nullable=True)

    def __repr__(self):
        return f"<Goal(goal_id={self.goal_id}, title={self.title!r})>"
