"""Player stat and profile models."""
from sqlalchemy import Column, String, Integer, DateTime, UniqueConstraint
from datetime import datetime, UTC
from questledger.database import Base


class PlayerStat(Base):
    """Base and bonus value of a single stat for a player.

    The total is always ``base_value + bonus_value`` and is never stored.
    """

    __tablename__ = "player_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    player_id = Column(String(36), nullable=False, index=True)
    stat_label = Column(String(10), nullable=False)
    base_value = Column(Integer, nullable=False, default=5)
    bonus_value = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("player_id", "stat_label", name="uq_player_stats_player_label"),
    )

    @property
    def total_value(self) -> int:
        return (self.base_value or 0) + (self.bonus_value or 0)

    def __repr__(self):
        return (
            f"<PlayerStat(player_id={self.player_id}, label={self.stat_label}, "
            f"base={self.base_value}, bonus={self.bonus_value})>"
        )


class PlayerProfile(Base):
    """Per-player profile counters."""

    __tablename__ = "player_profiles"

    player_id = Column(String(36), primary_key=True)
    completed_quests_count = Column(Integer, nullable=False, default=0)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self):
        return f"<PlayerProfile(player_id={self.player_id}, completed_quests_count={self.completed_quests_count})>"
