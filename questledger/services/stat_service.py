"""Profile and stat persistence used by the reward ledger."""
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from sqlalchemy import select, and_
from sqlalchemy.dialects.postgresql import insert as postgres_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questledger.config import Settings, get_settings
from questledger.models.player import PlayerProfile, PlayerStat
from questledger.schemas.stats import ProfileResponse, StatEntry

logger = logging.getLogger(__name__)


class ProfileStatService(ABC):
    """Persistence boundary for stat bonuses and profile counters.

    Every call is a single awaited operation that either succeeds or raises.
    """

    @abstractmethod
    async def increment_stat_bonus(self, player_id: str, label: str, amount: int) -> None:
        """Add ``amount`` to the bonus of ``label``."""

    @abstractmethod
    async def increment_discipline_bonus(self, player_id: str, amount: int) -> None:
        """Add ``amount`` to the discipline bonus."""

    @abstractmethod
    async def get_completed_quests_count(self, player_id: str) -> int:
        """Current completed-quest tally."""

    @abstractmethod
    async def update_profile(self, player_id: str, *, completed_quests_count: int) -> None:
        """Store the completed-quest tally."""


class StatService(ProfileStatService):
    """Stat and profile service backed by ``player_stats`` and ``player_profiles``."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], settings: Optional[Settings] = None):
        self.session_factory = session_factory
        self.settings = settings or get_settings()

    def _default_entry(self, label: str) -> StatEntry:
        return StatEntry(label=label, base=self.settings.default_stat_base_value, bonus=0)

    @staticmethod
    def _insert_for(session: AsyncSession):
        bind = session.get_bind()
        dialect_name = (bind.dialect.name if bind is not None else "").lower()
        return sqlite_insert if "sqlite" in dialect_name else postgres_insert

    async def get_stats(self, player_id: str) -> Dict[str, StatEntry]:
        """All stats for a player; labels without a row get default values."""
        stats = {label: self._default_entry(label) for label in self.settings.stat_labels}

        async with self.session_factory() as session:
            result = await session.execute(select(PlayerStat).where(PlayerStat.player_id == player_id))
            rows = list(result.scalars().all())

        for row in rows:
            if row.stat_label not in stats:
                logger.warning(f"Skipping unknown stat label {row.stat_label!r} for {player_id=}")
                continue
            stats[row.stat_label] = StatEntry(label=row.stat_label, base=row.base_value, bonus=row.bonus_value)
        return stats

    async def set_initial_base_stats(self, player_id: str, base_stats: Dict[str, int]) -> Dict[str, StatEntry]:
        """Upsert base values for the given labels and reset their bonus to zero."""
        unknown = sorted(set(label.upper() for label in base_stats) - set(self.settings.stat_labels))
        if unknown:
            raise ValueError(f"Unknown stat labels: {', '.join(unknown)}")

        async with self.session_factory() as session:
            insert = self._insert_for(session)
            for label, base_value in base_stats.items():
                stmt = insert(PlayerStat).values(
                    player_id=player_id,
                    stat_label=label.upper(),
                    base_value=base_value,
                    bonus_value=0,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["player_id", "stat_label"],
                    set_={"base_value": base_value, "bonus_value": 0},
                )
                await session.execute(stmt)
            await session.commit()

        logger.info(f"Initial base stats set for {player_id=}: {sorted(base_stats)}")
        return await self.get_stats(player_id)

    async def increment_stat_bonus(self, player_id: str, label: str, amount: int) -> None:
        label = label.upper()
        async with self.session_factory() as session:
            result = await session.execute(
                select(PlayerStat).where(
                    and_(PlayerStat.player_id == player_id, PlayerStat.stat_label == label)
                ).with_for_update()
            )
            row = result.scalar_one_or_none()
            if row is None:
                row = PlayerStat(
                    player_id=player_id,
                    stat_label=label,
                    base_value=self.settings.default_stat_base_value,
                    bonus_value=0,
                )
                session.add(row)
            row.bonus_value = (row.bonus_value or 0) + amount
            await session.commit()

        logger.info(f"{label} bonus changed by {amount} for {player_id=}")

    async def increment_discipline_bonus(self, player_id: str, amount: int) -> None:
        await self.increment_stat_bonus(player_id, self.settings.discipline_label, amount)

    async def get_profile(self, player_id: str) -> ProfileResponse:
        """Profile counters; a player without a row has completed nothing yet."""
        return ProfileResponse(
            player_id=player_id,
            completed_quests_count=await self.get_completed_quests_count(player_id),
        )

    async def get_completed_quests_count(self, player_id: str) -> int:
        async with self.session_factory() as session:
            profile = await session.get(PlayerProfile, player_id)
            return profile.completed_quests_count if profile else 0

    async def update_profile(self, player_id: str, *, completed_quests_count: int) -> None:
        async with self.session_factory() as session:
            profile = await session.get(PlayerProfile, player_id)
            if profile is None:
                profile = PlayerProfile(player_id=player_id, completed_quests_count=0)
                session.add(profile)
            profile.completed_quests_count = completed_quests_count
            await session.commit()

        logger.info(f"Profile updated for {player_id=}: {completed_quests_count=}")
