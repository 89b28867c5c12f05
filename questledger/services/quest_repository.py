"""Quest repositories: the authoritative store behind the quest engine."""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, UTC
from typing import Dict, List, Optional

from pydantic import ValidationError
from sqlalchemy import select, and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from questledger.models.quest import QuestStatus, UserQuest
from questledger.schemas.quest import Quest, QuestCreate, QuestProgress, StatIncrement
from questledger.utils.datetime_helpers import day_bounds, ensure_utc
from questledger.utils.exceptions import QuestNotFoundError, RemoteError

logger = logging.getLogger(__name__)


class QuestRepository(ABC):
    """Store of quest entities. The engine treats it as the system of record."""

    @abstractmethod
    async def get(self, quest_id: str) -> Quest:
        """Return the stored quest or raise :class:`QuestNotFoundError`."""

    @abstractmethod
    async def update(self, quest: Quest) -> Quest:
        """Persist ``quest`` and return the stored value, raising :class:`RemoteError` on failure."""

    @abstractmethod
    async def list_for_player(self, player_id: str, day: Optional[date] = None) -> List[Quest]:
        """Quests owned by the player, restricted to those generated on ``day`` when given."""

    @abstractmethod
    async def add_many(self, player_id: str, quests: List[QuestCreate]) -> List[Quest]:
        """Store newly generated quests as active with zero progress."""


def quest_from_row(row: UserQuest) -> Quest:
    """Map a database row to an engine quest value."""
    return Quest(
        id=row.quest_id,
        title=row.title,
        description=row.description or "",
        goal_id=row.goal_id,
        stat_tags=tuple(row.stat_tags or ()),
        status=QuestStatus(row.status),
        progress=QuestProgress(current=row.progress_current, total=row.progress_total),
        stat_increments=tuple(StatIncrement(**item) for item in (row.stat_increments or [])),
        discipline_increment_amount=row.discipline_increment_amount,
        completed_at=ensure_utc(row.completed_at),
    )


def _apply_to_row(row: UserQuest, quest: Quest) -> None:
    row.title = quest.title
    row.description = quest.description
    row.goal_id = quest.goal_id
    row.stat_tags = list(quest.stat_tags)
    row.status = quest.status.value
    row.progress_current = quest.progress.current
    row.progress_total = quest.progress.total
    row.stat_increments = [increment.model_dump() for increment in quest.stat_increments]
    row.discipline_increment_amount = quest.discipline_increment_amount
    row.completed_at = quest.completed_at


class SqlQuestRepository(QuestRepository):
    """Quest repository backed by the ``user_quests`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get(self, quest_id: str) -> Quest:
        async with self.session_factory() as session:
            row = await session.get(UserQuest, quest_id)
            if row is None:
                raise QuestNotFoundError(quest_id)
            return quest_from_row(row)

    async def update(self, quest: Quest) -> Quest:
        async with self.session_factory() as session:
            try:
                row = await session.get(UserQuest, quest.id)
                if row is None:
                    raise QuestNotFoundError(quest.id)
                _apply_to_row(row, quest)
                stored = quest_from_row(row)
                await session.commit()
            except (SQLAlchemyError, ValidationError) as e:
                await session.rollback()
                logger.error(f"Failed to update quest {quest.id}: {e}")
                raise RemoteError(f"Failed to update quest {quest.id}") from e

            logger.info(f"Quest {quest.id} updated in DB ({quest.status.value}, "
                        f"{quest.progress.current}/{quest.progress.total})")
            return stored

    async def list_for_player(self, player_id: str, day: Optional[date] = None) -> List[Quest]:
        query = select(UserQuest).where(UserQuest.player_id == player_id)
        if day is not None:
            start, end = day_bounds(day)
            query = query.where(and_(UserQuest.generated_at >= start, UserQuest.generated_at < end))
        query = query.order_by(UserQuest.generated_at.asc(), UserQuest.quest_id.asc())

        async with self.session_factory() as session:
            result = await session.execute(query)
            rows = list(result.scalars().all())

        quests: List[Quest] = []
        for row in rows:
            try:
                quests.append(quest_from_row(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed quest row {row.quest_id} for {player_id=}: {e}")
        return quests

    async def add_many(self, player_id: str, quests: List[QuestCreate]) -> List[Quest]:
        if not quests:
            return []

        rows = [
            UserQuest(
                quest_id=str(uuid.uuid4()),
                player_id=player_id,
                goal_id=item.goal_id,
                title=item.title,
                description=item.description,
                stat_tags=[tag.strip().upper() for tag in item.stat_tags],
                status=QuestStatus.ACTIVE.value,
                progress_current=0,
                progress_total=item.progress_total,
                stat_increments=[increment.model_dump() for increment in item.stat_increments],
                discipline_increment_amount=item.discipline_increment_amount,
            )
            for item in quests
        ]

        async with self.session_factory() as session:
            try:
                session.add_all(rows)
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                logger.error(f"DB error inserting generated quests for {player_id=}: {e}")
                raise RemoteError("Failed to save generated quests") from e

        logger.info(f"{len(rows)} generated quests saved for {player_id=}")
        return [quest_from_row(row) for row in rows]


class InMemoryQuestRepository(QuestRepository):
    """Process-local quest repository.

    Stands in for the remote store in tests and local development. Writes can
    be made to fail on demand to exercise the engine's rollback path.
    """

    def __init__(self):
        self._quests: Dict[str, Quest] = {}
        self._owners: Dict[str, str] = {}
        self._generated_at: Dict[str, datetime] = {}
        self.fail_updates = False
        self.update_calls: List[Quest] = []

    def seed(self, player_id: str, quest: Quest, generated_at: Optional[datetime] = None) -> Quest:
        """Insert an existing quest value as-is."""
        self._quests[quest.id] = quest
        self._owners[quest.id] = player_id
        self._generated_at[quest.id] = generated_at or datetime.now(UTC)
        return quest

    async def get(self, quest_id: str) -> Quest:
        quest = self._quests.get(quest_id)
        if quest is None:
            raise QuestNotFoundError(quest_id)
        return quest

    async def update(self, quest: Quest) -> Quest:
        self.update_calls.append(quest)
        if self.fail_updates:
            raise RemoteError(f"Simulated backend failure updating quest {quest.id}")
        if quest.id not in self._quests:
            raise QuestNotFoundError(quest.id)
        try:
            Quest.model_validate(quest.model_dump())
        except ValidationError as e:
            raise RemoteError(f"Rejected invalid quest {quest.id}") from e
        self._quests[quest.id] = quest
        return quest

    async def list_for_player(self, player_id: str, day: Optional[date] = None) -> List[Quest]:
        quests = []
        for quest_id, quest in self._quests.items():
            if self._owners.get(quest_id) != player_id:
                continue
            if day is not None and self._generated_at[quest_id].date() != day:
                continue
            quests.append(quest)
        return quests

    async def add_many(self, player_id: str, quests: List[QuestCreate]) -> List[Quest]:
        created = []
        for item in quests:
            quest = Quest(
                id=str(uuid.uuid4()),
                title=item.title,
                description=item.description,
                goal_id=item.goal_id,
                stat_tags=tuple(item.stat_tags),
                progress=QuestProgress(current=0, total=item.progress_total),
                stat_increments=tuple(item.stat_increments),
                discipline_increment_amount=item.discipline_increment_amount,
            )
            created.append(self.seed(player_id, quest))
        return created
