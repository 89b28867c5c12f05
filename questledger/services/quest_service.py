"""Optimistic quest lifecycle engine.

One :class:`QuestService` owns the in-memory quest list and snapshot ledger of
a single player. Every command runs the same sequence:

1. checkpoint the quest list and snapshots
2. apply the pure transition locally (errors abort before any side effect)
3. write the optimistic list to the durable cache (best effort)
4. write the quest to the repository; on failure restore the checkpoint in
   memory and the cached entry, then raise :class:`RemoteError`
5. apply or reverse rewards, one ledger call at a time
6. publish a single transition event

A command either commits fully or leaves every piece of visible state as it
was before it started.
"""

import asyncio
import logging
from datetime import date, datetime, UTC
from typing import Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from questledger.config import Settings, get_settings
from questledger.schemas.notification import QuestTransitionEvent
from questledger.schemas.quest import Quest, QuestCreate
from questledger.services import quest_transitions as transitions
from questledger.services.notification_service import QuestEventBus
from questledger.services.quest_repository import QuestRepository
from questledger.services.quest_transitions import TransitionResult
from questledger.services.reward_ledger import RewardLedger
from questledger.services.snapshot_ledger import SnapshotLedger
from questledger.services.stat_service import ProfileStatService
from questledger.utils.cache import DurableCache
from questledger.utils.exceptions import QuestNotFoundError, RemoteError

logger = logging.getLogger(__name__)

Transition = Callable[[Quest, Mapping[str, Quest]], TransitionResult]


class QuestService:
    """Per-player quest engine with optimistic updates and full rollback."""

    def __init__(
        self,
        player_id: str,
        repository: QuestRepository,
        cache: DurableCache,
        stat_service: ProfileStatService,
        event_bus: QuestEventBus,
        settings: Optional[Settings] = None,
    ):
        self.player_id = player_id
        self.repository = repository
        self.cache = cache
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self.reward_ledger = RewardLedger(stat_service, player_id, self.settings)
        self.snapshots = SnapshotLedger()
        self._quests: List[Quest] = []
        self._loaded_for: Optional[date] = None
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def cache_key(self) -> str:
        return f"{self.settings.quest_cache_key_prefix}{self.player_id}"

    @property
    def quests(self) -> List[Quest]:
        return list(self._quests)

    def can_undo(self, quest_id: str) -> bool:
        return quest_id in self.snapshots

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def load_quests(self, force: bool = False) -> List[Quest]:
        """Today's quests, read through the durable cache.

        The list is loaded once per day; later calls return the in-memory list.
        """
        today = datetime.now(UTC).date()
        if self._loaded_for == today and not force:
            return self.quests

        quests = None if force else await self._read_cache(today)
        if quests is None:
            quests = await self.repository.list_for_player(self.player_id, day=today)
            logger.info(f"Loaded {len(quests)} quests from repository for {self.player_id=}")
            await self._write_cache(quests, today)
        else:
            logger.debug(f"Loaded {len(quests)} quests from cache for {self.player_id=}")

        if self._loaded_for != today:
            self.snapshots.clear()
        self._quests = list(quests)
        self._loaded_for = today
        return self.quests

    async def get_quests(self) -> List[Quest]:
        return await self.load_quests()

    async def refresh(self) -> List[Quest]:
        """Drop the cached list and reload from the repository."""
        await self.cache.remove(self.cache_key)
        return await self.load_quests(force=True)

    async def add_generated_quests(self, quests: List[QuestCreate]) -> List[Quest]:
        """Store freshly generated quests and append them to today's list."""
        await self.load_quests()
        created = await self.repository.add_many(self.player_id, quests)
        self._quests = self._quests + created
        await self._write_cache(self._quests, self._loaded_for)
        logger.info(f"Added {len(created)} generated quests for {self.player_id=}")
        return created

    async def _read_cache(self, today: date) -> Optional[List[Quest]]:
        payload = await self.cache.get(self.cache_key)
        if not isinstance(payload, dict) or payload.get("generated_on") != today.isoformat():
            return None
        try:
            return [Quest.model_validate(item) for item in payload.get("quests", [])]
        except ValidationError as e:
            logger.warning(f"Discarding cached quest list for {self.player_id=}: {e}")
            await self.cache.remove(self.cache_key)
            return None

    async def _write_cache(self, quests: List[Quest], day: Optional[date]) -> None:
        payload = {
            "generated_on": (day or datetime.now(UTC).date()).isoformat(),
            "quests": [quest.model_dump(mode="json") for quest in quests],
        }
        try:
            await self.cache.set(self.cache_key, payload, ttl=self.settings.quest_cache_ttl_seconds)
        except Exception:
            logger.exception(f"Failed to write quest cache for {self.player_id=}")

    async def _restore_cache(self, entry) -> None:
        try:
            await self.cache.restore(self.cache_key, entry)
        except Exception:
            logger.exception(f"Failed to restore quest cache for {self.player_id=}")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def complete_quest(self, quest_id: str) -> TransitionResult:
        return await self._run_command(quest_id, "complete", transitions.complete)

    async def skip_quest(self, quest_id: str) -> TransitionResult:
        return await self._run_command(quest_id, "skip", transitions.skip)

    async def increment_quest_progress(self, quest_id: str) -> TransitionResult:
        return await self._run_command(quest_id, "increment", transitions.increment)

    async def decrement_quest_progress(self, quest_id: str) -> TransitionResult:
        return await self._run_command(quest_id, "decrement", transitions.decrement)

    async def set_quest_progress(self, quest_id: str, count: int) -> TransitionResult:
        return await self._run_command(
            quest_id,
            "set_progress",
            lambda quest, snapshots: transitions.set_progress(quest, snapshots, count),
        )

    async def undo_quest_status(self, quest_id: str) -> TransitionResult:
        return await self._run_command(quest_id, "undo", transitions.undo)

    def _lock_for(self, quest_id: str) -> asyncio.Lock:
        lock = self._locks.get(quest_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[quest_id] = lock
        return lock

    async def _run_command(self, quest_id: str, action: str, transition: Transition) -> TransitionResult:
        if self.settings.enforce_single_flight:
            async with self._lock_for(quest_id):
                return await self._execute(quest_id, action, transition)
        return await self._execute(quest_id, action, transition)

    async def _execute(self, quest_id: str, action: str, transition: Transition) -> TransitionResult:
        await self.load_quests()

        quest_checkpoint = list(self._quests)
        snapshot_checkpoint = self.snapshots.checkpoint()

        index = next((i for i, quest in enumerate(self._quests) if quest.id == quest_id), None)
        if index is None:
            logger.warning(f"Rejected {action}: quest {quest_id} not in today's list for {self.player_id=}")
            raise QuestNotFoundError(quest_id)

        previous = self._quests[index]
        result = transition(previous, self.snapshots.as_map())
        if result.error is not None:
            logger.warning(f"Rejected {action} for {self.player_id=}: {result.error}")
            raise result.error
        if not result.changed:
            logger.debug(f"{action} on quest {quest_id} changed nothing")
            return result

        cache_checkpoint = await self.cache.checkpoint(self.cache_key)
        updated = list(self._quests)
        updated[index] = result.quest
        self._quests = updated
        self.snapshots.replace(result.snapshots)
        await self._write_cache(self._quests, self._loaded_for)

        try:
            await self.repository.update(result.quest)
        except Exception as e:
            self._quests = quest_checkpoint
            self.snapshots.restore(snapshot_checkpoint)
            await self._restore_cache(cache_checkpoint)
            logger.error(f"Rolled back {action} on quest {quest_id} for {self.player_id=}: {e}")
            if isinstance(e, RemoteError):
                raise
            raise RemoteError(f"Failed to {action} quest {quest_id}") from e

        logger.info(
            f"Committed {action} on quest {quest_id} for {self.player_id=} "
            f"({result.quest.status.value}, {result.quest.progress.current}/{result.quest.progress.total})"
        )

        reward_deltas = await self._settle_rewards(result, previous)

        if result.notification is not None:
            await self.event_bus.publish(QuestTransitionEvent(
                kind=result.notification,
                player_id=self.player_id,
                quest_id=quest_id,
                title=result.quest.title,
                reward_deltas=reward_deltas,
            ))
        return result

    async def _settle_rewards(self, result: TransitionResult, previous: Quest) -> Dict[str, int]:
        applied = []
        try:
            if result.requires_reward_update:
                applied = await self.reward_ledger.apply_completion(result.quest)
            elif result.requires_reward_reversal:
                applied = await self.reward_ledger.reverse_completion(previous)
        except Exception:
            # The quest write already committed; ledger calls made before the failure stay applied.
            logger.exception(f"Reward ledger update failed for quest {result.quest.id} ({self.player_id=})")
            return {}

        deltas: Dict[str, int] = {}
        for label, amount in applied:
            deltas[label] = deltas.get(label, 0) + amount
        return deltas


class QuestServiceRegistry:
    """Keeps one :class:`QuestService` per player for the life of the process."""

    def __init__(
        self,
        repository: QuestRepository,
        cache: DurableCache,
        stat_service: ProfileStatService,
        event_bus: QuestEventBus,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.cache = cache
        self.stat_service = stat_service
        self.event_bus = event_bus
        self.settings = settings or get_settings()
        self._services: Dict[str, QuestService] = {}

    def get(self, player_id: str) -> QuestService:
        service = self._services.get(player_id)
        if service is None:
            service = QuestService(
                player_id,
                self.repository,
                self.cache,
                self.stat_service,
                self.event_bus,
                self.settings,
            )
            self._services[player_id] = service
        return service
