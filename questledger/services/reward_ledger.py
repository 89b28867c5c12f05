"""Reward ledger: stat bonuses, discipline and the completed-quest tally."""

import logging
from typing import List, Optional, Tuple

from questledger.config import Settings, get_settings
from questledger.schemas.quest import Quest
from questledger.services.stat_service import ProfileStatService

logger = logging.getLogger(__name__)


class RewardLedger:
    """Applies and reverses quest rewards for one player.

    Reversal is the same operation with negated amounts, so applying and then
    reversing a quest's rewards leaves every total where it started. The
    discipline change and the completed-quest counter always move together.
    """

    def __init__(self, stat_service: ProfileStatService, player_id: str, settings: Optional[Settings] = None):
        self.stat_service = stat_service
        self.player_id = player_id
        self.settings = settings or get_settings()

    async def apply_stat(self, label: str, amount: int) -> None:
        """Add ``amount`` to the bonus of a regular stat."""
        if label.upper() == self.settings.discipline_label:
            raise ValueError("Discipline must be changed through apply_discipline")
        await self.stat_service.increment_stat_bonus(self.player_id, label, amount)

    async def apply_discipline(self, amount: int) -> None:
        """Add ``amount`` to the discipline bonus."""
        await self.stat_service.increment_discipline_bonus(self.player_id, amount)

    async def apply_completion(self, quest: Quest) -> List[Tuple[str, int]]:
        """Pay out a completed quest. Returns the applied deltas in order."""
        return await self._apply(quest, sign=1)

    async def reverse_completion(self, quest: Quest) -> List[Tuple[str, int]]:
        """Take back what :meth:`apply_completion` paid for the quest."""
        return await self._apply(quest, sign=-1)

    async def _apply(self, quest: Quest, sign: int) -> List[Tuple[str, int]]:
        # One awaited call at a time; each reads the value the previous call left behind
        applied: List[Tuple[str, int]] = []

        discipline_amount = sign * quest.discipline_reward
        await self.apply_discipline(discipline_amount)
        applied.append((self.settings.discipline_label, discipline_amount))

        for increment in quest.stat_increments:
            await self.apply_stat(increment.category, sign * increment.amount)
            applied.append((increment.category, sign * increment.amount))

        count = await self.stat_service.get_completed_quests_count(self.player_id)
        await self.stat_service.update_profile(self.player_id, completed_quests_count=count + sign)

        logger.info(
            f"{'Applied' if sign > 0 else 'Reversed'} rewards for quest {quest.id} "
            f"({self.player_id=}): {applied}"
        )
        return applied
