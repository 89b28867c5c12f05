"""Pure quest lifecycle transitions.

Every function takes a quest value and the current snapshot map and returns a
:class:`TransitionResult` describing the new quest, the new snapshot map and
what the caller still has to do (reward updates, notifications). Inputs are
never mutated and failures are reported through ``TransitionResult.error``
instead of being raised, so the caller decides when to surface them.

Completion is triggered exactly when ``progress.current`` reaches
``progress.total`` through complete, increment or set_progress. Decrement
never completes a quest.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Mapping, Optional

from questledger.models.quest import QuestStatus
from questledger.schemas.notification import NotificationKind
from questledger.schemas.quest import Quest
from questledger.services.snapshot_ledger import with_snapshot, without_snapshot
from questledger.utils.exceptions import InvalidStateError, NoSnapshotError, QuestServiceError


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a single pure transition."""

    quest: Quest
    snapshots: Mapping[str, Quest]
    changed: bool = False
    requires_reward_update: bool = False
    requires_reward_reversal: bool = False
    notification: Optional[NotificationKind] = None
    error: Optional[QuestServiceError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(UTC)


def _rejected(quest: Quest, snapshots: Mapping[str, Quest], error: QuestServiceError) -> TransitionResult:
    return TransitionResult(quest=quest, snapshots=snapshots, error=error)


def _unchanged(quest: Quest, snapshots: Mapping[str, Quest]) -> TransitionResult:
    return TransitionResult(quest=quest, snapshots=snapshots)


def _completed(quest: Quest, snapshots: Mapping[str, Quest], current: int, now: Optional[datetime],
               rewarded: bool = False) -> TransitionResult:
    completed = quest.model_copy(update={
        "status": QuestStatus.COMPLETED,
        "progress": quest.progress.model_copy(update={"current": current}),
        "completed_at": _now(now),
    })
    return TransitionResult(
        quest=completed,
        snapshots=with_snapshot(snapshots, quest),
        changed=True,
        requires_reward_update=not rewarded,
        notification=NotificationKind.COMPLETED,
    )


def _with_progress(quest: Quest, snapshots: Mapping[str, Quest], current: int) -> TransitionResult:
    updated = quest.model_copy(update={"progress": quest.progress.model_copy(update={"current": current})})
    return TransitionResult(quest=updated, snapshots=snapshots, changed=True)


def complete(quest: Quest, snapshots: Mapping[str, Quest], now: Optional[datetime] = None) -> TransitionResult:
    """Mark the quest completed and max out its progress.

    A skipped quest whose snapshot is completed still holds the rewards of
    that completion, so completing it again pays nothing.
    """
    if quest.status == QuestStatus.COMPLETED:
        return _rejected(quest, snapshots, InvalidStateError(quest.id, quest.status.value, "complete"))
    snapshot = snapshots.get(quest.id)
    rewarded = (
        quest.status == QuestStatus.SKIPPED
        and snapshot is not None
        and snapshot.status == QuestStatus.COMPLETED
    )
    return _completed(quest, snapshots, quest.progress.total, now, rewarded=rewarded)


def skip(quest: Quest, snapshots: Mapping[str, Quest]) -> TransitionResult:
    """Mark the quest skipped. Progress is left as it is."""
    if quest.status == QuestStatus.SKIPPED:
        return _rejected(quest, snapshots, InvalidStateError(quest.id, quest.status.value, "skip"))
    skipped = quest.model_copy(update={"status": QuestStatus.SKIPPED, "completed_at": None})
    return TransitionResult(
        quest=skipped,
        snapshots=with_snapshot(snapshots, quest),
        changed=True,
        notification=NotificationKind.SKIPPED,
    )


def increment(quest: Quest, snapshots: Mapping[str, Quest], now: Optional[datetime] = None) -> TransitionResult:
    """Advance progress by one, completing the quest when it reaches the total."""
    if quest.status != QuestStatus.ACTIVE:
        return _rejected(quest, snapshots, InvalidStateError(quest.id, quest.status.value, "increment"))
    return _move_progress(quest, snapshots, quest.progress.current + 1, now)


def decrement(quest: Quest, snapshots: Mapping[str, Quest]) -> TransitionResult:
    """Step progress back by one. Never changes status or snapshots."""
    if quest.status != QuestStatus.ACTIVE:
        return _rejected(quest, snapshots, InvalidStateError(quest.id, quest.status.value, "decrement"))
    next_current = max(0, quest.progress.current - 1)
    if next_current == quest.progress.current:
        return _unchanged(quest, snapshots)
    return _with_progress(quest, snapshots, next_current)


def set_progress(quest: Quest, snapshots: Mapping[str, Quest], count: int,
                 now: Optional[datetime] = None) -> TransitionResult:
    """Set progress to ``count`` clamped to ``[0, total]``."""
    if quest.status != QuestStatus.ACTIVE:
        return _rejected(quest, snapshots, InvalidStateError(quest.id, quest.status.value, "set progress on"))
    return _move_progress(quest, snapshots, max(0, count), now)


def _move_progress(quest: Quest, snapshots: Mapping[str, Quest], target: int,
                   now: Optional[datetime]) -> TransitionResult:
    total = quest.progress.total
    next_current = min(total, target)
    if next_current == quest.progress.current:
        return _unchanged(quest, snapshots)
    if next_current == total:
        return _completed(quest, snapshots, next_current, now)
    return _with_progress(quest, snapshots, next_current)


def undo(quest: Quest, snapshots: Mapping[str, Quest]) -> TransitionResult:
    """Return a completed or skipped quest to active using its snapshot.

    When either the quest or its snapshot is completed, the quest restarts
    from zero progress and its rewards must be reversed. Otherwise it gets its
    snapshot progress back. The snapshot is spent, so a second undo fails until another completing or skipping
    transition takes a new one.
    """
    snapshot = snapshots.get(quest.id)
    if snapshot is None:
        return _rejected(quest, snapshots, NoSnapshotError(quest.id))

    was_completed = quest.status == QuestStatus.COMPLETED or snapshot.status == QuestStatus.COMPLETED
    progress = snapshot.progress
    if was_completed:
        progress = progress.model_copy(update={"current": 0})

    restored = snapshot.model_copy(update={
        "status": QuestStatus.ACTIVE,
        "completed_at": None,
        "progress": progress,
    })
    return TransitionResult(
        quest=restored,
        snapshots=without_snapshot(snapshots, quest.id),
        changed=True,
        requires_reward_reversal=was_completed,
        notification=NotificationKind.UNDONE,
    )
