"""Single-slot-per-quest store of pre-transition quest states."""
from __future__ import annotations

from typing import Iterator, Mapping, Optional

from questledger.schemas.quest import Quest


def with_snapshot(snapshots: Mapping[str, Quest], quest: Quest) -> dict[str, Quest]:
    """Return a new snapshot map holding ``quest`` as the latest snapshot for its id."""
    updated = dict(snapshots)
    updated[quest.id] = quest
    return updated


def without_snapshot(snapshots: Mapping[str, Quest], quest_id: str) -> dict[str, Quest]:
    """Return a new snapshot map with the entry for ``quest_id`` spent."""
    updated = dict(snapshots)
    updated.pop(quest_id, None)
    return updated


class SnapshotLedger:
    """Snapshots of quests taken right before they were completed or skipped.

    Holds at most one snapshot per quest id. A new completing or skipping
    transition overwrites the slot and undo consumes it. Quests are frozen
    values, so copying the mapping is enough to isolate a checkpoint.
    """

    def __init__(self, snapshots: Optional[Mapping[str, Quest]] = None):
        self._snapshots: dict[str, Quest] = dict(snapshots or {})

    def put(self, quest_id: str, quest: Quest) -> None:
        self._snapshots[quest_id] = quest

    def get(self, quest_id: str) -> Optional[Quest]:
        return self._snapshots.get(quest_id)

    def take(self, quest_id: str) -> Optional[Quest]:
        """Return and consume the snapshot for ``quest_id``."""
        return self._snapshots.pop(quest_id, None)

    def as_map(self) -> dict[str, Quest]:
        """Copy of the current snapshot map, safe to hand to transition functions."""
        return dict(self._snapshots)

    def replace(self, snapshots: Mapping[str, Quest]) -> None:
        """Adopt the snapshot map produced by a transition."""
        self._snapshots = dict(snapshots)

    def checkpoint(self) -> "SnapshotLedger":
        """Independent copy of this ledger for rollback."""
        return SnapshotLedger(self._snapshots)

    def restore(self, checkpoint: "SnapshotLedger") -> None:
        """Return to the state captured by :meth:`checkpoint`."""
        self._snapshots = dict(checkpoint._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()

    def __contains__(self, quest_id: object) -> bool:
        return quest_id in self._snapshots

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshots)

    def __len__(self) -> int:
        return len(self._snapshots)
