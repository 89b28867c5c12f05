"""Tests for the single-slot snapshot ledger."""
from questledger.schemas.quest import Quest, QuestProgress
from questledger.services.snapshot_ledger import SnapshotLedger, with_snapshot, without_snapshot


def _quest(quest_id: str, current: int) -> Quest:
    return Quest(id=quest_id, title="Stretch", stat_tags=("VIT",), progress=QuestProgress(current=current, total=5))


def test_put_overwrites_single_slot():
    ledger = SnapshotLedger()

    ledger.put("q1", _quest("q1", 1))
    ledger.put("q1", _quest("q1", 4))

    assert len(ledger) == 1
    assert ledger.get("q1").progress.current == 4


def test_take_consumes_snapshot():
    ledger = SnapshotLedger()
    ledger.put("q1", _quest("q1", 2))

    assert ledger.take("q1").progress.current == 2
    assert ledger.take("q1") is None
    assert "q1" not in ledger


def test_checkpoint_is_independent():
    ledger = SnapshotLedger()
    ledger.put("q1", _quest("q1", 1))
    checkpoint = ledger.checkpoint()

    ledger.put("q2", _quest("q2", 3))
    ledger.take("q1")
    assert set(checkpoint) == {"q1"}

    ledger.restore(checkpoint)
    assert set(ledger) == {"q1"}
    assert ledger.as_map() == {"q1": _quest("q1", 1)}


def test_map_helpers_do_not_mutate_input():
    original = {"q1": _quest("q1", 1)}

    added = with_snapshot(original, _quest("q2", 0))
    removed = without_snapshot(original, "q1")

    assert set(original) == {"q1"}
    assert set(added) == {"q1", "q2"}
    assert removed == {}
