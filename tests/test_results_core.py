from __future__ import annotations

from culture_iat.results import ResultRecorder, TrialResult


def _r(block_id: int, i: int) -> TrialResult:
    return TrialResult(block_id, i, f"s{block_id}.{i}", "cow", True, 0, 400.0 + i, i)


def test_recorder_preserves_insertion_order_without_dedupe() -> None:
    rec = ResultRecorder()
    items = [_r(1, 1), _r(1, 2), _r(2, 1), _r(1, 2)]
    for item in items:
        rec.append(item)

    assert rec.snapshot() == tuple(items)
    assert len(rec) == 4
    assert list(rec) == items
    assert rec.for_block(1) == (items[0], items[1], items[3])


def test_snapshot_is_isolated_from_later_appends() -> None:
    rec = ResultRecorder()
    rec.append(_r(1, 1))
    snap = rec.snapshot()
    rec.append(_r(1, 2))
    assert len(snap) == 1
    assert len(rec.snapshot()) == 2
