from __future__ import annotations

import threading

import pytest

from eztags.catalog import CIRCLE, LINE
from eztags.chain import Chain, ReleaseStats
from eztags.record import Record


def _line(handle: int) -> Record:
    return Record(LINE, {"handle": handle, "start": (0, 0, 0), "end": (handle, 0, 0)})


def test_append_keeps_order_and_ownership() -> None:
    chain = Chain(LINE)
    records = [chain.append(_line(handle)) for handle in (1, 2, 3)]

    assert list(chain) == records
    assert len(chain) == 3
    assert chain[1].handle == 2
    assert all(record.chain is chain for record in records)
    assert chain.index(records[2]) == 2
    assert chain.find(3) is records[2]
    assert chain.find(99) is None


def test_append_rejects_foreign_records() -> None:
    chain = Chain(LINE)
    other = Chain(LINE)
    record = other.append(_line(1))

    with pytest.raises(ValueError, match="another chain"):
        chain.append(record)
    with pytest.raises(ValueError, match="already in this chain"):
        other.append(record)
    with pytest.raises(ValueError, match="CIRCLE record"):
        chain.append(Record(CIRCLE))


def test_destroy_releases_each_record_once() -> None:
    chain = Chain(LINE, [_line(1), _line(2)])

    stats = chain.destroy()

    # start, end and the default extrusion of two lines
    assert stats == ReleaseStats(records=2, points=6, buffers=0)
    assert chain.destroyed
    assert len(chain) == 0
    assert chain.destroy() == ReleaseStats()
    with pytest.raises(ValueError, match="destroyed"):
        chain.append(_line(3))


def test_released_records_cannot_be_adopted() -> None:
    record = _line(1)
    Chain(LINE, [record]).destroy()

    assert record.released
    with pytest.raises(ValueError, match="released"):
        Chain(LINE).append(record)


def test_merge_moves_records() -> None:
    first = Chain(LINE, [_line(1)])
    second = Chain(LINE, [_line(2), _line(3)])

    moved = first.merge(second)

    assert moved == 2
    assert [record.handle for record in first] == [1, 2, 3]
    assert all(record.chain is first for record in first)
    assert second.destroyed
    assert len(second) == 0
    with pytest.raises(ValueError):
        first.merge(first)
    with pytest.raises(ValueError, match="cannot merge"):
        first.merge(Chain(CIRCLE))


def test_iteration_is_a_snapshot() -> None:
    chain = Chain(LINE, [_line(1)])
    seen = []
    for record in chain:
        seen.append(record)
        if len(chain) < 3:
            chain.append(_line(len(chain) + 1))

    assert len(seen) == 1
    assert len(chain) == 2


def test_concurrent_appends_are_serialized() -> None:
    chain = Chain(LINE)

    def _worker(offset: int) -> None:
        for index in range(200):
            chain.append(_line(offset + index))

    threads = [threading.Thread(target=_worker, args=(offset * 1000,)) for offset in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(chain) == 800
    assert len({record.handle for record in chain}) == 800
