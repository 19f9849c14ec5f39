from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator

from .record import Record
from .schema import EntitySchema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseStats:
    records: int = 0
    points: int = 0
    buffers: int = 0


class Chain:
    """Ordered, owning collection of records that share one schema.

    The chain is the only owner of its records: a record can be appended to
    one chain at a time, and destroying the chain releases every record it
    holds.
    """

    def __init__(self, schema: EntitySchema, records: Iterable[Record] = ()) -> None:
        self.schema = schema
        self._records: list[Record] = []
        self._lock = threading.Lock()
        self._destroyed = False
        self.extend(records)

    @property
    def dxftype(self) -> str:
        return self.schema.name

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def append(self, record: Record) -> Record:
        with self._lock:
            self._adopt(record)
            self._records.append(record)
        return record

    def extend(self, records: Iterable[Record]) -> int:
        count = 0
        with self._lock:
            for record in records:
                self._adopt(record)
                self._records.append(record)
                count += 1
        return count

    def merge(self, other: "Chain") -> int:
        if other is self:
            raise ValueError("cannot merge a chain into itself")
        if other.schema.name != self.schema.name:
            raise ValueError(f"cannot merge a {other.dxftype} chain into a {self.dxftype} chain")
        with other._lock:
            moved = list(other._records)
            other._records.clear()
            other._destroyed = True
        for record in moved:
            record.chain = None
        return self.extend(moved)

    def iter(self) -> Iterator[Record]:
        return iter(list(self._records))

    def find(self, handle: int) -> Record | None:
        for record in self._records:
            if record.handle == handle:
                return record
        return None

    def index(self, record: Record) -> int:
        for position, item in enumerate(self._records):
            if item is record:
                return position
        raise ValueError(f"{record!r} is not in this chain")

    def destroy(self) -> ReleaseStats:
        with self._lock:
            records, self._records = self._records, []
            self._destroyed = True
        points = 0
        buffers = 0
        released = 0
        for record in records:
            if record.released:
                continue
            record_points, record_buffers = record.release()
            points += record_points
            buffers += record_buffers
            released += 1
        if released:
            logger.debug("released %d %s records", released, self.dxftype)
        return ReleaseStats(records=released, points=points, buffers=buffers)

    def __iter__(self) -> Iterator[Record]:
        return self.iter()

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, position: int) -> Record:
        return self._records[position]

    def __repr__(self) -> str:
        state = " destroyed" if self._destroyed else ""
        return f"<Chain {self.dxftype} records={len(self._records)}{state}>"

    def _adopt(self, record: Record) -> None:
        if self._destroyed:
            raise ValueError(f"cannot append to a destroyed {self.dxftype} chain")
        if record.released:
            raise ValueError(f"{record!r} has been released")
        if record.schema.name != self.schema.name:
            raise ValueError(f"cannot append a {record.dxftype} record to a {self.dxftype} chain")
        if record.chain is not None:
            if record.chain is self:
                raise ValueError(f"{record!r} is already in this chain")
            raise ValueError(f"{record!r} already belongs to another chain")
        record.chain = self
