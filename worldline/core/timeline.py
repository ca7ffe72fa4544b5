# worldline/core/timeline.py
from __future__ import annotations

import bisect
import logging
from typing import Iterable, Iterator, List, Optional, Set

import numpy as np

from .errors import InvariantViolation
from .operators import EventKey, OperatorEvent

__all__ = ["OperatorTimeline", "format_events"]

logger = logging.getLogger(__name__)


def format_events(events: "OperatorTimeline") -> str:
    return "list: \n" + " ".join(f"{ev.time}[{ev.flavor}]" for ev in events)


class OperatorTimeline:
    """Time-ordered set of operator events for one Markov-chain configuration.

    Elements are stored as (time, kind, flavor) snapshots, so an event object
    can be rebound by the caller after insertion without touching the stored
    configuration. Equal-time elements are kept in insertion order.

    insert() of an element already present and erase() of an absent one are
    fatal: both raise InvariantViolation and leave the timeline unchanged.
    """

    def __init__(self, events: Optional[Iterable[OperatorEvent]] = None) -> None:
        self._times: List[float] = []
        self._keys: List[EventKey] = []
        self._members: Set[EventKey] = set()
        for ev in events or ():
            self.insert(ev)

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[OperatorEvent]:
        for key in list(self._keys):
            yield OperatorEvent.from_key(key)

    def __contains__(self, op: object) -> bool:
        if not isinstance(op, OperatorEvent):
            return False
        return op.key() in self._members

    def find(self, op: OperatorEvent) -> bool:
        return op.key() in self._members

    def insert(self, op: OperatorEvent) -> None:
        key = op.key()
        if key in self._members:
            self._fail(f"cannot insert operator at {op.time} {int(op.kind)} {op.flavor}: already present", op)
        pos = bisect.bisect_right(self._times, key[0])
        self._times.insert(pos, key[0])
        self._keys.insert(pos, key)
        self._members.add(key)

    def erase(self, op: OperatorEvent) -> None:
        key = op.key()
        if key not in self._members:
            self._fail(f"cannot erase operator at {op.time} {int(op.kind)} {op.flavor}: not found", op)
        lo = bisect.bisect_left(self._times, key[0])
        hi = bisect.bisect_right(self._times, key[0])
        pos = lo + self._keys[lo:hi].index(key)
        del self._times[pos]
        del self._keys[pos]
        self._members.discard(key)

    def range(self, lo: float, hi: float) -> Iterator[OperatorEvent]:
        """Events with lo <= time < hi, in time order."""
        start = bisect.bisect_left(self._times, float(lo))
        stop = bisect.bisect_left(self._times, float(hi))
        for key in self._keys[start:max(start, stop)]:
            yield OperatorEvent.from_key(key)

    def count_range(self, lo: float, hi: float) -> int:
        start = bisect.bisect_left(self._times, float(lo))
        stop = bisect.bisect_left(self._times, float(hi))
        return max(0, stop - start)

    def first(self) -> OperatorEvent:
        if not self._keys:
            raise IndexError("first() on an empty timeline")
        return OperatorEvent.from_key(self._keys[0])

    def last(self) -> OperatorEvent:
        if not self._keys:
            raise IndexError("last() on an empty timeline")
        return OperatorEvent.from_key(self._keys[-1])

    def times(self) -> np.ndarray:
        return np.asarray(self._times, dtype=float)

    def clear(self) -> None:
        self._times.clear()
        self._keys.clear()
        self._members.clear()

    def copy(self) -> "OperatorTimeline":
        out = OperatorTimeline()
        out._times = list(self._times)
        out._keys = list(self._keys)
        out._members = set(self._members)
        return out

    def dump(self) -> str:
        return format_events(self)

    def _fail(self, message: str, op: OperatorEvent) -> None:
        dump = self.dump()
        logger.error("%s\n%s", message, dump)
        raise InvariantViolation(message, event=op.copy(), dump=dump)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OperatorTimeline):
            return NotImplemented
        return self._keys == other._keys

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"OperatorTimeline(n={len(self._keys)})"
