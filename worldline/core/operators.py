# worldline/core/operators.py: operator events on the imaginary-time axis
#
# Summary: OperatorEvent is the mutable value slot handed around by proposal
#          logic; EqualTimeOperator bundles 2N flavors sharing one time
#          (c^dagger(f0) c(f1) c^dagger(f2) c(f3) ...).
# Invariants: ordering of events is by time alone; identity (==, key()) is the
#             exact (time, kind, flavor) triple.
from __future__ import annotations

import numbers
from enum import IntEnum
from typing import Any, Iterable, Tuple

from .errors import require

__all__ = ["OperatorType", "OperatorEvent", "EqualTimeOperator", "CdagC", "EventKey"]

EventKey = Tuple[float, "OperatorType", int]


class OperatorType(IntEnum):
    CREATION = 0
    ANNIHILATION = 1
    INVALID = 2


def _check_flavor(flavor: Any) -> int:
    require(
        isinstance(flavor, numbers.Integral) and not isinstance(flavor, bool) and int(flavor) >= 0,
        f"flavor must be a non-negative integer (got {flavor!r})",
    )
    return int(flavor)


def _check_kind(kind: Any) -> OperatorType:
    require(isinstance(kind, OperatorType), f"kind must be an OperatorType (got {kind!r})")
    return kind


def _time_of(other: Any) -> Any:
    if isinstance(other, OperatorEvent):
        return other.time
    if isinstance(other, numbers.Real):
        return float(other)
    return NotImplemented


class OperatorEvent:
    """A creation or annihilation operator at a continuous time.

    Comparisons (<, <=, >, >=) look at the time only and also accept a bare
    number, which is what range queries need. ``==`` requires time, kind and
    flavor to match; never deduplicate on time alone.
    """

    __slots__ = ("_time", "_kind", "_flavor")

    def __init__(
        self,
        time: float = 0.0,
        kind: OperatorType = OperatorType.INVALID,
        flavor: int = 0,
    ) -> None:
        self._time = float(time)
        self._kind = _check_kind(kind)
        self._flavor = _check_flavor(flavor)

    @property
    def time(self) -> float:
        return self._time

    @time.setter
    def time(self, value: float) -> None:
        self._time = float(value)

    @property
    def kind(self) -> OperatorType:
        return self._kind

    @kind.setter
    def kind(self, value: OperatorType) -> None:
        self._kind = _check_kind(value)

    @property
    def flavor(self) -> int:
        return self._flavor

    @flavor.setter
    def flavor(self, value: int) -> None:
        self._flavor = _check_flavor(value)

    # Explicit rebinding when a value slot is reused by proposal logic.
    def set_time(self, time: float) -> None:
        self.time = time

    def set_kind(self, kind: OperatorType) -> None:
        self.kind = kind

    def set_flavor(self, flavor: int) -> None:
        self.flavor = flavor

    def key(self) -> EventKey:
        return (self._time, self._kind, self._flavor)

    def copy(self) -> "OperatorEvent":
        return OperatorEvent(self._time, self._kind, self._flavor)

    @classmethod
    def from_key(cls, key: EventKey) -> "OperatorEvent":
        return cls(key[0], key[1], key[2])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OperatorEvent):
            return NotImplemented
        return self.key() == other.key()

    # mutable: identity may change after insertion into a set
    __hash__ = None  # type: ignore[assignment]

    def __lt__(self, other: Any) -> bool:
        t = _time_of(other)
        return NotImplemented if t is NotImplemented else self._time < t

    def __le__(self, other: Any) -> bool:
        t = _time_of(other)
        return NotImplemented if t is NotImplemented else self._time <= t

    def __gt__(self, other: Any) -> bool:
        t = _time_of(other)
        return NotImplemented if t is NotImplemented else self._time > t

    def __ge__(self, other: Any) -> bool:
        t = _time_of(other)
        return NotImplemented if t is NotImplemented else self._time >= t

    def __repr__(self) -> str:
        return f"OperatorEvent(time={self._time!r}, kind={self._kind.name}, flavor={self._flavor})"


class EqualTimeOperator:
    """Immutable product of N creation and N annihilation operators at one time.

    Ordering is lexicographic over the first N flavor slots only; the
    remaining N slots and the time do not take part. Equality and hashing use
    every slot and the time.
    """

    __slots__ = ("_flavors", "_time")

    def __init__(self, flavors: Iterable[int], time: float = -1.0) -> None:
        flv = tuple(int(f) for f in flavors)
        require(len(flv) >= 2 and len(flv) % 2 == 0, f"need 2N flavors with N >= 1 (got {len(flv)})")
        self._flavors = flv
        self._time = float(time)

    @classmethod
    def empty(cls, order: int) -> "EqualTimeOperator":
        require(int(order) >= 1, f"order must be >= 1 (got {order})")
        return cls((-1,) * (2 * int(order)), -1.0)

    @property
    def order(self) -> int:
        return len(self._flavors) // 2

    @property
    def flavors(self) -> Tuple[int, ...]:
        return self._flavors

    @property
    def time(self) -> float:
        return self._time

    def get_time(self) -> float:
        return self._time

    def flavor(self, idx: int) -> int:
        require(0 <= idx < len(self._flavors), f"flavor index {idx} out of range [0, {len(self._flavors)})")
        return self._flavors[idx]

    def __len__(self) -> int:
        return len(self._flavors)

    def _leading(self, other: "EqualTimeOperator") -> Tuple[Tuple[int, ...], Tuple[int, ...]]:
        require(
            self.order == other.order,
            f"cannot order EqualTimeOperator of order {self.order} against order {other.order}",
        )
        n = self.order
        return self._flavors[:n], other._flavors[:n]

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, EqualTimeOperator):
            return NotImplemented
        a, b = self._leading(other)
        return a < b

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, EqualTimeOperator):
            return NotImplemented
        a, b = self._leading(other)
        return a > b

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EqualTimeOperator):
            return NotImplemented
        return self._flavors == other._flavors and self._time == other._time

    def __hash__(self) -> int:
        return hash((self._flavors, self._time))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(flavors={self._flavors!r}, time={self._time!r})"


class CdagC(EqualTimeOperator):
    """c^dagger(f0) c(f1) at equal time."""

    __slots__ = ()

    def __init__(self, flavors: Iterable[int] = (-1, -1), time: float = -1.0) -> None:
        super().__init__(flavors, time)
        require(self.order == 1, f"CdagC takes exactly 2 flavors (got {len(self._flavors)})")
