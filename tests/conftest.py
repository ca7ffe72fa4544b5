# tests/conftest.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Iterable, List, Tuple

import numpy as np
import pytest

# De-risked fallback for non-editable installs: append only (no shadowing).
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.append(str(repo_root))


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture
def make_timeline() -> Callable[..., object]:
    """OperatorTimeline factory from (time, kind, flavor) triples."""
    from worldline.core.operators import OperatorEvent
    from worldline.core.timeline import OperatorTimeline

    def _make(triples: Iterable[Tuple[float, Any, int]]):
        tl = OperatorTimeline()
        for t, kind, flavor in triples:
            tl.insert(OperatorEvent(t, kind, flavor))
        return tl

    return _make


class RecordingReducer:
    """Stands in for `world_size` identical workers: every sum is scaled."""

    def __init__(self, world_size: int = 1) -> None:
        self.world_size = int(world_size)
        self.calls: List[str] = []

    def reduce_sum(self, values: Any) -> np.ndarray:
        self.calls.append("reduce_sum")
        return np.asarray(values, dtype=float) * self.world_size

    def barrier(self) -> None:
        self.calls.append("barrier")


@pytest.fixture
def recording_reducer() -> RecordingReducer:
    return RecordingReducer(1)


@pytest.fixture
def recording_reducer_factory() -> Callable[[int], RecordingReducer]:
    return RecordingReducer


@pytest.fixture
def filled_histogram(rng):
    """40 bins over [0, 4) with an exponentially decaying signal."""
    from worldline.core.histogram import ScalarHistogram

    h = ScalarHistogram(40, 4.0)
    for d in rng.uniform(0.0, 4.0, size=4000):
        h.add_sample(d, float(np.exp(-d)))
    return h
