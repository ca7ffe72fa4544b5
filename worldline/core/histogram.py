# worldline/core/histogram.py: fixed-bin accumulator with adaptive cutoff search
#
# Summary: ScalarHistogram bins (distance, value) samples over [0, max_val) and
#          keeps per-bin sum, sum of squares and count. update_cutoff() sums
#          count/sum buffers over all workers and searches a new cutoff by
#          coarse rebinning (search_cutoff).
# Invariants: out-of-range samples never mutate state; geometry survives
#             reset(); update_cutoff() is a collective call.
from __future__ import annotations

import logging
import math
from typing import Any, NamedTuple

import numpy as np

from .errors import require
from .rebin import remap_bins
from .reduce import Reducer

__all__ = [
    "CutoffResult",
    "ScalarHistogram",
    "search_cutoff",
    "MIN_COUNT",
    "COARSE_BINS",
    "REFINE_ROUNDS",
]

logger = logging.getLogger(__name__)

MIN_COUNT = 10  # samples per coarse bin for a stable mean
COARSE_BINS = 4
REFINE_ROUNDS = 10


class CutoffResult(NamedTuple):
    converged: bool
    maxdist: float


def _check_cutoff_args(cutoff_ratio: float, maxdist: float, magnification: float) -> None:
    require(0.0 <= cutoff_ratio <= 1.0, f"cutoff_ratio must be in [0, 1] (got {cutoff_ratio})")
    require(magnification >= 1.0, f"magnification must be >= 1 (got {magnification})")
    require(maxdist > 0.0, f"maxdist must be > 0 (got {maxdist})")


def search_cutoff(
    counter: Any,
    sumval: Any,
    max_val: float,
    maxdist: float,
    cutoff_ratio: float,
    magnification: float,
) -> CutoffResult:
    """Move `maxdist` until the tail-to-peak mean ratio matches `cutoff_ratio`.

    Each round views the (already aggregated) buffers as COARSE_BINS bins over
    [0, maxdist). A coarse bin with fewer than MIN_COUNT samples ends the
    search unconverged; otherwise the cutoff grows by `magnification` when the
    last coarse mean relative to the peak mean exceeds `cutoff_ratio`, and
    shrinks when it falls below it.
    """
    _check_cutoff_args(cutoff_ratio, maxdist, magnification)
    counter = np.asarray(counter, dtype=float)
    sumval = np.asarray(sumval, dtype=float)
    d = float(maxdist)

    for rnd in range(REFINE_ROUNDS):
        counts = remap_bins(counter, max_val, d, COARSE_BINS)
        sums = remap_bins(sumval, max_val, d, COARSE_BINS)

        if np.any(counts < MIN_COUNT):
            logger.debug("cutoff search round %d: under-sampled coarse bins %s at maxdist=%g", rnd, counts, d)
            return CutoffResult(False, d)

        means = sums / counts
        peak = float(np.max(means))
        if peak < 0.0:
            logger.debug("cutoff search round %d: negative peak mean %g at maxdist=%g", rnd, peak, d)
            return CutoffResult(False, d)

        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = float(np.float64(means[-1]) / np.float64(peak))
        if ratio > cutoff_ratio:
            d *= magnification
        elif ratio < cutoff_ratio:
            d /= magnification
        logger.debug("cutoff search round %d: ratio=%g -> maxdist=%g", rnd, ratio, d)

    return CutoffResult(True, d)


class ScalarHistogram:
    def __init__(self, num_bins: int = 0, max_val: float = 0.0) -> None:
        self.init(num_bins, max_val)

    def init(self, num_bins: int, max_val: float) -> None:
        """(Re)set geometry and clear all statistics."""
        require(int(num_bins) >= 0, f"num_bins must be >= 0 (got {num_bins})")
        require(
            int(num_bins) == 0 or float(max_val) > 0.0,
            f"max_val must be > 0 for a non-empty histogram (got {max_val})",
        )
        self._num_bins = int(num_bins)
        self._max_val = float(max_val)
        self._num_sample = 0
        self._sumval = np.zeros(self._num_bins, dtype=float)
        self._sumval2 = np.zeros(self._num_bins, dtype=float)
        self._counter = np.zeros(self._num_bins, dtype=float)

    @property
    def num_bins(self) -> int:
        return self._num_bins

    @property
    def max_val(self) -> float:
        return self._max_val

    @property
    def num_sample(self) -> int:
        return self._num_sample

    def add_sample(self, distance: float, value: float) -> bool:
        if self._num_bins == 0:
            return False
        x = self._num_bins * float(distance) / self._max_val
        if not math.isfinite(x):
            return False
        pos = math.floor(x)
        if 0 <= pos < self._num_bins:
            self._num_sample += 1
            self._sumval[pos] += value
            self._sumval2[pos] += value * value
            self._counter[pos] += 1
            return True
        return False

    def get_mean(self) -> np.ndarray:
        # Empty bins give NaN; callers must tolerate it.
        with np.errstate(divide="ignore", invalid="ignore"):
            return self._sumval / self._counter

    def get_counter(self) -> np.ndarray:
        return self._counter.copy()

    def get_sumval(self) -> np.ndarray:
        return self._sumval.copy()

    def get_sumval2(self) -> np.ndarray:
        return self._sumval2.copy()

    def reset(self) -> None:
        self._num_sample = 0
        self._sumval.fill(0.0)
        self._sumval2.fill(0.0)
        self._counter.fill(0.0)

    def update_cutoff(
        self,
        cutoff_ratio: float,
        maxdist: float,
        magnification: float,
        reducer: Reducer,
    ) -> CutoffResult:
        """Collective: aggregate counts/sums over all workers, then search_cutoff().

        The returned cutoff is the last candidate even when the search did
        not converge; the caller decides whether to keep its previous value.
        """
        _check_cutoff_args(cutoff_ratio, maxdist, magnification)

        reducer.barrier()
        counter_gathered = np.asarray(reducer.reduce_sum(self._counter), dtype=float)
        sumval_gathered = np.asarray(reducer.reduce_sum(self._sumval), dtype=float)
        reducer.barrier()
        require(
            counter_gathered.shape == self._counter.shape and sumval_gathered.shape == self._sumval.shape,
            "reducer returned buffers of unexpected length",
        )

        return search_cutoff(
            counter_gathered,
            sumval_gathered,
            self._max_val,
            maxdist,
            cutoff_ratio,
            magnification,
        )

    def __repr__(self) -> str:
        return f"ScalarHistogram(num_bins={self._num_bins}, max_val={self._max_val}, num_sample={self._num_sample})"
