# worldline/core/bank.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator, List, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from .errors import require
from .histogram import ScalarHistogram
from .reduce import Reducer

if TYPE_CHECKING:
    from ..config import HistogramSettings

__all__ = ["FlavorHistogramBank", "BankSnapshot"]

logger = logging.getLogger(__name__)


class BankSnapshot(BaseModel):
    """Read-out of a bank: flattened buffers indexed bin + flavor * num_bins."""

    model_config = ConfigDict(frozen=True)

    num_bins: int = Field(ge=1)
    num_flavors: int = Field(ge=1)
    max_val: float = Field(gt=0)
    num_samples: Tuple[int, ...]
    mean: Tuple[float, ...]
    counter: Tuple[float, ...]
    sumval: Tuple[float, ...]


class FlavorHistogramBank:
    """One ScalarHistogram per flavor, sharing num_bins and max_val.

    Flattened read-outs (get_mean/get_counter/get_sumval) are laid out
    flavor block by flavor block: index = bin + flavor * num_bins.
    """

    def __init__(self, num_bins: int, max_val: float, num_flavors: int) -> None:
        require(int(num_bins) >= 1, f"num_bins must be >= 1 (got {num_bins})")
        require(float(max_val) > 0.0, f"max_val must be > 0 (got {max_val})")
        require(int(num_flavors) >= 1, f"num_flavors must be >= 1 (got {num_flavors})")
        self._num_bins = int(num_bins)
        self._max_val = float(max_val)
        self._num_flavors = int(num_flavors)
        self._histograms: List[ScalarHistogram] = [
            ScalarHistogram(self._num_bins, self._max_val) for _ in range(self._num_flavors)
        ]

    @classmethod
    def from_settings(cls, settings: "HistogramSettings") -> "FlavorHistogramBank":
        return cls(settings.num_bins, settings.max_dist, settings.num_flavors)

    @property
    def num_bins(self) -> int:
        return self._num_bins

    @property
    def num_flavors(self) -> int:
        return self._num_flavors

    @property
    def max_val(self) -> float:
        return self._max_val

    def _check_flavor(self, flavor: int) -> int:
        require(0 <= flavor < self._num_flavors, f"flavor {flavor} out of range [0, {self._num_flavors})")
        return int(flavor)

    def histogram(self, flavor: int) -> ScalarHistogram:
        return self._histograms[self._check_flavor(flavor)]

    def __getitem__(self, flavor: int) -> ScalarHistogram:
        return self.histogram(flavor)

    def __iter__(self) -> Iterator[ScalarHistogram]:
        return iter(self._histograms)

    def __len__(self) -> int:
        return self._num_flavors

    def add_sample(self, distance: float, value: float, flavor: int) -> bool:
        return self._histograms[self._check_flavor(flavor)].add_sample(distance, value)

    def get_mean(self) -> np.ndarray:
        return np.concatenate([h.get_mean() for h in self._histograms])

    def get_counter(self) -> np.ndarray:
        return np.concatenate([h.get_counter() for h in self._histograms])

    def get_sumval(self) -> np.ndarray:
        return np.concatenate([h.get_sumval() for h in self._histograms])

    def num_samples(self) -> np.ndarray:
        return np.array([h.num_sample for h in self._histograms], dtype=np.int64)

    def update_cutoff(
        self,
        cutoff_ratio: float,
        maxdist: float,
        magnification: float,
        reducer: Reducer,
    ) -> float:
        """Collective: one cutoff search per flavor, reconciled to a shared cutoff.

        The largest per-flavor candidate wins, unconverged ones included, and
        is clamped into [max_val / num_bins, max_val].
        """
        maxdist_new = -1.0
        for flavor, hist in enumerate(self._histograms):
            result = hist.update_cutoff(cutoff_ratio, maxdist, magnification, reducer)
            logger.debug(
                "flavor %d: cutoff candidate %g (converged=%s)", flavor, result.maxdist, result.converged
            )
            maxdist_new = max(maxdist_new, result.maxdist)
        require(maxdist_new > 0.0, f"cutoff search produced a non-positive candidate {maxdist_new}")

        clamped = max(min(self._max_val, maxdist_new), self._max_val / self._num_bins)
        logger.info("cutoff updated: %g -> %g (candidate %g)", maxdist, clamped, maxdist_new)
        return clamped

    def reset(self) -> None:
        for hist in self._histograms:
            hist.reset()

    def snapshot(self) -> BankSnapshot:
        return BankSnapshot(
            num_bins=self._num_bins,
            num_flavors=self._num_flavors,
            max_val=self._max_val,
            num_samples=tuple(int(n) for n in self.num_samples()),
            mean=tuple(float(x) for x in self.get_mean()),
            counter=tuple(float(x) for x in self.get_counter()),
            sumval=tuple(float(x) for x in self.get_sumval()),
        )
