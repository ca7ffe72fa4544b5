# worldline/pipeline.py
from __future__ import annotations

import logging
from typing import Optional

from .config import HistogramSettings
from .core.bank import FlavorHistogramBank
from .core.reduce import Reducer, make_reducer

logger = logging.getLogger(__name__)

__all__ = ["AdaptiveCutoff"]


class AdaptiveCutoff:
    """Periodic, collective re-estimation of the sampling cutoff.

    Owns the current cutoff consumed by proposal logic. step() must be called
    by every worker with the same sweep sequence, since updates are
    collective.
    """

    def __init__(
        self,
        bank: FlavorHistogramBank,
        settings: HistogramSettings,
        reducer: Optional[Reducer] = None,
    ) -> None:
        self.bank = bank
        self.settings = settings
        self.reducer = reducer if reducer is not None else make_reducer(settings.reducer)
        self.maxdist = float(min(settings.max_dist, bank.max_val))
        self.num_updates = 0

    @classmethod
    def from_settings(
        cls, settings: HistogramSettings, reducer: Optional[Reducer] = None
    ) -> "AdaptiveCutoff":
        return cls(FlavorHistogramBank.from_settings(settings), settings, reducer)

    def record(self, distance: float, value: float, flavor: int) -> bool:
        return self.bank.add_sample(distance, value, flavor)

    def step(self, sweep: int) -> Optional[float]:
        """Run update() on positive multiples of update_interval; None otherwise."""
        if int(sweep) <= 0 or int(sweep) % self.settings.update_interval != 0:
            return None
        return self.update()

    def update(self) -> float:
        self.maxdist = self.bank.update_cutoff(
            self.settings.cutoff_ratio,
            self.maxdist,
            self.settings.magnification,
            self.reducer,
        )
        self.num_updates += 1
        if self.settings.reset_after_update:
            self.bank.reset()
        logger.info("cutoff update #%d: maxdist=%g", self.num_updates, self.maxdist)
        return self.maxdist
