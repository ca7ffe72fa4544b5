# worldline/core/rebin.py: stateless rebinning of histogram buffers
#
# Summary: merge contiguous bins by an integer factor (sum-conserving), or
#          remap bin centers onto a new [0, new_max) grid (overflow dropped).
# Invariants: inputs are never modified; outputs are fresh float64 arrays.
from __future__ import annotations

from typing import Any

import numpy as np

from .errors import require

__all__ = ["rebin_merge", "rebin_remap", "remap_bins"]


def rebin_merge(values: Any, factor: int) -> np.ndarray:
    """Sum each run of `factor` consecutive elements into one.

    >>> rebin_merge([1, 2, 3, 4, 5, 6], 2).tolist()
    [3.0, 7.0, 11.0]
    """
    a = np.asarray(values, dtype=float)
    k = int(factor)
    require(k >= 1, f"rebin factor must be >= 1 (got {factor})")
    require(a.size % k == 0, f"length {a.size} is not divisible by rebin factor {k}")
    return a.reshape(-1, k).sum(axis=1)


def remap_bins(values: Any, max_val: float, new_max_val: float, new_len: int) -> np.ndarray:
    # Unchecked core of rebin_remap: new_max_val may exceed max_val.
    a = np.asarray(values, dtype=float)
    n = int(new_len)
    if a.size == 0:
        return np.zeros(n, dtype=float)
    centers = (np.arange(a.size, dtype=float) + 0.5) * (float(max_val) / a.size)
    pos = np.floor(n * centers / float(new_max_val))
    keep = (pos >= 0) & (pos < n)
    return np.bincount(pos[keep].astype(np.int64), weights=a[keep], minlength=n).astype(float)


def rebin_remap(values: Any, max_val: float, new_max_val: float, new_len: int) -> np.ndarray:
    """Map bins over [0, max_val) onto `new_len` bins over [0, new_max_val).

    Each source bin contributes its whole value to the destination bin that
    contains its center. Source bins whose center falls at or beyond
    new_max_val are dropped, so the total can only shrink.
    """
    require(int(new_len) >= 1, f"new_len must be >= 1 (got {new_len})")
    require(float(new_max_val) > 0.0, f"new_max_val must be > 0 (got {new_max_val})")
    require(
        float(new_max_val) <= float(max_val),
        f"new_max_val {new_max_val} exceeds source bound {max_val}",
    )
    return remap_bins(values, max_val, new_max_val, new_len)
