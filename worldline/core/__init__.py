# worldline/core/__init__.py
from __future__ import annotations

"""
Public re-exports for the worldline core.
Downstream code should import from `worldline.core` rather than the submodules.
"""

from .bank import BankSnapshot, FlavorHistogramBank
from .errors import InvariantViolation, PreconditionError, WorldlineError
from .histogram import CutoffResult, ScalarHistogram, search_cutoff
from .operators import CdagC, EqualTimeOperator, OperatorEvent, OperatorType
from .rebin import rebin_merge, rebin_remap
from .reduce import LocalReducer, MPIReducer, Reducer, TorchDistributedReducer, make_reducer
from .timeline import OperatorTimeline

__all__ = [
    "OperatorType",
    "OperatorEvent",
    "EqualTimeOperator",
    "CdagC",
    "OperatorTimeline",
    "rebin_merge",
    "rebin_remap",
    "Reducer",
    "LocalReducer",
    "TorchDistributedReducer",
    "MPIReducer",
    "make_reducer",
    "ScalarHistogram",
    "CutoffResult",
    "search_cutoff",
    "FlavorHistogramBank",
    "BankSnapshot",
    "WorldlineError",
    "InvariantViolation",
    "PreconditionError",
]
