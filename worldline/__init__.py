# worldline/__init__.py
from importlib.metadata import PackageNotFoundError as _PNF
from importlib.metadata import version as _v

try:
    __version__ = _v("worldline")
except _PNF:
    __version__ = "0.1.0+dev"

from .core import (
    CdagC,
    EqualTimeOperator,
    FlavorHistogramBank,
    InvariantViolation,
    LocalReducer,
    OperatorEvent,
    OperatorTimeline,
    OperatorType,
    PreconditionError,
    ScalarHistogram,
    make_reducer,
    rebin_merge,
    rebin_remap,
)

__all__ = [
    "OperatorType", "OperatorEvent", "EqualTimeOperator", "CdagC",
    "OperatorTimeline",
    "ScalarHistogram", "FlavorHistogramBank",
    "rebin_merge", "rebin_remap",
    "LocalReducer", "make_reducer",
    "InvariantViolation", "PreconditionError",
    "__version__",
]
