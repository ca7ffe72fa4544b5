# worldline/core/errors.py
from __future__ import annotations

from typing import Any

__all__ = ["WorldlineError", "InvariantViolation", "PreconditionError", "require"]


class WorldlineError(Exception):
    pass


class InvariantViolation(WorldlineError, RuntimeError):
    """Raised when a mutation would corrupt the sampled configuration.

    The run cannot continue: the timeline is left untouched, but the caller's
    view of the Markov-chain state is already inconsistent.
    """

    def __init__(self, message: str, *, event: Any = None, dump: str = "") -> None:
        super().__init__(message)
        self.event = event
        self.dump = dump


class PreconditionError(WorldlineError, ValueError):
    """Programmer error in calling code (bad index, bad parameter range)."""


def require(cond: bool, message: str) -> None:
    if not cond:
        raise PreconditionError(message)
