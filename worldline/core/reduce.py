# worldline/core/reduce.py
from __future__ import annotations

import logging
import os
from typing import Any, Optional, Protocol, TYPE_CHECKING

import numpy as np

from .errors import PreconditionError

if TYPE_CHECKING:  # pragma: no cover
    import torch

logger = logging.getLogger(__name__)

__all__ = [
    "Reducer",
    "LocalReducer",
    "TorchDistributedReducer",
    "MPIReducer",
    "make_reducer",
    "env_truthy",
    "dist_can_communicate",
    "dist_rank",
    "dist_world_size",
]

BACKENDS = ("auto", "local", "torch", "mpi")


class Reducer(Protocol):
    """Blocking collective over a fixed worker set.

    Every worker must issue the same calls in the same order; a worker that
    skips one leaves its peers blocked.
    """

    def reduce_sum(self, values: Any) -> np.ndarray: ...
    def barrier(self) -> None: ...


def env_truthy(name: str) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    return raw in {"1", "true", "yes", "y", "on"}


def _dist_module() -> Optional[Any]:
    try:
        import torch.distributed as dist  # local import
    except ImportError:
        return None
    return dist if getattr(dist, "is_available", lambda: False)() else None


def _dist_rank_and_world(dist: Any) -> Optional[tuple[int, int]]:
    if dist.is_initialized():
        return int(dist.get_rank()), int(dist.get_world_size())
    return None


def dist_can_communicate() -> bool:
    """True when torch.distributed is initialized with world_size > 1."""
    dist = _dist_module()
    if dist is None:
        return False
    rw = _dist_rank_and_world(dist)
    if not rw:
        return False
    return rw[1] > 1


def dist_rank() -> int:
    dist = _dist_module()
    if dist is not None:
        rw = _dist_rank_and_world(dist)
        if rw:
            return rw[0]
    return 0


def dist_world_size() -> int:
    dist = _dist_module()
    if dist is not None:
        rw = _dist_rank_and_world(dist)
        if rw:
            return max(1, rw[1])
    return 1


class LocalReducer:
    """Single-worker reducer: the sum over one worker is the input itself."""

    def reduce_sum(self, values: Any) -> np.ndarray:
        return np.array(values, dtype=float, copy=True)

    def barrier(self) -> None:
        return None


def _reduce_device(dist: Any) -> "torch.device":
    import torch  # local import

    backend = dist.get_backend()
    if backend == "nccl":
        if not torch.cuda.is_available():
            raise RuntimeError("torch.distributed backend is nccl but CUDA is unavailable")
        local_rank = os.environ.get("LOCAL_RANK")
        return torch.device("cuda", int(local_rank) if local_rank not in (None, "") else 0)
    return torch.device("cpu")


class TorchDistributedReducer:
    """Collective sum over the default torch.distributed process group."""

    def __init__(self) -> None:
        dist = _dist_module()
        if dist is None:
            raise RuntimeError("torch.distributed is not available")
        if not dist.is_initialized():
            raise RuntimeError("torch.distributed process group is not initialized")
        self._dist = dist
        self._device = _reduce_device(dist)

    @property
    def rank(self) -> int:
        return int(self._dist.get_rank())

    @property
    def world_size(self) -> int:
        return int(self._dist.get_world_size())

    def reduce_sum(self, values: Any) -> np.ndarray:
        import torch  # local import

        data = np.asarray(values, dtype=float).tolist()
        tensor = torch.tensor(data, dtype=torch.float64, device=self._device)
        self._dist.all_reduce(tensor, op=self._dist.ReduceOp.SUM)
        return np.asarray(tensor.tolist(), dtype=float)

    def barrier(self) -> None:
        self._dist.barrier()


class MPIReducer:
    """Collective sum over an mpi4py communicator (COMM_WORLD by default)."""

    def __init__(self, comm: Any = None) -> None:
        try:
            from mpi4py import MPI  # local import
        except ImportError as exc:
            raise RuntimeError("mpi4py is required for the mpi reducer") from exc
        self._op_sum = MPI.SUM
        self._comm = comm if comm is not None else MPI.COMM_WORLD

    @property
    def rank(self) -> int:
        return int(self._comm.Get_rank())

    @property
    def world_size(self) -> int:
        return int(self._comm.Get_size())

    def reduce_sum(self, values: Any) -> np.ndarray:
        sendbuf = np.ascontiguousarray(values, dtype=np.float64)
        recvbuf = np.empty_like(sendbuf)
        self._comm.Allreduce(sendbuf, recvbuf, op=self._op_sum)
        return recvbuf

    def barrier(self) -> None:
        self._comm.Barrier()


def make_reducer(backend: str = "auto") -> Reducer:
    name = str(backend).strip().lower()
    if name not in BACKENDS:
        raise PreconditionError(f"unknown reducer backend {backend!r}; expected one of {BACKENDS}")
    if name == "auto":
        if not env_truthy("WORLDLINE_FORCE_SINGLE_PROCESS") and dist_can_communicate():
            name = "torch"
        else:
            name = "local"
    logger.debug("Using %s reducer.", name)
    if name == "torch":
        return TorchDistributedReducer()
    if name == "mpi":
        return MPIReducer()
    return LocalReducer()
