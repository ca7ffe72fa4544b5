# tests/test_reduce.py
from __future__ import annotations

import sys
import types
from typing import Any

import numpy as np
import pytest

from worldline.core.errors import PreconditionError
from worldline.core.histogram import ScalarHistogram
from worldline.core.reduce import (
    LocalReducer,
    MPIReducer,
    TorchDistributedReducer,
    dist_can_communicate,
    dist_rank,
    dist_world_size,
    env_truthy,
    make_reducer,
)

pytestmark = pytest.mark.unit


def _install_fake_torch(
    monkeypatch: pytest.MonkeyPatch, *, initialized: bool = True, world_size: int = 2, backend: str = "gloo"
) -> dict[str, Any]:
    torch_mod = types.ModuleType("torch")
    dist_mod = types.ModuleType("torch.distributed")
    torch_mod.__path__ = []

    class _FakeTensor:
        def __init__(self, data: list[float]) -> None:
            self._data = [float(v) for v in data]

        def tolist(self) -> list[float]:
            return list(self._data)

    class _ReduceOp:
        SUM = "sum"

    calls: dict[str, Any] = {"barrier": 0, "all_reduce": [], "device": None}

    def _tensor(data: list[float], *_args: object, **kwargs: object) -> _FakeTensor:
        calls["device"] = kwargs.get("device")
        return _FakeTensor(data)

    def _all_reduce(tensor: _FakeTensor, op: object = None) -> None:
        calls["all_reduce"].append(op)
        # every peer holds the same buffer
        tensor._data = [v * world_size for v in tensor._data]

    def _barrier(*_args: object, **_kwargs: object) -> None:
        calls["barrier"] += 1

    dist_mod.is_available = lambda: True
    dist_mod.is_initialized = lambda: initialized
    dist_mod.get_rank = lambda: 1
    dist_mod.get_world_size = lambda: world_size
    dist_mod.get_backend = lambda: backend
    dist_mod.all_reduce = _all_reduce
    dist_mod.barrier = _barrier
    dist_mod.ReduceOp = _ReduceOp
    torch_mod.distributed = dist_mod
    torch_mod.tensor = _tensor
    torch_mod.float64 = object()
    torch_mod.device = lambda *args: ("device",) + args
    torch_mod.cuda = types.SimpleNamespace(is_available=lambda: False)

    monkeypatch.setitem(sys.modules, "torch", torch_mod)
    monkeypatch.setitem(sys.modules, "torch.distributed", dist_mod)
    return calls


class _FakeComm:
    def __init__(self, world_size: int = 3) -> None:
        self.world_size = world_size
        self.barriers = 0
        self.ops: list[Any] = []

    def Get_rank(self) -> int:
        return 0

    def Get_size(self) -> int:
        return self.world_size

    def Allreduce(self, sendbuf: np.ndarray, recvbuf: np.ndarray, op: Any = None) -> None:
        self.ops.append(op)
        recvbuf[:] = sendbuf * self.world_size

    def Barrier(self) -> None:
        self.barriers += 1


def _install_fake_mpi4py(monkeypatch: pytest.MonkeyPatch) -> types.SimpleNamespace:
    pkg = types.ModuleType("mpi4py")
    pkg.__path__ = []
    mpi = types.SimpleNamespace(SUM="mpi_sum", COMM_WORLD=_FakeComm(4))
    pkg.MPI = mpi
    monkeypatch.setitem(sys.modules, "mpi4py", pkg)
    monkeypatch.setitem(sys.modules, "mpi4py.MPI", mpi)
    return mpi


class TestLocalReducer:
    def test_identity_sum_is_a_copy(self):
        src = np.array([1.0, 2.0])
        out = LocalReducer().reduce_sum(src)
        np.testing.assert_array_equal(out, src)
        out[0] = 7.0
        assert src[0] == 1.0
        assert LocalReducer().barrier() is None


class TestTorchDistributedReducer:
    def test_sum_and_barrier(self, monkeypatch):
        calls = _install_fake_torch(monkeypatch, world_size=2)
        red = TorchDistributedReducer()
        out = red.reduce_sum(np.array([1.0, 2.5]))
        np.testing.assert_array_equal(out, [2.0, 5.0])
        red.barrier()
        assert calls["barrier"] == 1
        assert calls["all_reduce"] == ["sum"]
        assert calls["device"] == ("device", "cpu")
        assert (red.rank, red.world_size) == (1, 2)

    def test_requires_initialized_group(self, monkeypatch):
        _install_fake_torch(monkeypatch, initialized=False)
        with pytest.raises(RuntimeError):
            TorchDistributedReducer()

    def test_nccl_without_cuda_is_an_error(self, monkeypatch):
        _install_fake_torch(monkeypatch, backend="nccl")
        with pytest.raises(RuntimeError):
            TorchDistributedReducer()

    def test_rank_and_world_helpers(self, monkeypatch):
        _install_fake_torch(monkeypatch, world_size=3)
        assert dist_can_communicate()
        assert dist_rank() == 1
        assert dist_world_size() == 3

    def test_histogram_cutoff_over_torch(self, monkeypatch):
        calls = _install_fake_torch(monkeypatch, world_size=3)
        h = ScalarHistogram(40, 4.0)
        for i in range(40):
            for _ in range(2):
                h.add_sample((i + 0.5) * 0.1, 1.0)
        res = h.update_cutoff(0.5, 1.0, 1.01, TorchDistributedReducer())
        assert res.converged
        assert calls["barrier"] == 2
        assert len(calls["all_reduce"]) == 2


class TestMPIReducer:
    def test_sum_and_barrier(self, monkeypatch):
        _install_fake_mpi4py(monkeypatch)
        comm = _FakeComm(3)
        red = MPIReducer(comm)
        out = red.reduce_sum([1.0, 2.0])
        np.testing.assert_array_equal(out, [3.0, 6.0])
        red.barrier()
        assert comm.barriers == 1
        assert comm.ops == ["mpi_sum"]
        assert (red.rank, red.world_size) == (0, 3)

    def test_defaults_to_comm_world(self, monkeypatch):
        mpi = _install_fake_mpi4py(monkeypatch)
        red = MPIReducer()
        np.testing.assert_array_equal(red.reduce_sum(np.ones(2)), [4.0, 4.0])
        assert mpi.COMM_WORLD.ops == ["mpi_sum"]

    def test_missing_mpi4py(self, monkeypatch):
        monkeypatch.setitem(sys.modules, "mpi4py", None)
        with pytest.raises(RuntimeError):
            MPIReducer()


class TestMakeReducer:
    def test_local_and_unknown(self):
        assert isinstance(make_reducer("local"), LocalReducer)
        with pytest.raises(PreconditionError):
            make_reducer("carrier-pigeon")

    def test_auto_without_process_group_is_local(self, monkeypatch):
        _install_fake_torch(monkeypatch, initialized=False)
        assert isinstance(make_reducer("auto"), LocalReducer)

    def test_auto_with_process_group_is_torch(self, monkeypatch):
        _install_fake_torch(monkeypatch, world_size=2)
        assert isinstance(make_reducer("auto"), TorchDistributedReducer)

    def test_force_single_process(self, monkeypatch):
        _install_fake_torch(monkeypatch, world_size=2)
        monkeypatch.setenv("WORLDLINE_FORCE_SINGLE_PROCESS", "1")
        assert env_truthy("WORLDLINE_FORCE_SINGLE_PROCESS")
        assert isinstance(make_reducer("auto"), LocalReducer)

    def test_explicit_mpi(self, monkeypatch):
        _install_fake_mpi4py(monkeypatch)
        assert isinstance(make_reducer("MPI"), MPIReducer)
