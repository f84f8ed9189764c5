import ctypes
import logging

import numpy as np
import pytest

import cudautils
from cudautils import memory
from cudautils.memory import (
    Memory,
    MemoryKind,
    cudaAllocMapped,
    cudaMalloc,
    get_pointer,
    register_mapped_memory,
    register_memory,
)


@pytest.mark.parametrize("size", [1, 64, 1 << 20])
def test_malloc_then_drop_frees_exactly_once(runtime, size):
    mem = cudaMalloc(size, allocator=runtime)
    ptr = mem.ptr
    assert mem.kind == MemoryKind.DEVICE
    assert mem.size == size
    assert mem.owning
    assert runtime.calls == [("malloc", size)]

    del mem
    assert runtime.calls == [("malloc", size), ("free", ptr)]


@pytest.mark.parametrize("size", [0, -1])
def test_malloc_rejects_non_positive_size(runtime, size):
    with pytest.raises(cudautils.InvalidSizeError):
        cudaMalloc(size, allocator=runtime)
    assert runtime.calls == []


@pytest.mark.parametrize("size", ["16", 1.5, None])
def test_malloc_rejects_non_integer_size(runtime, size):
    with pytest.raises(cudautils.ArgumentError):
        cudaMalloc(size, allocator=runtime)
    assert runtime.calls == []


def test_malloc_failure_raises_allocation_error(runtime):
    runtime.fail_malloc = True
    with pytest.raises(cudautils.AllocationError) as info:
        cudaMalloc(32, allocator=runtime)
    assert isinstance(info.value.__cause__, cudautils.CUDAError)
    assert runtime.count("free") == 0


def test_explicit_free_is_idempotent(runtime):
    mem = cudaMalloc(32, allocator=runtime)
    mem.free()
    mem.free()
    assert mem.freed
    assert int(mem) == 0
    del mem
    assert runtime.count("free") == 1


def test_alloc_mapped_frees_with_free_host(runtime):
    mem = cudaAllocMapped(128, allocator=runtime)
    ptr = mem.ptr
    assert mem.kind == MemoryKind.MAPPED
    del mem
    assert runtime.count("free") == 0
    assert runtime.calls[-1] == ("free_host", ptr)


@pytest.mark.parametrize("size", [0, -1])
def test_alloc_mapped_rejects_non_positive_size(runtime, size):
    with pytest.raises(cudautils.InvalidSizeError):
        cudaAllocMapped(size, allocator=runtime)
    assert runtime.calls == []


def test_alloc_mapped_mismatch_releases_allocation(runtime):
    runtime.mismatch = True
    with pytest.raises(cudautils.PointerMismatchError):
        cudaAllocMapped(128, allocator=runtime)
    assert runtime.count("alloc_mapped") == 1
    assert runtime.count("free_host") == 1
    assert runtime.count("free") == 0


def test_alloc_mapped_null_device_pointer_releases_allocation(runtime):
    runtime.null_device = True
    with pytest.raises(cudautils.NullPointerError):
        cudaAllocMapped(64, allocator=runtime)
    assert runtime.calls == [("alloc_mapped", 64), ("free_host", 0x10000)]


def test_alloc_mapped_failure_raises_allocation_error(runtime):
    runtime.fail_malloc = True
    with pytest.raises(cudautils.AllocationError):
        cudaAllocMapped(128, allocator=runtime)
    assert runtime.count("free_host") == 0


@pytest.mark.parametrize("ptr", [0, None])
def test_register_null_pointer(runtime, ptr):
    with pytest.raises(cudautils.NullPointerError):
        register_memory(ptr, allocator=runtime)
    with pytest.raises(cudautils.NullPointerError):
        register_mapped_memory(ptr, 0x2000, allocator=runtime)
    with pytest.raises(cudautils.NullPointerError):
        register_mapped_memory(0x2000, ptr, allocator=runtime)
    assert runtime.calls == []


def test_register_non_owning_never_frees(runtime):
    mem = register_memory(0x4000, free_on_delete=False, allocator=runtime)
    assert get_pointer(mem) == 0x4000
    del mem
    view = register_mapped_memory(0x5000, 0x5000, free_on_delete=False, allocator=runtime)
    view.free()
    assert runtime.calls == []


def test_register_mapped_mismatch_without_ownership_does_not_free(runtime):
    with pytest.raises(cudautils.PointerMismatchError):
        register_mapped_memory(0x5000, 0x6000, free_on_delete=False, allocator=runtime)
    assert runtime.calls == []


def test_free_failure_is_logged_not_raised(runtime, caplog):
    runtime.fail_free = True
    mem = cudaMalloc(32, allocator=runtime)
    with caplog.at_level(logging.ERROR, logger=memory.__name__):
        mem.free()
    assert mem.freed
    assert "failed to free" in caplog.text


def test_cuda_array_interface(runtime):
    mem = cudaMalloc(256, allocator=runtime)
    iface = mem.__cuda_array_interface__
    assert iface["shape"] == (256,)
    assert iface["typestr"] == "|u1"
    assert iface["data"] == (mem.ptr, False)

    unsized = register_memory(0x7000, free_on_delete=False)
    with pytest.raises(ValueError):
        unsized.__cuda_array_interface__


def test_host_array_views_mapped_memory():
    buf = (ctypes.c_float * 8)()
    addr = ctypes.addressof(buf)
    mem = register_mapped_memory(addr, addr, free_on_delete=False, size=ctypes.sizeof(buf))

    arr = mem.host_array(np.float32)
    assert arr.shape == (8,)
    arr[:] = np.arange(8, dtype=np.float32)
    assert list(buf) == [float(i) for i in range(8)]


def test_host_array_rejects_device_memory(runtime):
    mem = cudaMalloc(32, allocator=runtime)
    with pytest.raises(ValueError):
        mem.host_array()


class _CudaArray:
    def __init__(self, ptr):
        self.__cuda_array_interface__ = {"data": (ptr, False), "shape": (1,), "typestr": "|u1", "version": 3}


class _TorchLike:
    def data_ptr(self):
        return 0x9000


def test_get_pointer_resolves_known_wrappers(runtime):
    mem = cudaMalloc(32, allocator=runtime)
    assert get_pointer(mem) == mem.ptr
    assert get_pointer(0x1234) == 0x1234
    assert get_pointer(ctypes.c_void_p(0x4321)) == 0x4321
    assert get_pointer(_CudaArray(0x8000)) == 0x8000
    assert get_pointer(_TorchLike()) == 0x9000


def test_get_pointer_unresolvable(runtime):
    mem = cudaMalloc(32, allocator=runtime)
    mem.free()
    assert get_pointer(mem) is None
    assert get_pointer(None) is None
    assert get_pointer(0) is None
    assert get_pointer(True) is None
    assert get_pointer("not a buffer") is None
    assert get_pointer(ctypes.c_void_p()) is None


def test_device_synchronize_uses_runtime(runtime):
    cudautils.cudaDeviceSynchronize(allocator=runtime)
    assert runtime.calls == [("synchronize",)]


def test_repr_mentions_kind(runtime):
    mem = cudaAllocMapped(16, allocator=runtime)
    assert "cudaAllocMapped" in repr(mem)
    assert isinstance(mem, Memory)


def test_free_logs_when_runtime_cannot_load(monkeypatch, caplog):
    def missing():
        raise OSError("libcudart.so: cannot open shared object file")

    monkeypatch.setattr(memory, "load_runtime", missing)
    mem = register_memory(0x4000)
    with caplog.at_level(logging.ERROR, logger=memory.__name__):
        mem.free()
    assert mem.freed
    assert "cannot open shared object" in caplog.text


class _HostTensor:
    is_cuda = False

    def data_ptr(self):
        return 0x9000


def test_get_pointer_rejects_host_tensors():
    assert get_pointer(_HostTensor()) is None
