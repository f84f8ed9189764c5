'''
User allocates memory with cudaMalloc() or cudaAllocMapped() and receives a Memory handle. The handle owns the allocation: the memory stays valid as long as the user holds references to the handle, and is freed when all references are dropped. User can also call Memory.free() to release it early.

Memory allocated elsewhere (for example by an image loader) can be wrapped with register_memory() or register_mapped_memory(). With free_on_delete=False the handle is only a view and never frees the memory.

Mapped (zero-copy) memory is addressable from both host and device at the same address, so it can be filled on the CPU through Memory.host_array() and handed to GPU code directly.
'''
from ctypes import *
from enum import Enum
import operator
import numpy as np

from . import ArgumentError, InvalidSizeError, AllocationError, PointerMismatchError, NullPointerError
from .core.cuda import CUDAError, load_runtime

import logging
log = logging.getLogger(__name__)

class MemoryKind(Enum):
    DEVICE = 'cudaMalloc'
    MAPPED = 'cudaAllocMapped'

class Memory:
    '''
    A handle to device memory or mapped memory
    '''
    def __init__(self, ptr, kind, size = None, free_on_delete = True, allocator = None):
        """
        DO NOT call this by yourself; use cudaMalloc(), cudaAllocMapped() or register_memory() instead
        """
        self.ptr = ptr
        self.kind = kind
        self.size = size
        self.owning = free_on_delete
        self.allocator = allocator

    def free(self):
        """release the handle.
        If the handle owns the memory, it is returned to CUDA with the free function matching its kind.
        A failure to free is logged; there is nothing the caller could do about it

        free() is called automatically when the handle is garbage collected
        """
        ptr, self.ptr = self.ptr, 0
        if not ptr or not self.owning:
            return

        log.debug(f'freeing {self.kind.value} memory {ptr:#x}')
        try:
            allocator = self.allocator or load_runtime()
            if self.kind == MemoryKind.DEVICE:
                allocator.free(ptr)
            else:
                allocator.free_host(ptr)
        except (CUDAError, OSError) as e:
            log.error(f'failed to free {self.kind.value} memory {ptr:#x}: {e}')

    def __del__(self):
        self.free()

    @property
    def freed(self):
        return not self.ptr

    def __int__(self):
        return self.ptr

    def __repr__(self):
        owning = 'owning' if self.owning else 'view'
        return f'<Memory {self.kind.value} {self.ptr:#x} size={self.size} {owning}>'

    def host_array(self, dtype = np.uint8):
        """view mapped memory from the host

        Args:
            dtype (optional, numpy.dtype): element type of the view. Defaults to uint8.

        Raises:
            ValueError: the memory is not mapped, has been freed, or its size is unknown

        Returns:
            numpy.ndarray: 1-D array sharing the memory of this handle
        """
        if self.kind != MemoryKind.MAPPED:
            raise ValueError('only mapped memory is accessible from the host')
        if self.freed:
            raise ValueError('memory has been freed')
        if self.size is None:
            raise ValueError('memory size is unknown')

        dtype = np.dtype(dtype)
        buf = cast(c_void_p(self.ptr), POINTER(c_ubyte))
        arr = np.ctypeslib.as_array(buf, (self.size,))
        return arr[:self.size // dtype.itemsize * dtype.itemsize].view(dtype)

    @property
    def __cuda_array_interface__(self):
        if self.freed:
            raise ValueError('memory has been freed')
        if self.size is None:
            raise ValueError('memory size is unknown')
        return {
            'shape': (self.size,),
            'typestr': '|u1',
            'version': 3,
            'data': (self.ptr, False), # false = not read-only
            'strides': None,
        }

def _parse_size(func, size):
    try:
        size = operator.index(size)
    except TypeError as e:
        raise ArgumentError(f'{func}() failed to parse size argument') from e

    if size <= 0:
        raise InvalidSizeError(f'{func}() requested size is negative or zero')
    return size

def _release_mapped(cpu_ptr, allocator):
    try:
        (allocator or load_runtime()).free_host(cpu_ptr)
    except CUDAError as e:
        log.error(f'failed to free mapped memory {cpu_ptr:#x}: {e}')

def register_memory(ptr, free_on_delete = True, size = None, allocator = None):
    """wrap device memory allocated elsewhere

    Args:
        ptr (int): device pointer
        free_on_delete (optional, bool): free the memory with cudaFree() when the handle is released. Defaults to True.
        size (optional, int): size in bytes, if known
        allocator (optional): runtime used to free the memory. Defaults to the process-wide CUDA runtime.

    Raises:
        NullPointerError: ptr is NULL

    Returns:
        Memory: handle of kind DEVICE
    """
    if not ptr:
        raise NullPointerError('register_memory() was provided NULL memory pointers')
    return Memory(ptr, MemoryKind.DEVICE, size, free_on_delete, allocator)

def register_mapped_memory(cpu_ptr, gpu_ptr, free_on_delete = True, size = None, allocator = None):
    """wrap mapped memory allocated elsewhere

    Raises:
        NullPointerError: either pointer is NULL
        PointerMismatchError: the host and device pointers differ; the memory is freed first if owned

    Returns:
        Memory: handle of kind MAPPED
    """
    if not cpu_ptr or not gpu_ptr:
        raise NullPointerError('register_mapped_memory() was provided NULL memory pointers')

    if cpu_ptr != gpu_ptr:
        if free_on_delete:
            _release_mapped(cpu_ptr, allocator)
        raise PointerMismatchError(f'register_mapped_memory() pointers don\'t match (cpu {cpu_ptr:#x}, gpu {gpu_ptr:#x})')

    return Memory(cpu_ptr, MemoryKind.MAPPED, size, free_on_delete, allocator)

def cudaMalloc(size, allocator = None):
    """allocate CUDA memory on the GPU

    Args:
        size (int): number of bytes, must be positive
        allocator (optional): runtime to allocate from. Defaults to the process-wide CUDA runtime.

    Raises:
        ArgumentError: size is not an integer
        InvalidSizeError: size is zero or negative
        AllocationError: the runtime failed to allocate

    Returns:
        Memory: owning handle of kind DEVICE
    """
    size = _parse_size('cudaMalloc', size)
    allocator = allocator or load_runtime()

    try:
        ptr = allocator.malloc(size)
    except CUDAError as e:
        raise AllocationError(f'cudaMalloc() failed: {e}') from e

    return register_memory(ptr, size = size, allocator = allocator)

def cudaAllocMapped(size, allocator = None):
    """allocate CUDA zero-copy mapped memory

    Raises:
        ArgumentError: size is not an integer
        InvalidSizeError: size is zero or negative
        AllocationError: the runtime failed to allocate
        PointerMismatchError: host and device addresses differ; the allocation is released before raising

    Returns:
        Memory: owning handle of kind MAPPED
    """
    size = _parse_size('cudaAllocMapped', size)
    allocator = allocator or load_runtime()

    try:
        cpu, gpu = allocator.alloc_mapped(size)
    except CUDAError as e:
        raise AllocationError(f'cudaAllocMapped() failed: {e}') from e

    if not cpu or not gpu:
        if cpu:
            _release_mapped(cpu, allocator)
        raise NullPointerError('cudaAllocMapped() returned NULL memory pointers')

    return register_mapped_memory(cpu, gpu, size = size, allocator = allocator)

def cudaDeviceSynchronize(allocator = None):
    '''
    wait for all queued work on the current device, e.g. before reading mapped memory on the host
    '''
    (allocator or load_runtime()).synchronize()

def get_pointer(obj):
    """resolve the memory pointer of a handle

    Args:
        obj : Memory, int, ctypes.c_void_p, or an array exposing __cuda_array_interface__, data_ptr() or ptr

    Returns:
        int: the raw pointer, or None if obj cannot be resolved or is NULL
    """
    if obj is None or isinstance(obj, bool):
        return None
    elif isinstance(obj, Memory):
        ptr = obj.ptr
    elif isinstance(obj, int):
        ptr = obj
    elif isinstance(obj, c_void_p):
        ptr = obj.value
    elif hasattr(obj, '__cuda_array_interface__'):
        # cupy, numba, torch (cuda tensors)
        try:
            ptr = obj.__cuda_array_interface__['data'][0]
        except (ValueError, AttributeError, KeyError, TypeError):
            return None
    elif hasattr(obj, 'data_ptr'):
        # torch; host tensors are not valid device memory
        if not getattr(obj, 'is_cuda', True):
            log.debug(f'{type(obj)} is not on a CUDA device')
            return None
        ptr = obj.data_ptr()
    elif hasattr(obj, 'ptr'):
        # cupy memory pointer
        ptr = obj.ptr
    else:
        log.debug(f'cannot resolve a pointer from {type(obj)}')
        return None
    return ptr or None
