"""CUDA memory allocation and bitmap-font overlay for Python.

This package exposes CUDA device memory, zero-copy mapped memory and a
CUDA bitmap-font text renderer through ctypes. The GPU work itself is done by
the CUDA runtime and the native font engine; this package only marshals
arguments and manages the lifetime of the native resources.

Quick Start:
    from cudautils import cudaAllocMapped, cudaFont

    img = cudaAllocMapped(640 * 480 * 16)   # float4 RGBA image
    font = cudaFont()
    font.Overlay(img, 640, 480, 'hello', 5, 5, font.Lime)

    # memory is released when the last reference is dropped
    del img

Requirements:
    - NVIDIA GPU and driver with libcudart.so
    - a native font engine library exporting cudaFontCreate,
      cudaFontRenderOverlay and cudaFontDestroy

Exceptions:
    All errors raised by this package derive from CudaUtilsError.
"""

class CudaUtilsError(Exception):
    """Base class of every error raised by cudautils."""
    pass

class ArgumentError(CudaUtilsError, TypeError):
    """Raised when an argument cannot be parsed into the expected type."""
    pass

class InvalidSizeError(CudaUtilsError, ValueError):
    """Raised when an allocation size is zero or negative."""
    pass

class AllocationError(CudaUtilsError, MemoryError):
    """Raised when the CUDA runtime fails to allocate memory."""
    pass

class PointerMismatchError(CudaUtilsError):
    """Raised when the host and device addresses of mapped memory differ."""
    pass

class NullPointerError(CudaUtilsError, ValueError):
    """Raised when a handle is requested for a NULL pointer."""
    pass

class InvalidStateError(CudaUtilsError, RuntimeError):
    """Raised when an object is used before initialization or after disposal."""
    pass

class DimensionError(CudaUtilsError, ValueError):
    """Raised when image dimensions are not positive."""
    pass

class ColorFormatError(CudaUtilsError, TypeError):
    """Raised when a color is not an RGB or RGBA tuple."""
    pass

class PointerError(CudaUtilsError, ValueError):
    """Raised when an object cannot be resolved to a memory pointer."""
    pass

class FontCreationError(CudaUtilsError):
    """Raised when the native font engine cannot be created."""
    pass

from .core.cuda import Device, CUDAError
from .memory import (Memory, MemoryKind, cudaMalloc, cudaAllocMapped, cudaDeviceSynchronize,
                     register_memory, register_mapped_memory, get_pointer)
from .font import cudaFont
