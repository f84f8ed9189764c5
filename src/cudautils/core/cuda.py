from ctypes import *
from functools import lru_cache
import logging

from .. import config

log = logging.getLogger(__name__)

cudaError = c_int

# cudaHostAlloc flags
cudaHostAllocMapped = 0x02

class CUDAError(Exception):
    def __init__(self, cudaError, message = None):
        self.cudaError = cudaError
        self.message = message

    def __str__(self):
        if self.message is None:
            return f'cudaError {self.cudaError}'
        return f'{self.message} (cudaError {self.cudaError})'

class Runtime:
    """
    Thin wrapper over a loaded CUDA runtime library.
    Every method raises CUDAError if the runtime reports a failure
    """
    def __init__(self, lib):
        self.lib = lib

        lib.cudaGetErrorString.argtypes = [cudaError]
        lib.cudaGetErrorString.restype = c_char_p

        lib.cudaMalloc.argtypes = [POINTER(c_void_p), c_size_t]
        lib.cudaMalloc.restype = cudaError
        lib.cudaFree.argtypes = [c_void_p]
        lib.cudaFree.restype = cudaError

        lib.cudaHostAlloc.argtypes = [POINTER(c_void_p), c_size_t, c_uint]
        lib.cudaHostAlloc.restype = cudaError
        lib.cudaHostGetDevicePointer.argtypes = [POINTER(c_void_p), c_void_p, c_uint]
        lib.cudaHostGetDevicePointer.restype = cudaError
        lib.cudaFreeHost.argtypes = [c_void_p]
        lib.cudaFreeHost.restype = cudaError

        lib.cudaDeviceSynchronize.argtypes = []
        lib.cudaDeviceSynchronize.restype = cudaError
        lib.cudaGetDevice.argtypes = [POINTER(c_int)]
        lib.cudaGetDevice.restype = cudaError
        lib.cudaSetDevice.argtypes = [c_int]
        lib.cudaSetDevice.restype = cudaError

    def error_string(self, code):
        p = self.lib.cudaGetErrorString(code)
        return p.decode('utf-8') if p else 'unknown error'

    def check(self, code):
        if code != 0:
            raise CUDAError(code, self.error_string(code))

    def malloc(self, size):
        ptr = c_void_p()
        self.check(self.lib.cudaMalloc(byref(ptr), size))
        log.debug(f'cudaMalloc {size} bytes -> {ptr.value:#x}')
        return ptr.value

    def free(self, ptr):
        self.check(self.lib.cudaFree(ptr))

    def alloc_mapped(self, size):
        """allocate zero-copy memory visible to both host and device

        Args:
            size (int): number of bytes

        Returns:
            (int, int): host pointer and device pointer
        """
        cpu = c_void_p()
        gpu = c_void_p()
        self.check(self.lib.cudaHostAlloc(byref(cpu), size, cudaHostAllocMapped))
        try:
            self.check(self.lib.cudaHostGetDevicePointer(byref(gpu), cpu, 0))
        except CUDAError:
            self.lib.cudaFreeHost(cpu)
            raise
        memset(cpu, 0, size)
        log.debug(f'cudaAllocMapped {size} bytes -> cpu {cpu.value:#x} gpu {gpu.value:#x}')
        return cpu.value, gpu.value

    def free_host(self, ptr):
        self.check(self.lib.cudaFreeHost(ptr))

    def synchronize(self):
        self.check(self.lib.cudaDeviceSynchronize())

    def get_device(self):
        device = c_int()
        self.check(self.lib.cudaGetDevice(byref(device)))
        return device.value

    def set_device(self, idx):
        self.check(self.lib.cudaSetDevice(idx))

@lru_cache(maxsize=1)
def load_runtime():
    '''
    load the CUDA runtime library once per process
    '''
    name = config.cudart_library()
    log.debug(f'loading CUDA runtime from {name}')
    return Runtime(cdll.LoadLibrary(name))

def get_current_device(device = None, runtime = None):
    '''
    get the current device, unless specified by device
    '''
    if device is None:
        runtime = runtime or load_runtime()
        return runtime.get_device()
    else:
        return device

class Device:
    def __init__(self, idx : int, runtime = None):
        self.idx = idx
        self.prev = -1
        self.runtime = runtime

    def __int__(self):
        return self.idx

    def __enter__(self):
        runtime = self.runtime or load_runtime()
        self.prev = runtime.get_device()
        log.debug(f'entering {self.prev} -> {self.idx} ')
        runtime.set_device(self.idx)
        return self

    def __exit__(self,  type, value, traceback):
        runtime = self.runtime or load_runtime()
        log.debug(f'exiting {self.idx} -> {self.prev} ')
        runtime.set_device(self.prev)
