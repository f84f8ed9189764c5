"""Low-level ctypes bindings to the native collaborators.

Most users should use cudautils.memory and cudautils.font instead.

Modules:
    cuda: CUDA runtime wrapper, device selection and error handling
    font: native font engine wrapper
"""
