'''
Runtime configuration, read from the environment at call time.

CUDAUTILS_CUDART        name or path of the CUDA runtime library
CUDAUTILS_FONT_LIBRARY  name or path of the native font engine library
CUDAUTILS_DATA_PATH     os.pathsep separated directories searched for font bitmaps
'''
import os

import logging
log = logging.getLogger(__name__)

DEFAULT_CUDART = 'libcudart.so'
DEFAULT_FONT_LIBRARY = 'libcudafont.so'

def cudart_library():
    return os.environ.get('CUDAUTILS_CUDART') or DEFAULT_CUDART

def font_library():
    return os.environ.get('CUDAUTILS_FONT_LIBRARY') or DEFAULT_FONT_LIBRARY

def data_path():
    """
    Returns:
        list(str): existing directories listed in CUDAUTILS_DATA_PATH, in order
    """
    value = os.environ.get('CUDAUTILS_DATA_PATH', '')
    return [d for d in value.split(os.pathsep) if d and os.path.isdir(d)]

def locate_file(name):
    """find a data file such as a font bitmap

    Args:
        name (str): file name, relative or absolute

    Returns:
        str: absolute path of the first match in the working directory or the data path;
        `name` unchanged if nothing matches, so the native side can apply its own lookup
    """
    if os.path.isabs(name):
        return name

    for d in [os.getcwd(), *data_path()]:
        candidate = os.path.join(d, name)
        if os.path.isfile(candidate):
            log.debug(f'located {name} at {candidate}')
            return os.path.abspath(candidate)

    log.debug(f'{name} not found locally, leaving lookup to the native library')
    return name
