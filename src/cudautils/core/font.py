from ctypes import *
from functools import lru_cache
import logging

from .. import config

log = logging.getLogger(__name__)

class float4(Structure):
    _fields_ = [
        ('x', c_float),
        ('y', c_float),
        ('z', c_float),
        ('w', c_float),
    ]

    def __iter__(self):
        return iter((self.x, self.y, self.z, self.w))

class FontLibrary:
    """
    Binding to the native font engine. The engine is an opaque pointer owned by the caller
    and must be passed back to destroy() exactly once
    """
    def __init__(self, lib):
        self.lib = lib

        lib.cudaFontCreate.argtypes = [c_char_p]
        lib.cudaFontCreate.restype = c_void_p

        lib.cudaFontRenderOverlay.argtypes = [c_void_p, c_void_p, c_void_p, c_int, c_int,
                                              c_char_p, c_int, c_int, float4]
        lib.cudaFontRenderOverlay.restype = None

        lib.cudaFontDestroy.argtypes = [c_void_p]
        lib.cudaFontDestroy.restype = None

    def create(self, bitmap):
        """
        Returns:
            int: the engine pointer, or None if the engine could not be created
        """
        return self.lib.cudaFontCreate(bitmap.encode('utf-8'))

    def render_overlay(self, engine, input, output, width, height, text, x, y, rgba):
        self.lib.cudaFontRenderOverlay(engine, input, output, width, height,
                                       text.encode('utf-8'), x, y, float4(*rgba))

    def destroy(self, engine):
        self.lib.cudaFontDestroy(engine)

@lru_cache(maxsize=1)
def load_font_library():
    name = config.font_library()
    log.debug(f'loading font engine from {name}')
    return FontLibrary(cdll.LoadLibrary(name))
