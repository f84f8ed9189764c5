from enum import Enum, auto
from types import MappingProxyType
import operator

from . import ArgumentError, InvalidStateError, DimensionError, ColorFormatError, PointerError, FontCreationError
from . import config
from .core.font import load_font_library
from .memory import get_pointer

import logging
log = logging.getLogger(__name__)

DEFAULT_BITMAP = 'fontmapA.png'

# RGBA, alpha is always opaque
PALETTE = MappingProxyType({
    'Black':   (0.0, 0.0, 0.0, 255.0),
    'White':   (255.0, 255.0, 255.0, 255.0),
    'Gray':    (128.0, 128.0, 128.0, 255.0),
    'Brown':   (165.0, 42.0, 42.0, 255.0),
    'Tan':     (210.0, 180.0, 140.0, 255.0),
    'Red':     (255.0, 0.0, 0.0, 255.0),
    'Green':   (0.0, 200.0, 128.0, 255.0),
    'Blue':    (0.0, 0.0, 255.0, 255.0),
    'Cyan':    (0.0, 255.0, 255.0, 255.0),
    'Lime':    (0.0, 255.0, 0.0, 255.0),
    'Yellow':  (255.0, 255.0, 0.0, 255.0),
    'Orange':  (255.0, 165.0, 0.0, 255.0),
    'Purple':  (128.0, 0.0, 128.0, 255.0),
    'Magenta': (255.0, 0.0, 255.0, 255.0),
})

class FontState(Enum):
    UNINITIALIZED = auto()
    READY = auto()
    DISPOSED = auto()

def _parse_int(func, name, value):
    if isinstance(value, bool):
        raise ArgumentError(f'{func}() argument {name} must be an integer, not bool')
    try:
        return operator.index(value)
    except TypeError as e:
        raise ArgumentError(f'{func}() argument {name} must be an integer, not {type(value).__name__}') from e

def parse_color(color):
    """parse an RGB or RGBA color

    Args:
        color (tuple): 3 or 4 numbers in [0, 255]; None means opaque black

    Raises:
        ColorFormatError: color is not a tuple of 3 or 4 numbers

    Returns:
        tuple(float): RGBA, alpha defaults to 255
    """
    if color is None:
        return PALETTE['Black']

    if not isinstance(color, (tuple, list)):
        raise ColorFormatError(f'cudaFont.Overlay() color argument isn\'t a valid tuple: {color!r}')

    if len(color) not in (3, 4):
        raise ColorFormatError(f'cudaFont.Overlay() color must have 3 or 4 channels, got {len(color)}')

    try:
        rgba = tuple(float(c) for c in color)
    except (TypeError, ValueError) as e:
        raise ColorFormatError(f'cudaFont.Overlay() failed to parse color tuple {color!r}') from e

    if len(rgba) == 3:
        rgba += (255.0,)
    return rgba

class cudaFont:
    """
    Bitmap font overlay rendering with CUDA.

    The object is ready once constructed; a failed construction raises FontCreationError.
    The native engine is released by free(), by leaving a `with` block, or when the object is garbage collected.
    """
    def __new__(cls, *args, **kwargs):
        self = super().__new__(cls)
        self._colors = PALETTE
        self._engine = None
        self._library = None
        self.state = FontState.UNINITIALIZED
        return self

    def __init__(self, bitmap = DEFAULT_BITMAP, engine = None):
        """
        Args:
            bitmap (optional, str): font bitmap file. Defaults to fontmapA.png.
            engine (optional): font engine library. Defaults to the process-wide native library.

        Raises:
            ArgumentError: bitmap is not a string
            FontCreationError: the native engine could not be created
        """
        if not isinstance(bitmap, str):
            raise ArgumentError(f'cudaFont.__init__() bitmap must be a string, not {type(bitmap).__name__}')

        library = engine or load_font_library()
        path = config.locate_file(bitmap)
        log.debug(f'creating font from {path}')

        handle = library.create(path)
        if not handle:
            raise FontCreationError(f'failed to create cudaFont object from {bitmap}')

        # re-initialization replaces the engine
        self.free()
        self._library = library
        self._engine = handle
        self.state = FontState.READY

    @property
    def colors(self):
        """
        Returns:
            mapping: read-only mapping of color name to RGBA tuple
        """
        return self._colors

    def Overlay(self, input, width, height, text, x = 0, y = 0, color = None, output = None):
        """render the font overlay for a given text string

        Args:
            input : image to draw on, any object accepted by get_pointer()
            width (int): image width in pixels
            height (int): image height in pixels
            text (str): text to render
            x (optional, int): left offset in pixels. Defaults to 0.
            y (optional, int): top offset in pixels. Defaults to 0.
            color (optional, tuple): RGB or RGBA color. Defaults to opaque black.
            output (optional): image to write to. Defaults to input (rendering in place).

        Raises:
            InvalidStateError: the font is not initialized or has been freed
            ArgumentError: an argument has the wrong type
            DimensionError: width or height is not positive
            ColorFormatError: color is not a 3 or 4 number tuple
            PointerError: input or output cannot be resolved to a memory pointer
        """
        if self.state != FontState.READY or not self._engine:
            raise InvalidStateError('cudaFont invalid object instance')

        width = _parse_int('cudaFont.Overlay', 'width', width)
        height = _parse_int('cudaFont.Overlay', 'height', height)

        if width <= 0 or height <= 0:
            raise DimensionError(f'cudaFont.Overlay() image dimensions are invalid ({width}x{height})')

        if not isinstance(text, str):
            raise ArgumentError(f'cudaFont.Overlay() argument text must be a string, not {type(text).__name__}')
        x = _parse_int('cudaFont.Overlay', 'x', x)
        y = _parse_int('cudaFont.Overlay', 'y', y)

        rgba = parse_color(color)

        if output is None:
            output = input

        input_img = get_pointer(input)
        if not input_img:
            raise PointerError('cudaFont.Overlay() failed to get input image pointer')

        output_img = get_pointer(output)
        if not output_img:
            raise PointerError('cudaFont.Overlay() failed to get output image pointer')

        self._library.render_overlay(self._engine, input_img, output_img, width, height, text, x, y, rgba)

    def free(self):
        """release the native font engine. Safe to call more than once

        free() is called automatically when the font is garbage collected
        """
        engine, self._engine = self._engine, None
        if engine:
            log.debug('destroying font engine')
            self._library.destroy(engine)
        self.state = FontState.DISPOSED

    close = free

    def __enter__(self):
        return self

    def __exit__(self, type, value, traceback):
        self.free()

    def __del__(self):
        self.free()

def _color_property(name):
    return property(lambda self: self._colors[name], doc = f'{name} color tuple')

for _name in PALETTE:
    setattr(cudaFont, _name, _color_property(_name))
del _name
