"""Composition of catalog sources into one output raster."""

from .request import CompositionRequest
from .canvas import ImageCanvas, PaletteCanvas, ElevationCanvas
from .compositor import Compositor
from .encoders import EncoderRegistry, encode_composition

__all__ = [
    'CompositionRequest',
    'ImageCanvas',
    'PaletteCanvas',
    'ElevationCanvas',
    'Compositor',
    'EncoderRegistry',
    'encode_composition',
]
