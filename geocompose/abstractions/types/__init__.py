# geocompose/abstractions/types/__init__.py
"""Type definitions for the abstractions layer."""

from .raster_types import (
    PixelFormat, CoordinateSystemKind, ColorModel, ByteOrder, RasterDataType
)

__all__ = [
    'PixelFormat', 'CoordinateSystemKind', 'ColorModel', 'ByteOrder',
    'RasterDataType',
]
