"""Foundation layer - pure abstractions and types with no GDAL dependencies."""

from .types import (
    PixelFormat, CoordinateSystemKind, ColorModel, ByteOrder, RasterDataType
)
from .interfaces import RasterReader, ReaderHints, RasterMetadata

__all__ = [
    'PixelFormat',
    'CoordinateSystemKind',
    'ColorModel',
    'ByteOrder',
    'RasterDataType',
    'RasterReader',
    'ReaderHints',
    'RasterMetadata',
]
