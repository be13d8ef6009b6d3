# geocompose/abstractions/types/raster_types.py
"""Raster-related type definitions."""

from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np


class PixelFormat(Enum):
    """What the samples of a raster represent."""
    IMAGE = "image"
    ELEVATION = "elevation"

    @classmethod
    def parse(cls, value: Union[str, 'PixelFormat', None]) -> Optional['PixelFormat']:
        if value is None or isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())


class CoordinateSystemKind(Enum):
    """Kind of coordinate system a source raster is referenced to."""
    GEOGRAPHIC = "geographic"
    PROJECTED = "projected"
    SCREEN = "screen"
    UNKNOWN = "unknown"

    @property
    def is_georeferenced(self) -> bool:
        return self in (CoordinateSystemKind.GEOGRAPHIC, CoordinateSystemKind.PROJECTED)


class ColorModel(Enum):
    """Color models an image composition can be delivered in."""
    RGBA = "rgba"
    RGB = "rgb"
    GRAYSCALE = "grayscale"
    GRAYSCALE_ALPHA = "grayscale_alpha"
    PALETTE = "palette"

    @property
    def band_count(self) -> int:
        return {
            ColorModel.RGBA: 4,
            ColorModel.RGB: 3,
            ColorModel.GRAYSCALE: 1,
            ColorModel.GRAYSCALE_ALPHA: 2,
            ColorModel.PALETTE: 1,
        }[self]

    @classmethod
    def parse(cls, value: Union[str, 'ColorModel', None]) -> Optional['ColorModel']:
        if value is None or isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace('-', '_').replace(' ', '_'))


class ByteOrder(Enum):
    """Byte order of multi-byte samples in an output buffer."""
    BIG_ENDIAN = "big"
    LITTLE_ENDIAN = "little"

    @property
    def numpy_prefix(self) -> str:
        return '>' if self is ByteOrder.BIG_ENDIAN else '<'

    @classmethod
    def parse(cls, value: Union[str, 'ByteOrder', None]) -> Optional['ByteOrder']:
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        if text in ('big', 'big_endian', 'bigendian', 'm', 'motorola', 'msbfirst'):
            return cls.BIG_ENDIAN
        if text in ('little', 'little_endian', 'littleendian', 'i', 'intel', 'lsbfirst'):
            return cls.LITTLE_ENDIAN
        raise ValueError(f"Unknown byte order: {value!r}")


class RasterDataType(Enum):
    """Sample data types, named as GDAL names them."""
    BYTE = "Byte"
    UINT16 = "UInt16"
    INT16 = "Int16"
    UINT32 = "UInt32"
    INT32 = "Int32"
    FLOAT32 = "Float32"
    FLOAT64 = "Float64"

    @property
    def numpy_dtype(self) -> np.dtype:
        return np.dtype(_NUMPY_TYPES[self])

    @property
    def bytes_per_sample(self) -> int:
        return self.numpy_dtype.itemsize

    @property
    def is_integer(self) -> bool:
        return np.issubdtype(self.numpy_dtype, np.integer)

    @property
    def is_signed(self) -> bool:
        return np.issubdtype(self.numpy_dtype, np.signedinteger) or not self.is_integer

    @property
    def value_range(self) -> Tuple[float, float]:
        """Representable range of the type."""
        if self.is_integer:
            info = np.iinfo(self.numpy_dtype)
        else:
            info = np.finfo(self.numpy_dtype)
        return float(info.min), float(info.max)

    @classmethod
    def parse(cls, value: Union[str, 'RasterDataType', None]) -> Optional['RasterDataType']:
        if value is None or isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == text or member.name.lower() == text:
                return member
        aliases = {
            'uint8': cls.BYTE, 'int8': cls.BYTE, 'short': cls.INT16,
            'int': cls.INT32, 'float': cls.FLOAT32, 'double': cls.FLOAT64,
        }
        if text in aliases:
            return aliases[text]
        raise ValueError(f"Unsupported raster data type: {value!r}")

    @classmethod
    def from_numpy(cls, dtype) -> 'RasterDataType':
        dtype = np.dtype(dtype)
        for member, name in _NUMPY_TYPES.items():
            if np.dtype(name) == dtype:
                return member
        if dtype == np.dtype('int8'):
            return cls.INT16
        raise ValueError(f"No raster data type for numpy dtype {dtype}")


_NUMPY_TYPES = {
    RasterDataType.BYTE: 'uint8',
    RasterDataType.UINT16: 'uint16',
    RasterDataType.INT16: 'int16',
    RasterDataType.UINT32: 'uint32',
    RasterDataType.INT32: 'int32',
    RasterDataType.FLOAT32: 'float32',
    RasterDataType.FLOAT64: 'float64',
}
