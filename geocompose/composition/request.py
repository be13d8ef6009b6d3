# geocompose/composition/request.py
"""What a caller asks the compositor for."""

import numbers
from dataclasses import dataclass, replace
from typing import Any, Mapping, Optional, Tuple

from geocompose.abstractions.types import ByteOrder, ColorModel, PixelFormat, RasterDataType
from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector

ELEVATION_DATA_TYPES = (RasterDataType.INT16, RasterDataType.INT32, RasterDataType.FLOAT32)


def _is_integer(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


@dataclass(frozen=True)
class CompositionRequest:
    """A geographic rectangle rendered at a pixel size.

    ``pixel_format`` None means the catalog's pixel format. ``data_type``
    applies to elevation output only.
    """
    target_sector: Optional[Sector]
    target_width: int
    target_height: int
    pixel_format: Optional[PixelFormat] = None
    byte_order: ByteOrder = ByteOrder.BIG_ENDIAN
    data_type: RasterDataType = RasterDataType.INT16
    max_pixel_value_override: Optional[float] = None
    nodata_override: Optional[float] = None
    color_model: Optional[ColorModel] = None

    def __post_init__(self):
        # numpy integers become plain ints; anything else is left for validate()
        for name in ('target_width', 'target_height'):
            value = getattr(self, name)
            if _is_integer(value):
                object.__setattr__(self, name, int(value))

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> 'CompositionRequest':
        """Build from loosely typed parameters, e.g. parsed CLI or query values."""
        sector = params.get('sector', params.get('target_sector'))
        width = params.get('width', params.get('target_width'))
        height = params.get('height', params.get('target_height'))
        try:
            return cls(
                target_sector=Sector.parse(sector) if sector is not None else None,
                target_width=width,
                target_height=height,
                pixel_format=PixelFormat.parse(params.get('pixel_format')),
                byte_order=ByteOrder.parse(params.get('byte_order')) or ByteOrder.BIG_ENDIAN,
                data_type=RasterDataType.parse(params.get('data_type')) or RasterDataType.INT16,
                max_pixel_value_override=params.get('max_pixel_value'),
                nodata_override=params.get('nodata'),
                color_model=ColorModel.parse(params.get('color_model')),
            )
        except InvalidArgumentError:
            raise
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid composition parameters: {e}", e) from e

    def validate(self) -> 'CompositionRequest':
        """Raise InvalidArgumentError unless the request can be composed."""
        if not isinstance(self.target_sector, Sector):
            raise InvalidArgumentError("Composition request has no target sector")
        for name in ('target_width', 'target_height'):
            value = getattr(self, name)
            if not _is_integer(value):
                raise InvalidArgumentError(f"{name} must be an integer, got {value!r}")
            if value <= 0:
                raise InvalidArgumentError(f"{name} must be positive, got {value}")
        if self.target_sector.is_empty:
            raise InvalidArgumentError(f"Target sector {self.target_sector} has no extent")
        if self.data_type not in ELEVATION_DATA_TYPES:
            raise InvalidArgumentError(
                f"Elevation data type must be one of "
                f"{[t.value for t in ELEVATION_DATA_TYPES]}, got {self.data_type.value}"
            )
        if self.color_model is ColorModel.PALETTE:
            raise InvalidArgumentError("Palette output is chosen by the sources, not requested")
        return self

    @property
    def resolution(self) -> Tuple[float, float]:
        """Degrees per pixel ``(lat, lon)``."""
        return (self.target_sector.delta_lat / self.target_height,
                self.target_sector.delta_lon / self.target_width)

    def sub_request(self, sector: Sector, width: int, height: int) -> 'CompositionRequest':
        """Same options over a part of the target grid."""
        return replace(self, target_sector=sector, target_width=int(width),
                       target_height=int(height))
