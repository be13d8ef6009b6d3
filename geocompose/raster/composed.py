# geocompose/raster/composed.py
"""Finished compositions handed back to callers."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import xarray as xr

from geocompose.abstractions.types import ByteOrder, ColorModel, RasterDataType
from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector


@dataclass
class ImageRaster:
    """An 8-bit image, band interleaved by pixel.

    ``pixels`` has shape ``(height, width, band_count)``. Palette images
    carry one index band plus ``color_table`` as ``(entries, 4)`` RGBA.
    """
    width: int
    height: int
    band_count: int
    color_model: ColorModel
    pixels: np.ndarray
    color_table: Optional[np.ndarray] = None
    pixel_buffer: bytes = field(init=False, repr=False)

    def __post_init__(self):
        pixels = np.ascontiguousarray(self.pixels, dtype=np.uint8)
        if pixels.ndim == 2:
            pixels = pixels[..., np.newaxis]
        if pixels.shape != (self.height, self.width, self.band_count):
            raise InvalidArgumentError(
                f"Pixel array shape {pixels.shape} does not match "
                f"{self.height}x{self.width}x{self.band_count}"
            )
        if self.band_count != self.color_model.band_count:
            raise InvalidArgumentError(
                f"{self.color_model.value} needs {self.color_model.band_count} bands, "
                f"got {self.band_count}"
            )
        if self.color_model is ColorModel.PALETTE and self.color_table is None:
            raise InvalidArgumentError("Palette image without a color table")

        self.pixels = pixels
        self.pixel_buffer = pixels.tobytes()
        expected = self.width * self.height * self.band_count
        if len(self.pixel_buffer) != expected:
            raise InvalidArgumentError(
                f"Pixel buffer holds {len(self.pixel_buffer)} bytes, expected {expected}"
            )

    @property
    def bytes_per_sample(self) -> int:
        return 1

    def band(self, index: int) -> np.ndarray:
        """One band as a ``(height, width)`` array."""
        return self.pixels[:, :, index]


@dataclass
class ElevationRaster:
    """Elevation samples over a sector, serialised in ``byte_order``.

    ``samples`` has shape ``(height, width)``, first row northernmost.
    """
    width: int
    height: int
    sector: Sector
    byte_order: ByteOrder
    data_type: RasterDataType
    nodata_value: Optional[float]
    samples: np.ndarray
    sample_buffer: bytes = field(init=False, repr=False)

    band_count = 1

    def __post_init__(self):
        samples = np.asarray(self.samples)
        if samples.shape != (self.height, self.width):
            raise InvalidArgumentError(
                f"Sample array shape {samples.shape} does not match {self.height}x{self.width}"
            )
        samples = samples.astype(self.data_type.numpy_dtype, copy=False)
        self.samples = samples

        dtype = self.data_type.numpy_dtype.newbyteorder(self.byte_order.numpy_prefix)
        self.sample_buffer = samples.astype(dtype).tobytes()
        expected = self.width * self.height * self.data_type.bytes_per_sample
        if len(self.sample_buffer) != expected:
            raise InvalidArgumentError(
                f"Sample buffer holds {len(self.sample_buffer)} bytes, expected {expected}"
            )

    @property
    def bytes_per_sample(self) -> int:
        return self.data_type.bytes_per_sample

    def to_xarray(self) -> xr.DataArray:
        """Samples labelled with pixel-center latitude and longitude.

        Nodata samples are kept as stored; the value is in ``attrs['nodata']``.
        """
        lat_step = self.sector.delta_lat / self.height
        lon_step = self.sector.delta_lon / self.width
        lats = self.sector.max_lat - (np.arange(self.height) + 0.5) * lat_step
        lons = self.sector.min_lon + (np.arange(self.width) + 0.5) * lon_step
        return xr.DataArray(
            self.samples,
            coords={'lat': lats, 'lon': lons},
            dims=['lat', 'lon'],
            name='elevation',
            attrs={
                'nodata': self.nodata_value,
                'data_type': self.data_type.value,
                'byte_order': self.byte_order.value,
                'sector': self.sector.to_list(),
            },
        )
