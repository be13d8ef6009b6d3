# geocompose/composition/canvas.py
"""Destination buffers that resampled sources are painted onto."""

import logging
from typing import Optional, Tuple

import numpy as np
from osgeo import gdal

from geocompose.abstractions.types import ByteOrder, ColorModel, RasterDataType
from geocompose.geometry import Sector
from geocompose.raster.composed import ElevationRaster, ImageRaster
from geocompose.raster.descriptor import RasterDescriptor
from geocompose.resampling import ResampledRaster

logger = logging.getLogger(__name__)

# ITU-R BT.601 luma weights
LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])


def max_pixel_value(descriptor: Optional[RasterDescriptor], data_type: RasterDataType,
                    override: Optional[float] = None) -> float:
    """Sample value that maps to full intensity.

    Request override, then source metadata, then ``2**bits - 1`` for the
    declared significant bits, then the type maximum (1.0 for floats).
    """
    if override is not None and override > 0:
        return float(override)
    if descriptor is not None:
        if descriptor.max_pixel_value is not None and descriptor.max_pixel_value > 0:
            return float(descriptor.max_pixel_value)
        if descriptor.actual_bits_per_pixel:
            return float(2 ** descriptor.actual_bits_per_pixel - 1)
    if not data_type.is_integer:
        return 1.0
    return data_type.value_range[1]


def _scale(samples: np.ndarray, max_value: float) -> np.ndarray:
    if max_value == 255.0 and samples.dtype == np.uint8:
        return samples
    scaled = samples.astype(np.float64) * (255.0 / max_value)
    return np.clip(np.rint(np.nan_to_num(scaled)), 0, 255).astype(np.uint8)


def _rgb_band_order(interpretations) -> Tuple[int, int, int]:
    """Indices of the red, green and blue bands; declared order when not tagged."""
    wanted = (gdal.GCI_RedBand, gdal.GCI_GreenBand, gdal.GCI_BlueBand)
    if all(ci in interpretations for ci in wanted):
        return tuple(interpretations.index(ci) for ci in wanted)
    return 0, 1, 2


def to_rgba(resampled: ResampledRaster, descriptor: Optional[RasterDescriptor] = None,
            max_value_override: Optional[float] = None) -> np.ndarray:
    """Convert resampled image samples to ``(height, width, 4)`` uint8 RGBA.

    Handles palette, gray, gray+alpha, RGB and RGB+alpha sources. A fourth
    band that is not alpha (and any fourth Int16 band) is ignored. Alpha is
    zero wherever the source has no data.
    """
    data = resampled.data
    bands, height, width = data.shape
    rgba = np.zeros((height, width, 4), dtype=np.uint8)
    max_value = max_pixel_value(descriptor, resampled.data_type, max_value_override)
    interpretations = list(resampled.color_interpretations) or [gdal.GCI_Undefined] * bands

    if bands == 1 and resampled.color_table is not None:
        table = resampled.color_table
        indices = np.clip(data[0].astype(np.int64), 0, len(table) - 1)
        rgba[:] = table[indices]
    elif bands == 1:
        gray = _scale(data[0], max_value)
        rgba[..., 0] = rgba[..., 1] = rgba[..., 2] = gray
        rgba[..., 3] = 255
    elif bands == 2:
        gray = _scale(data[0], max_value)
        rgba[..., 0] = rgba[..., 1] = rgba[..., 2] = gray
        rgba[..., 3] = _scale(data[1], max_value)
    else:
        red, green, blue = _rgb_band_order(interpretations)
        for channel, index in enumerate((red, green, blue)):
            rgba[..., channel] = _scale(data[index], max_value)
        has_alpha = (bands >= 4
                     and resampled.data_type is not RasterDataType.INT16
                     and interpretations[3] == gdal.GCI_AlphaBand)
        rgba[..., 3] = _scale(data[3], max_value) if has_alpha else 255

    rgba[..., 3] = np.where(resampled.data_mask(), rgba[..., 3], 0)
    return rgba


class ImageCanvas:
    """RGBA canvas composited with the "over" operator."""

    def __init__(self, width: int, height: int, max_value_override: Optional[float] = None):
        self.width = width
        self.height = height
        self.max_value_override = max_value_override
        self.rgba = np.zeros((height, width, 4), dtype=np.uint8)

    def paint(self, resampled: ResampledRaster, col: int, row: int,
              descriptor: Optional[RasterDescriptor] = None):
        """Composite a resampled source over the canvas at pixel ``(col, row)``."""
        source = to_rgba(resampled, descriptor, self.max_value_override).astype(np.float64)
        target = self.rgba[row:row + resampled.height, col:col + resampled.width]
        destination = target.astype(np.float64)

        src_alpha = source[..., 3:] / 255.0
        dst_alpha = destination[..., 3:] / 255.0
        out_alpha = src_alpha + dst_alpha * (1.0 - src_alpha)
        weighted = source[..., :3] * src_alpha + destination[..., :3] * dst_alpha * (1.0 - src_alpha)
        out_color = np.divide(weighted, out_alpha, out=np.zeros_like(weighted), where=out_alpha > 0)

        target[..., :3] = np.clip(np.rint(out_color), 0, 255).astype(np.uint8)
        target[..., 3:] = np.clip(np.rint(out_alpha * 255.0), 0, 255).astype(np.uint8)

    def finish(self, color_model: Optional[ColorModel] = None) -> ImageRaster:
        color_model = color_model or ColorModel.RGBA
        return ImageRaster(
            width=self.width, height=self.height, band_count=color_model.band_count,
            color_model=color_model, pixels=convert_rgba(self.rgba, color_model),
        )


def convert_rgba(rgba: np.ndarray, color_model: ColorModel) -> np.ndarray:
    """RGBA pixels in another color model."""
    if color_model is ColorModel.RGBA:
        return rgba
    if color_model is ColorModel.RGB:
        return rgba[..., :3].copy()

    gray = np.clip(np.rint(rgba[..., :3].astype(np.float64) @ LUMA_WEIGHTS), 0, 255).astype(np.uint8)
    if color_model is ColorModel.GRAYSCALE:
        return gray[..., np.newaxis]
    if color_model is ColorModel.GRAYSCALE_ALPHA:
        return np.stack([gray, rgba[..., 3]], axis=-1)
    raise ValueError(f"Cannot convert RGBA to {color_model.value}")


class PaletteCanvas:
    """Index canvas for sources that share one color table.

    Later sources overwrite earlier ones wherever they carry data.
    """

    def __init__(self, width: int, height: int, color_table: np.ndarray):
        self.width = width
        self.height = height
        self.color_table = color_table
        self.indices = np.zeros((height, width), dtype=np.uint8)
        self.painted = np.zeros((height, width), dtype=bool)

    def paint(self, resampled: ResampledRaster, col: int, row: int,
              descriptor: Optional[RasterDescriptor] = None):
        mask = resampled.data_mask()
        window = (slice(row, row + resampled.height), slice(col, col + resampled.width))
        indices = np.clip(resampled.data[0], 0, len(self.color_table) - 1).astype(np.uint8)
        self.indices[window][mask] = indices[mask]
        self.painted[window] |= mask

    def finish(self, color_model: Optional[ColorModel] = None) -> ImageRaster:
        if color_model is None or color_model is ColorModel.PALETTE:
            return ImageRaster(
                width=self.width, height=self.height, band_count=1,
                color_model=ColorModel.PALETTE, pixels=self.indices,
                color_table=self.color_table,
            )

        rgba = self.color_table[self.indices].copy()
        rgba[..., 3] = np.where(self.painted, rgba[..., 3], 0)
        return ImageRaster(
            width=self.width, height=self.height, band_count=color_model.band_count,
            color_model=color_model, pixels=convert_rgba(rgba, color_model),
        )


class ElevationCanvas:
    """Sample grid prefilled with nodata; sources overwrite valid samples only."""

    def __init__(self, width: int, height: int, sector: Sector,
                 data_type: RasterDataType, nodata_value: float):
        self.width = width
        self.height = height
        self.sector = sector
        self.data_type = data_type
        self.nodata_value = nodata_value
        self.samples = np.full((height, width), nodata_value, dtype=data_type.numpy_dtype)

    def paint(self, resampled: ResampledRaster, col: int, row: int,
              descriptor: Optional[RasterDescriptor] = None):
        values = resampled.data[0].astype(np.float64)
        mask = resampled.data_mask() & np.isfinite(values)
        if not mask.any():
            return

        low, high = self.data_type.value_range
        values = np.clip(values, low, high)
        if self.data_type.is_integer:
            values = np.rint(values)

        target = self.samples[row:row + resampled.height, col:col + resampled.width]
        target[mask] = values[mask].astype(self.data_type.numpy_dtype)

    def finish(self, byte_order: ByteOrder = ByteOrder.BIG_ENDIAN) -> ElevationRaster:
        return ElevationRaster(
            width=self.width, height=self.height, sector=self.sector,
            byte_order=byte_order, data_type=self.data_type,
            nodata_value=self.nodata_value, samples=self.samples,
        )
