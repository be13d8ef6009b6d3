# geocompose/resampling/resampler.py
"""Warp a source raster onto the geographic grid of a request."""

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

import numpy as np
from osgeo import gdal

from geocompose.abstractions.types import RasterDataType
from geocompose.exceptions import (
    OutOfCoverageError, ResourceExhaustedError, SourceUnreadableError, handle_gdal_error
)
from geocompose.geometry import Sector, geotransform
from geocompose.raster.handle import NativeRasterHandle
from geocompose.raster.readers import gdal_backend
from .pyramid import FULL_RESOLUTION, PyramidLevel, PyramidSelector, synthetic_levels

logger = logging.getLogger(__name__)

# Fill value of the coverage mask; pixels still holding it received no source data
MASK_SENTINEL = 0xFFFFFFFF


@dataclass
class ResampledRaster:
    """Source samples warped onto a request grid.

    ``data`` has shape ``(bands, height, width)``; ``valid_mask`` is False
    where the source footprint does not reach.
    """
    data: np.ndarray
    valid_mask: np.ndarray
    sector: Sector
    data_type: RasterDataType
    nodata_value: Optional[float] = None
    color_interpretations: List[int] = field(default_factory=list)
    color_table: Optional[np.ndarray] = None
    level: Optional[PyramidLevel] = None

    @property
    def band_count(self) -> int:
        return self.data.shape[0]

    @property
    def width(self) -> int:
        return self.data.shape[2]

    @property
    def height(self) -> int:
        return self.data.shape[1]

    def data_mask(self) -> np.ndarray:
        """Valid pixels that are not nodata in every band."""
        mask = self.valid_mask.copy()
        if self.nodata_value is not None:
            if np.isnan(self.nodata_value):
                mask &= ~np.all(np.isnan(self.data), axis=0)
            else:
                mask &= ~np.all(self.data == self.nodata_value, axis=0)
        return mask


class Resampler:
    """Selects a pyramid level, crops, and warps a source to a request grid."""

    def __init__(self, settings: Optional[Any] = None):
        if settings is None:
            from geocompose.config import config as settings
        self.settings = settings
        self.selector = PyramidSelector(settings.get('raster_processing.max_raster_dimension', 3072))
        self.trivial_ratio = float(settings.get('raster_processing.trivial_area_ratio_percent', 1.0)) / 100.0
        self.warp_memory_limit = int(settings.get('raster_processing.warp_memory_limit_mb', 256)) * 1024 * 1024
        methods = settings.get('raster_processing.resampling_methods') or {}
        self.continuous_method = methods.get('continuous', 'bilinear')
        self.categorical_method = methods.get('categorical', 'nearest')
        self.mask_method = methods.get('mask', 'nearest')
        self.read_method = settings.get('raster_processing.read_resampling', 'bilinear')

    def resample(self, handle: NativeRasterHandle, request) -> Optional[ResampledRaster]:
        """Warp ``handle`` onto ``request.target_sector`` at the request size.

        Returns None when the source only touches the request along an edge.

        Raises:
            OutOfCoverageError: the source does not intersect the request
            SourceUnreadableError: decoding or warping failed, or no
                pyramid level fits the size limit
        """
        sector: Sector = request.target_sector
        width, height = int(request.target_width), int(request.target_height)

        if handle.sector is None:
            raise SourceUnreadableError(f"{handle.source} has no geographic extent")
        overlap = handle.sector.intersection(sector)
        if overlap is None:
            raise OutOfCoverageError(f"{handle.source.name} does not intersect {sector}")
        if overlap.is_empty:
            logger.debug(f"{handle.source.name} only touches {sector} - nothing to resample")
            return None

        try:
            if handle.area is None:
                return self._resample_screen(handle, sector, width, height)
            return self._resample_georeferenced(handle, sector, width, height)
        except ResourceExhaustedError as e:
            raise SourceUnreadableError(f"{handle.source.name}: {e}", e) from e

    def _is_categorical(self, handle: NativeRasterHandle) -> bool:
        return handle.metadata.has_color_table

    @handle_gdal_error("Screen raster decode")
    def _resample_screen(self, handle: NativeRasterHandle, sector: Sector,
                         width: int, height: int) -> Optional[ResampledRaster]:
        """Place a raster without georeferencing linearly over its declared sector."""
        source_sector = handle.sector
        overlap = source_sector.intersection(sector)

        def span(lo, hi, origin, extent, size):
            return (lo - origin) / extent * size, (hi - origin) / extent * size

        dst_c0, dst_c1 = span(overlap.min_lon, overlap.max_lon, sector.min_lon, sector.delta_lon, width)
        dst_r0, dst_r1 = span(sector.max_lat - overlap.max_lat, sector.max_lat - overlap.min_lat,
                              0.0, sector.delta_lat, height)
        dst_c0, dst_c1 = int(round(dst_c0)), int(round(dst_c1))
        dst_r0, dst_r1 = int(round(dst_r0)), int(round(dst_r1))
        if dst_c1 <= dst_c0 or dst_r1 <= dst_r0:
            return None

        src_c0, src_c1 = span(overlap.min_lon, overlap.max_lon, source_sector.min_lon,
                              source_sector.delta_lon, handle.width)
        src_r0, src_r1 = span(source_sector.max_lat - overlap.max_lat,
                              source_sector.max_lat - overlap.min_lat,
                              0.0, source_sector.delta_lat, handle.height)
        src_c0, src_r0 = max(0, int(np.floor(src_c0))), max(0, int(np.floor(src_r0)))
        src_c1 = min(handle.width, max(src_c0 + 1, int(np.ceil(src_c1))))
        src_r1 = min(handle.height, max(src_r0 + 1, int(np.ceil(src_r1))))

        method = 'nearest' if self._is_categorical(handle) else self.read_method
        window = handle.read_window(src_c0, src_r0, src_c1 - src_c0, src_r1 - src_r0,
                                    dst_c1 - dst_c0, dst_r1 - dst_r0, resampling=method)

        fill = handle.nodata_value if handle.nodata_value is not None else 0
        data = np.full((handle.band_count, height, width), fill, dtype=handle.data_type.numpy_dtype)
        data[:, dst_r0:dst_r1, dst_c0:dst_c1] = window
        valid = np.zeros((height, width), dtype=bool)
        valid[dst_r0:dst_r1, dst_c0:dst_c1] = True

        return ResampledRaster(
            data=data, valid_mask=valid, sector=sector,
            data_type=handle.data_type, nodata_value=handle.nodata_value,
            color_interpretations=handle.color_interpretations,
            color_table=handle.color_table(),
            level=PyramidLevel(FULL_RESOLUTION, handle.width, handle.height),
        )

    @handle_gdal_error("Warp")
    def _resample_georeferenced(self, handle: NativeRasterHandle, sector: Sector,
                                width: int, height: int) -> Optional[ResampledRaster]:
        area = handle.area
        categorical = self._is_categorical(handle)
        wgs84 = gdal_backend.wgs84_wkt()

        with ExitStack() as temporaries:
            def owned(dataset):
                temporaries.callback(gdal_backend.release_dataset, dataset)
                return dataset

            source = self._working_dataset(handle, sector, width, height, categorical)
            if source is None:
                return None
            src_ds, level, is_temporary = source
            if is_temporary:
                owned(src_ds)

            dst_ds = owned(gdal_backend.create_mem_dataset(
                width, height, handle.band_count, handle.data_type,
                geotransform.from_sector(sector, width, height), wgs84
            ))
            fill = handle.nodata_value if handle.nodata_value is not None else 0
            for index in range(handle.band_count):
                band = dst_ds.GetRasterBand(index + 1)
                if handle.nodata_value is not None:
                    band.SetNoDataValue(float(handle.nodata_value))
                band.Fill(fill)

            gdal.Warp(dst_ds, src_ds, options=gdal.WarpOptions(
                srcSRS=handle.spatial_reference,
                dstSRS=wgs84,
                resampleAlg=self.categorical_method if categorical else self.continuous_method,
                srcNodata=handle.nodata_value,
                dstNodata=handle.nodata_value,
                warpMemoryLimit=self.warp_memory_limit,
                warpOptions=['INIT_DEST=NO_DATA'] if handle.nodata_value is not None else None,
                options=['-nosrcalpha'],
            ))

            data = dst_ds.ReadAsArray()
            if data.ndim == 2:
                data = data[np.newaxis, ...]

            if area.contains(sector):
                valid = np.ones((height, width), dtype=bool)
            else:
                valid = self._coverage_mask(src_ds, handle.spatial_reference, sector,
                                            width, height, wgs84, owned)

            return ResampledRaster(
                data=data, valid_mask=valid, sector=sector,
                data_type=handle.data_type, nodata_value=handle.nodata_value,
                color_interpretations=handle.color_interpretations,
                color_table=handle.color_table(),
                level=level,
            )

    def _working_dataset(self, handle: NativeRasterHandle, sector: Sector,
                         width: int, height: int,
                         categorical: bool) -> Optional[Tuple[gdal.Dataset, PyramidLevel, bool]]:
        """Dataset the warp reads from: ``(dataset, level, is_temporary)``."""
        area = handle.area
        full = PyramidLevel(FULL_RESOLUTION, handle.width, handle.height)

        if area.intersection_ratio(sector) <= self.trivial_ratio:
            logger.debug(f"{handle.source.name}: small clip, warping from full resolution")
            return handle.dataset, full, False

        read_method = 'nearest' if categorical else self.read_method

        if area.is_north_up:
            level = self.selector.select(handle.width, handle.height, handle.overviews,
                                         handle.sector, sector, width, height)
            window = area.pixel_window(sector, level.width, level.height)
            if window is None:
                return None
            col, row, cols, rows = window
            out_width, out_height = min(cols, width), min(rows, height)
            data = handle.read_window(col, row, cols, rows, out_width, out_height,
                                      level=level.index, resampling=read_method)
            level_gt = geotransform.scaled(handle.geo_transform, handle.width, handle.height,
                                           level.width, level.height)
            crop_gt = geotransform.window(level_gt, col, row, cols, rows, out_width, out_height)
            dataset = gdal_backend.dataset_from_array(data, crop_gt, handle.spatial_reference,
                                                      handle.nodata_value)
            return dataset, level, True

        # Rotated rasters are materialised whole at the selected level
        overviews = handle.overviews
        synthetic = not overviews
        if synthetic:
            overviews = synthetic_levels(handle.width, handle.height, self.selector.max_dimension)
        level = self.selector.select(handle.width, handle.height, overviews,
                                     handle.sector, sector, width, height)
        level = self.selector.cap(level, overviews)
        if level.is_full_resolution:
            return handle.dataset, level, False

        if synthetic:
            data = handle.read_window(0, 0, handle.width, handle.height, level.width, level.height,
                                      resampling=read_method)
        else:
            data = handle.read_window(0, 0, level.width, level.height, level.width, level.height,
                                      level=level.index)
        level_gt = geotransform.scaled(handle.geo_transform, handle.width, handle.height,
                                       level.width, level.height)
        dataset = gdal_backend.dataset_from_array(data, level_gt, handle.spatial_reference,
                                                  handle.nodata_value)
        return dataset, level, True

    def _coverage_mask(self, src_ds: gdal.Dataset, srs_wkt: str, sector: Sector,
                       width: int, height: int, wgs84: str, owned) -> np.ndarray:
        """Warp a constant band to find which request pixels the source reaches.

        The constant source holds no pixels, so only the request-sized
        destination is allocated however large ``src_ds`` is.
        """
        mask_src = owned(gdal_backend.create_constant_dataset(
            src_ds.RasterXSize, src_ds.RasterYSize, RasterDataType.UINT32,
            src_ds.GetGeoTransform(), srs_wkt
        ))

        mask_dst = owned(gdal_backend.create_mem_dataset(
            width, height, 1, RasterDataType.UINT32,
            geotransform.from_sector(sector, width, height), wgs84
        ))
        mask_band = mask_dst.GetRasterBand(1)
        mask_band.SetNoDataValue(MASK_SENTINEL)
        mask_band.Fill(MASK_SENTINEL)

        gdal.Warp(mask_dst, mask_src, options=gdal.WarpOptions(
            srcSRS=srs_wkt,
            dstSRS=wgs84,
            resampleAlg=self.mask_method,
            warpMemoryLimit=self.warp_memory_limit,
        ))
        return mask_dst.GetRasterBand(1).ReadAsArray() != MASK_SENTINEL
