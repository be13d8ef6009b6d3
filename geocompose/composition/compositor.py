# geocompose/composition/compositor.py
"""Compose every catalog source intersecting a request into one raster."""

import logging
import math
import threading
from typing import Any, List, Optional, Tuple, Union

import numpy as np

from geocompose.abstractions.types import PixelFormat, RasterDataType
from geocompose.exceptions import GeoComposeError, OutOfCoverageError
from geocompose.geometry import Sector
from geocompose.infrastructure.logging import CompositionLoggingContext
from geocompose.raster.catalog import RasterCatalog
from geocompose.raster.composed import ElevationRaster, ImageRaster
from geocompose.raster.descriptor import RasterDescriptor
from geocompose.raster.handle import NativeRasterHandle
from geocompose.raster.readers.registry import ReaderRegistry
from geocompose.resampling import Resampler
from .canvas import ElevationCanvas, ImageCanvas, PaletteCanvas
from .request import CompositionRequest

logger = logging.getLogger(__name__)

ComposedRaster = Union[ImageRaster, ElevationRaster]

# Tolerance when snapping sector edges to canvas pixels
SNAP_EPSILON = 1e-6


class Compositor:
    """Paints the sources of a catalog onto a request-sized canvas.

    The catalog and registry are only read, so one compositor can serve
    concurrent ``compose`` calls; every call owns its handles and canvas.
    """

    def __init__(self, catalog: RasterCatalog,
                 registry: Optional[ReaderRegistry] = None,
                 resampler: Optional[Resampler] = None,
                 config: Optional[Any] = None):
        if config is None:
            from geocompose.config import config
        self.config = config
        self.catalog = catalog
        self.registry = registry or catalog.registry or ReaderRegistry.from_config(config)
        self.resampler = resampler or Resampler(config)

    def compose(self, request: CompositionRequest,
                cancel_event: Optional[threading.Event] = None) -> ComposedRaster:
        """Compose the request from all intersecting sources, in catalog order.

        Sources that fail to open or resample are logged and skipped. When
        ``cancel_event`` is set the remaining sources are skipped and the
        partial result is returned.

        Raises:
            InvalidArgumentError: the request is malformed
            OutOfCoverageError: the catalog does not cover the request
        """
        request.validate()
        sector = request.target_sector
        coverage = self.catalog.sector
        if coverage is None or not coverage.intersects(sector):
            raise OutOfCoverageError(f"Catalog coverage {coverage} does not intersect {sector}")

        descriptors = self.catalog.intersecting(sector)
        pixel_format = request.pixel_format or self.catalog.pixel_format
        canvas = self._create_canvas(request, pixel_format, descriptors)

        context = CompositionLoggingContext()
        with context.request(width=request.target_width, height=request.target_height,
                             sector=sector.to_list(), pixels=request.target_width * request.target_height,
                             sources=len(descriptors)):
            painted = 0
            for index, descriptor in enumerate(descriptors):
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Composition cancelled, skipping {len(descriptors) - index} sources")
                    break
                with context.source(descriptor.name):
                    if self._paint_source(canvas, descriptor, request):
                        painted += 1

            logger.info(f"Composed {painted} of {len(descriptors)} sources over {sector}")

        if pixel_format is PixelFormat.ELEVATION:
            return canvas.finish(request.byte_order)
        return canvas.finish(request.color_model)

    def _create_canvas(self, request: CompositionRequest, pixel_format: PixelFormat,
                       descriptors: List[RasterDescriptor]):
        width, height = request.target_width, request.target_height

        if pixel_format is PixelFormat.ELEVATION:
            nodata = self._elevation_nodata(request, descriptors)
            return ElevationCanvas(width, height, request.target_sector, request.data_type, nodata)

        color_table = self._shared_color_table(descriptors)
        if color_table is not None:
            logger.debug(f"All {len(descriptors)} sources share a {len(color_table)}-entry palette")
            return PaletteCanvas(width, height, color_table)
        return ImageCanvas(width, height, request.max_pixel_value_override)

    def _elevation_nodata(self, request: CompositionRequest,
                          descriptors: List[RasterDescriptor]) -> float:
        """Request override, else the first source's nodata, else the configured default."""
        if request.nodata_override is not None:
            nodata = request.nodata_override
        else:
            nodata = next((d.nodata_value for d in descriptors if d.nodata_value is not None),
                          self.config.get('elevation.default_nodata', -32768))

        low, high = request.data_type.value_range
        if not np.isfinite(nodata) or not low <= nodata <= high:
            fallback = self.config.get('elevation.default_nodata', -32768)
            logger.warning(
                f"Nodata {nodata} not representable as {request.data_type.value}, using {fallback}"
            )
            nodata = fallback
        return nodata

    def _shared_color_table(self, descriptors: List[RasterDescriptor]) -> Optional[np.ndarray]:
        """The palette every source uses, or None unless all are single-band paletted."""
        if not descriptors or not all(
            d.has_color_table and d.band_count == 1
            and RasterDataType.parse(d.data_type) is RasterDataType.BYTE
            for d in descriptors
        ):
            return None

        shared = None
        for descriptor in descriptors:
            try:
                with descriptor.open() as handle:
                    table = handle.color_table()
            except GeoComposeError as e:
                logger.warning(f"Cannot read palette of {descriptor.name}: {e}")
                return None
            if table is None or (shared is not None and not np.array_equal(shared, table)):
                return None
            shared = table
        return shared

    def snap_to_canvas(self, request: CompositionRequest,
                       overlap: Sector) -> Optional[Tuple[Sector, int, int, int, int]]:
        """Canvas pixel window covering ``overlap`` and the sector of that window.

        Returns ``(sector, col, row, cols, rows)`` or None when the overlap
        does not cover a whole pixel.
        """
        sector = request.target_sector
        lat_res, lon_res = request.resolution

        col0 = math.floor((overlap.min_lon - sector.min_lon) / lon_res + SNAP_EPSILON)
        col1 = math.ceil((overlap.max_lon - sector.min_lon) / lon_res - SNAP_EPSILON)
        row0 = math.floor((sector.max_lat - overlap.max_lat) / lat_res + SNAP_EPSILON)
        row1 = math.ceil((sector.max_lat - overlap.min_lat) / lat_res - SNAP_EPSILON)

        col0, row0 = max(0, col0), max(0, row0)
        col1 = min(request.target_width, col1)
        row1 = min(request.target_height, row1)
        if col1 <= col0 or row1 <= row0:
            return None

        snapped = Sector(
            min_lat=sector.max_lat - row1 * lat_res,
            max_lat=sector.max_lat - row0 * lat_res,
            min_lon=sector.min_lon + col0 * lon_res,
            max_lon=sector.min_lon + col1 * lon_res,
        )
        return snapped, col0, row0, col1 - col0, row1 - row0

    def _open(self, descriptor: RasterDescriptor) -> Optional[NativeRasterHandle]:
        if descriptor.reader.is_available():
            return descriptor.open()
        reader = self.registry.find_reader_for(descriptor.source, descriptor.hints)
        if reader is None:
            logger.warning(f"No available reader for {descriptor.source}")
            return None
        return reader.open(descriptor.source, descriptor.hints)

    def _paint_source(self, canvas, descriptor: RasterDescriptor,
                      request: CompositionRequest) -> bool:
        """Resample one source and paint it; False when it was skipped."""
        overlap = descriptor.sector.intersection(request.target_sector)
        window = self.snap_to_canvas(request, overlap) if overlap is not None else None
        if window is None:
            logger.debug(f"{descriptor.name} covers no whole canvas pixel")
            return False
        sub_sector, col, row, cols, rows = window

        try:
            handle = self._open(descriptor)
            if handle is None:
                return False
            with handle:
                resampled = self.resampler.resample(handle, request.sub_request(sub_sector, cols, rows))
            if resampled is None:
                return False
            canvas.paint(resampled, col, row, descriptor)
            return True
        except OutOfCoverageError as e:
            logger.debug(f"Skipping {descriptor.name}: {e}")
        except Exception as e:
            logger.error(f"Failed to paint {descriptor.name}: {e}", exc_info=True)
        return False
