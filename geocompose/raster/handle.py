# geocompose/raster/handle.py
"""Scoped access to one open source raster."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
from osgeo import gdal

from geocompose.abstractions.interfaces import RasterMetadata
from geocompose.abstractions.types import (
    CoordinateSystemKind, PixelFormat, RasterDataType
)
from geocompose.exceptions import SourceUnreadableError
from geocompose.geometry import GeoArea, Sector
from geocompose.raster.readers.gdal_backend import (
    READ_RESAMPLING_METHODS, release_dataset
)

logger = logging.getLogger(__name__)

# Full-resolution level index
FULL_RESOLUTION = -1


class NativeRasterHandle:
    """An open GDAL dataset plus the metadata resolved by its reader.

    Handles are owned by one composition request and must be closed,
    preferably through ``with``:

        with reader.open(path, hints) as handle:
            ...
    """

    def __init__(self, dataset: gdal.Dataset, source: Path, metadata: RasterMetadata):
        if dataset is None:
            raise SourceUnreadableError(f"No dataset for {source}")
        self._dataset = dataset
        self.source = Path(source)
        self.metadata = metadata
        self._area: Optional[GeoArea] = None

        band = dataset.GetRasterBand(1)
        levels = [(band.GetOverview(i).XSize, band.GetOverview(i).YSize, i)
                  for i in range(band.GetOverviewCount())]
        # Finest first, keeping GDAL's overview index
        levels.sort(key=lambda level: (-level[0], -level[1]))
        self._overview_levels: List[Tuple[int, int, int]] = levels

    def __enter__(self) -> 'NativeRasterHandle':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def close(self):
        """Release the dataset. Safe to call more than once."""
        if self._dataset is not None:
            release_dataset(self._dataset)
            self._dataset = None

    @property
    def closed(self) -> bool:
        return self._dataset is None

    @property
    def dataset(self) -> gdal.Dataset:
        if self._dataset is None:
            raise SourceUnreadableError(f"Raster handle for {self.source} is closed")
        return self._dataset

    @property
    def width(self) -> int:
        return self.metadata.width

    @property
    def height(self) -> int:
        return self.metadata.height

    @property
    def band_count(self) -> int:
        return self.metadata.band_count

    @property
    def data_type(self) -> RasterDataType:
        return RasterDataType.parse(self.metadata.data_type)

    @property
    def spatial_reference(self) -> Optional[str]:
        return self.metadata.spatial_reference

    @property
    def geo_transform(self) -> Tuple[float, ...]:
        return tuple(self.metadata.geo_transform or self.dataset.GetGeoTransform())

    @property
    def sector(self) -> Optional[Sector]:
        return self.metadata.sector

    @property
    def nodata_value(self) -> Optional[float]:
        return self.metadata.nodata_value

    @property
    def coordinate_system(self) -> CoordinateSystemKind:
        return self.metadata.coordinate_system

    @property
    def pixel_format(self) -> PixelFormat:
        return self.metadata.pixel_format

    @property
    def overviews(self) -> List[Tuple[int, int]]:
        """Overview sizes from finest to coarsest."""
        return [(w, h) for w, h, _ in self._overview_levels]

    @property
    def area(self) -> Optional[GeoArea]:
        """Native footprint; None for rasters without a usable spatial reference."""
        if self._area is None and self.coordinate_system.is_georeferenced and self.spatial_reference:
            self._area = GeoArea(self.spatial_reference, self.geo_transform,
                                 self.width, self.height)
        return self._area

    @property
    def color_interpretations(self) -> List[int]:
        return [self.dataset.GetRasterBand(i + 1).GetColorInterpretation()
                for i in range(self.band_count)]

    @property
    def has_alpha_band(self) -> bool:
        return gdal.GCI_AlphaBand in self.color_interpretations

    def color_table(self) -> Optional[np.ndarray]:
        """Band 1 palette as an ``(entries, 4)`` uint8 RGBA array."""
        table = self.dataset.GetRasterBand(1).GetColorTable()
        if table is None:
            return None
        entries = [table.GetColorEntry(i) for i in range(table.GetCount())]
        palette = np.zeros((len(entries), 4), dtype=np.uint8)
        for i, entry in enumerate(entries):
            values = list(entry) + [255] * (4 - len(entry))
            palette[i] = values[:4]
        return palette

    def level_size(self, level: int) -> Tuple[int, int]:
        if level == FULL_RESOLUTION:
            return self.width, self.height
        width, height, _ = self._overview_levels[level]
        return width, height

    def read_window(self, col_off: int, row_off: int, cols: int, rows: int,
                    out_width: int, out_height: int,
                    level: int = FULL_RESOLUTION,
                    resampling: str = 'bilinear',
                    bands: Optional[Sequence[int]] = None) -> np.ndarray:
        """Read a pixel window of a level into a ``(bands, out_height, out_width)`` array.

        ``level`` indexes ``overviews`` (finest first); -1 is full resolution.
        """
        alg = READ_RESAMPLING_METHODS.get(resampling, gdal.GRIORA_NearestNeighbour)
        band_numbers = list(bands) if bands else list(range(1, self.band_count + 1))

        planes = []
        for number in band_numbers:
            band = self.dataset.GetRasterBand(number)
            if level != FULL_RESOLUTION:
                band = band.GetOverview(self._overview_levels[level][2])
            array = band.ReadAsArray(int(col_off), int(row_off), int(cols), int(rows),
                                     buf_xsize=int(out_width), buf_ysize=int(out_height),
                                     resample_alg=alg)
            if array is None:
                raise SourceUnreadableError(
                    f"Read of window ({col_off}, {row_off}, {cols}, {rows}) failed for {self.source}"
                )
            planes.append(array)
        return np.stack(planes)

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return (f"NativeRasterHandle({self.source.name}, {self.width}x{self.height}x"
                f"{self.band_count} {self.metadata.data_type}, {state})")
