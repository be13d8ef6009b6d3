# geocompose/raster/readers/gdal_reader.py
"""GDAL-backed reader for the formats GDAL can decode."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from osgeo import gdal

from geocompose.abstractions.interfaces import RasterReader, ReaderHints, RasterMetadata
from geocompose.abstractions.types import PixelFormat, RasterDataType
from geocompose.exceptions import SourceUnreadableError, handle_gdal_error
from geocompose.geometry import GeoArea
from geocompose.raster.handle import NativeRasterHandle
from . import gdal_backend
from .metadata_mapper import map_dataset_metadata
from .spatial_reference import classify, resolve_spatial_reference

logger = logging.getLogger(__name__)

# Drivers whose rasters are always elevation grids
ELEVATION_DRIVERS = {'DTED', 'AAIGrid', 'USGSDEM', 'SRTMHGT', 'GSAG', 'GSBG'}

ELEVATION_DATA_TYPES = {
    RasterDataType.INT16, RasterDataType.INT32,
    RasterDataType.FLOAT32, RasterDataType.FLOAT64,
}


@dataclass
class GDALReaderOptions:
    """Options of the GDAL reader."""
    suffixes: Tuple[str, ...] = (
        'jp2', 'sid', 'ntf', 'nitf', 'jpg', 'jpeg', 'png', 'bmp', 'gif',
        'tif', 'tiff', 'gtif', 'gtiff', 'dt0', 'dt1', 'dt2', 'asc',
        'adf', 'dem', 'img', 'vrt', 'hgt',
    )
    open_options: Dict[str, str] = field(default_factory=dict)
    quick_reading: bool = False
    nodata_sentinels: Sequence[float] = (-32767, -32768)

    @classmethod
    def from_config(cls, settings: Any) -> 'GDALReaderOptions':
        return cls(
            open_options=dict(settings.get('readers.gdal.open_options') or {}),
            quick_reading=bool(settings.get('readers.gdal.quick_reading', False)),
            nodata_sentinels=tuple(settings.get('elevation.nodata_sentinels', (-32767, -32768))),
        )


def _band_minimum(band: gdal.Band, quick: bool) -> Optional[float]:
    minimum = band.GetMinimum()
    if minimum is None and not quick:
        try:
            minimum = band.ComputeRasterMinMax(True)[0]
        except RuntimeError:
            # All samples are nodata
            return None
    return minimum


def guess_pixel_format(dataset: gdal.Dataset, driver_name: str) -> PixelFormat:
    """Elevation for DEM drivers and single signed/float bands without a palette."""
    if driver_name in ELEVATION_DRIVERS:
        return PixelFormat.ELEVATION
    if dataset.RasterCount != 1:
        return PixelFormat.IMAGE
    band = dataset.GetRasterBand(1)
    if band.GetColorTable() is not None:
        return PixelFormat.IMAGE
    data_type = gdal_backend.raster_data_type(band.DataType)
    return PixelFormat.ELEVATION if data_type in ELEVATION_DATA_TYPES else PixelFormat.IMAGE


def describe_dataset(dataset: gdal.Dataset, source: Path,
                     hints: ReaderHints,
                     quick_reading: bool = False,
                     nodata_sentinels: Sequence[float] = (-32767, -32768),
                     driver_name: Optional[str] = None) -> RasterMetadata:
    """Resolve everything composition needs to know about an open dataset."""
    width, height = dataset.RasterXSize, dataset.RasterYSize
    band = dataset.GetRasterBand(1)
    driver_name = driver_name or dataset.GetDriver().ShortName
    data_type = gdal_backend.raster_data_type(band.DataType)

    geo_transform = dataset.GetGeoTransform(can_return_null=True)
    geo_transform = tuple(geo_transform) if geo_transform else None

    mapped = map_dataset_metadata(dataset.GetMetadata() or {}, driver_name)

    srs_wkt = None
    if geo_transform is not None:
        srs_wkt, origin = resolve_spatial_reference(
            dataset.GetProjection(), source, hints.spatial_reference,
            mapped.projection_wkt, geo_transform, width, height
        )
        logger.debug(f"{source.name}: spatial reference from {origin}")
    coordinate_system = classify(srs_wkt, geo_transform)

    pixel_format = hints.pixel_format or guess_pixel_format(dataset, driver_name)

    nodata_value = hints.nodata_value
    if nodata_value is None:
        nodata_value = band.GetNoDataValue()
    if (nodata_value is None and pixel_format is PixelFormat.ELEVATION
            and data_type.is_signed):
        # Approximation: a minimum equal to a well-known sentinel is taken
        # as an undeclared nodata value
        minimum = _band_minimum(band, quick_reading or hints.quick_reading)
        if minimum is not None and minimum in nodata_sentinels:
            nodata_value = float(minimum)
            logger.debug(f"{source.name}: using minimum {minimum} as nodata")

    sector = hints.sector
    if sector is None and coordinate_system.is_georeferenced:
        try:
            sector = GeoArea(srs_wkt, geo_transform, width, height).to_sector()
        except (ValueError, RuntimeError) as e:
            logger.warning(f"Cannot compute geographic extent of {source}: {e}")

    bits = mapped.actual_bits_per_pixel
    if bits is None:
        nbits = band.GetMetadataItem('NBITS', 'IMAGE_STRUCTURE')
        bits = int(nbits) if nbits and nbits.isdigit() else None

    overview_sizes = sorted(
        ((band.GetOverview(i).XSize, band.GetOverview(i).YSize)
         for i in range(band.GetOverviewCount())),
        reverse=True
    )

    return RasterMetadata(
        width=width,
        height=height,
        band_count=dataset.RasterCount,
        data_type=data_type.value,
        driver=driver_name,
        sector=sector,
        pixel_format=pixel_format,
        coordinate_system=coordinate_system,
        nodata_value=nodata_value,
        spatial_reference=srs_wkt,
        geo_transform=geo_transform,
        overview_sizes=overview_sizes,
        actual_bits_per_pixel=bits,
        max_pixel_value=mapped.max_pixel_value,
        has_color_table=band.GetColorTable() is not None,
        extended=mapped.extended,
    )


class GDALRasterReader(RasterReader):
    """Reads any raster format GDAL can open."""

    name = 'gdal'

    def __init__(self, options: Optional[GDALReaderOptions] = None, settings: Optional[Any] = None):
        self.options = options or GDALReaderOptions()
        self._settings = settings

    def is_available(self) -> bool:
        return gdal_backend.initialize_gdal(self._settings)

    def can_read(self, source, hints: Optional[ReaderHints] = None) -> bool:
        try:
            if not self.is_available():
                return False
            path = Path(source)
            if not path.is_file():
                return False
            if path.suffix.lower().lstrip('.') in self.options.suffixes:
                return True
            return gdal.IdentifyDriver(str(path)) is not None
        except Exception as e:
            logger.debug(f"GDAL reader cannot read {source}: {e}")
            return False

    def _open_dataset(self, path: Path) -> gdal.Dataset:
        gdal_backend.require_gdal(self._settings)
        open_options = [f"{k}={v}" for k, v in self.options.open_options.items()]
        dataset = gdal.OpenEx(str(path), gdal.OF_RASTER | gdal.OF_READONLY,
                              open_options=open_options)
        if dataset is None:
            raise SourceUnreadableError(f"GDAL cannot open {path}")
        return dataset

    def _describe(self, dataset: gdal.Dataset, path: Path, hints: ReaderHints) -> RasterMetadata:
        return describe_dataset(
            dataset, path, hints,
            quick_reading=self.options.quick_reading,
            nodata_sentinels=self.options.nodata_sentinels,
        )

    @handle_gdal_error("Read raster metadata")
    def read_metadata(self, source, hints: Optional[ReaderHints] = None) -> RasterMetadata:
        path = Path(source)
        hints = hints or ReaderHints()
        dataset = self._open_dataset(path)
        try:
            return self._describe(dataset, path, hints)
        finally:
            gdal_backend.release_dataset(dataset)

    @handle_gdal_error("Open raster")
    def open(self, source, hints: Optional[ReaderHints] = None) -> NativeRasterHandle:
        path = Path(source)
        hints = hints or ReaderHints()
        dataset = self._open_dataset(path)
        try:
            metadata = self._describe(dataset, path, hints)
        except Exception:
            gdal_backend.release_dataset(dataset)
            raise
        return NativeRasterHandle(dataset, path, metadata)

    def decode_sector(self, source, hints: Optional[ReaderHints] = None):
        # The header already carries everything needed for the extent
        return self.read_metadata(source, hints).sector
