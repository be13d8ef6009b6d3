# geocompose/raster/readers/gdal_backend.py
"""One-time GDAL initialisation and in-memory dataset helpers."""

import logging
import threading
from typing import Any, Optional, Sequence

import numpy as np
from osgeo import gdal, osr

from geocompose.abstractions.types import RasterDataType
from geocompose.exceptions import DecoderUnavailableError

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_init_outcome: Optional[bool] = None
_init_error: Optional[Exception] = None

# GDAL resampling method mapping
RESAMPLING_METHODS = {
    'nearest': gdal.GRA_NearestNeighbour,
    'bilinear': gdal.GRA_Bilinear,
    'cubic': gdal.GRA_Cubic,
    'cubicspline': gdal.GRA_CubicSpline,
    'lanczos': gdal.GRA_Lanczos,
    'average': gdal.GRA_Average,
    'mode': gdal.GRA_Mode,
}

# Same names for RasterIO style reads (ReadRaster / ReadAsArray)
READ_RESAMPLING_METHODS = {
    'nearest': gdal.GRIORA_NearestNeighbour,
    'bilinear': gdal.GRIORA_Bilinear,
    'cubic': gdal.GRIORA_Cubic,
    'cubicspline': gdal.GRIORA_CubicSpline,
    'lanczos': gdal.GRIORA_Lanczos,
    'average': gdal.GRIORA_Average,
    'mode': gdal.GRIORA_Mode,
}


def initialize_gdal(settings: Optional[Any] = None) -> bool:
    """Initialise GDAL once per process and cache the outcome.

    Later calls return the cached outcome without touching GDAL again,
    whether the first attempt succeeded or not.
    """
    global _init_outcome, _init_error

    if _init_outcome is not None:
        return _init_outcome

    with _init_lock:
        if _init_outcome is not None:
            return _init_outcome

        if settings is None:
            from geocompose.config import config as settings

        try:
            gdal.UseExceptions()
            osr.UseExceptions()
            gdal.AllRegister()
            gdal.SetCacheMax(int(settings.get('raster_processing.gdal_cache_mb', 512)) * 1024 * 1024)
            for key, value in (settings.get('raster_processing.gdal_config_options') or {}).items():
                gdal.SetConfigOption(str(key), str(value))

            if gdal.GetDriverByName('MEM') is None:
                raise RuntimeError("GDAL MEM driver is not available")

            logger.info(
                f"GDAL {gdal.__version__} initialised with "
                f"{gdal.GetDriverCount()} drivers"
            )
            _init_outcome = True
        except Exception as e:
            logger.error(f"GDAL initialisation failed: {e}")
            _init_error = e
            _init_outcome = False

        return _init_outcome


def require_gdal(settings: Optional[Any] = None):
    """Raise DecoderUnavailableError unless GDAL initialised."""
    if not initialize_gdal(settings):
        raise DecoderUnavailableError("GDAL is not available", _init_error)


def gdal_type(data_type: RasterDataType) -> int:
    return gdal.GetDataTypeByName(data_type.value)


def raster_data_type(gdal_type_code: int) -> RasterDataType:
    """RasterDataType of a GDAL type code; unsupported types widen to Float64."""
    name = gdal.GetDataTypeName(gdal_type_code)
    try:
        return RasterDataType.parse(name)
    except ValueError:
        if name == 'Int8':
            return RasterDataType.INT16
        logger.debug(f"Unsupported GDAL data type {name}, reading as Float64")
        return RasterDataType.FLOAT64


def create_mem_dataset(width: int, height: int, band_count: int,
                       data_type: RasterDataType,
                       geo_transform: Optional[Sequence[float]] = None,
                       srs_wkt: Optional[str] = None) -> gdal.Dataset:
    """Create an in-memory dataset; the caller releases it."""
    driver = gdal.GetDriverByName('MEM')
    dataset = driver.Create('', int(width), int(height), int(band_count), gdal_type(data_type))
    if dataset is None:
        raise MemoryError(f"Cannot allocate {width}x{height}x{band_count} in-memory raster")
    if geo_transform is not None:
        dataset.SetGeoTransform(list(geo_transform))
    if srs_wkt:
        dataset.SetProjection(srs_wkt)
    return dataset


def create_constant_dataset(width: int, height: int, data_type: RasterDataType,
                            geo_transform: Optional[Sequence[float]] = None,
                            srs_wkt: Optional[str] = None) -> gdal.Dataset:
    """Single-band VRT without sources; every sample reads as zero and no pixels are held."""
    dataset = gdal.GetDriverByName('VRT').Create('', int(width), int(height), 1, gdal_type(data_type))
    if dataset is None:
        raise RuntimeError(f"Cannot create {width}x{height} constant raster")
    if geo_transform is not None:
        dataset.SetGeoTransform(list(geo_transform))
    if srs_wkt:
        dataset.SetProjection(srs_wkt)
    return dataset


def dataset_from_array(data: np.ndarray,
                       geo_transform: Optional[Sequence[float]] = None,
                       srs_wkt: Optional[str] = None,
                       nodata_value: Optional[float] = None) -> gdal.Dataset:
    """Wrap a ``(bands, rows, cols)`` or ``(rows, cols)`` array in a MEM dataset."""
    if data.ndim == 2:
        data = data[np.newaxis, ...]
    band_count, height, width = data.shape
    dataset = create_mem_dataset(width, height, band_count,
                                 RasterDataType.from_numpy(data.dtype),
                                 geo_transform, srs_wkt)
    for index in range(band_count):
        band = dataset.GetRasterBand(index + 1)
        if nodata_value is not None:
            band.SetNoDataValue(float(nodata_value))
        band.WriteArray(data[index])
    return dataset


def wgs84_wkt() -> str:
    srs = osr.SpatialReference()
    srs.ImportFromEPSG(4326)
    return srs.ExportToWkt()


def release_dataset(dataset: Optional[gdal.Dataset]):
    """Flush and close a GDAL dataset."""
    if dataset is None:
        return
    close = getattr(dataset, 'Close', None)
    if close is not None:
        close()
    else:
        dataset.FlushCache()
