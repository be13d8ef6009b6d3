# tests/conftest.py
import os
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np
import pytest
import yaml
from osgeo import gdal, osr

os.environ.setdefault('FORCE_TEST_MODE', 'true')

from geocompose.config import Config
from geocompose.geometry import Sector
from geocompose.raster.readers.gdal_backend import initialize_gdal
from geocompose.raster.readers.registry import ReaderRegistry

gdal.UseExceptions()


class RasterTestHelper:
    """Helper class for creating test rasters."""

    @staticmethod
    def srs_wkt(epsg: int = 4326) -> str:
        srs = osr.SpatialReference()
        srs.ImportFromEPSG(epsg)
        return srs.ExportToWkt()

    @staticmethod
    def create_geotiff(
        output_path: Path,
        data: np.ndarray,
        sector: Optional[Sector] = None,
        geo_transform: Optional[Sequence[float]] = None,
        epsg: Optional[int] = 4326,
        nodata_value: Optional[float] = None,
        color_table: Optional[Sequence[Tuple[int, int, int, int]]] = None,
        color_interpretations: Optional[Sequence[int]] = None,
        overviews: Sequence[int] = (),
    ) -> Path:
        """Create a GeoTIFF from a ``(rows, cols)`` or ``(bands, rows, cols)`` array."""
        if data.ndim == 2:
            data = data[np.newaxis, ...]
        bands, height, width = data.shape
        gdal_type = gdal.GetDataTypeByName({
            'uint8': 'Byte', 'uint16': 'UInt16', 'int16': 'Int16', 'uint32': 'UInt32',
            'int32': 'Int32', 'float32': 'Float32', 'float64': 'Float64',
        }[data.dtype.name])

        dataset = gdal.GetDriverByName('GTiff').Create(str(output_path), width, height, bands, gdal_type)
        if sector is not None:
            geo_transform = [
                sector.min_lon, sector.delta_lon / width, 0.0,
                sector.max_lat, 0.0, -sector.delta_lat / height,
            ]
        if geo_transform is not None:
            dataset.SetGeoTransform(list(geo_transform))
        if epsg is not None:
            dataset.SetProjection(RasterTestHelper.srs_wkt(epsg))

        for index in range(bands):
            band = dataset.GetRasterBand(index + 1)
            band.WriteArray(data[index])
            if nodata_value is not None:
                band.SetNoDataValue(nodata_value)
            if color_interpretations is not None:
                band.SetColorInterpretation(color_interpretations[index])

        if color_table is not None:
            table = gdal.ColorTable()
            for entry, rgba in enumerate(color_table):
                table.SetColorEntry(entry, tuple(rgba))
            dataset.GetRasterBand(1).SetRasterColorTable(table)

        if overviews:
            dataset.BuildOverviews('NEAREST', list(overviews))

        dataset.FlushCache()
        dataset = None
        return output_path

    @staticmethod
    def create_bil(
        output_path: Path,
        data: np.ndarray,
        sector: Optional[Sector] = None,
        byte_order: str = 'I',
        header: bool = True,
        nodata_value: Optional[float] = None,
    ) -> Path:
        """Create a single-band BIL grid with an optional ESRI header."""
        height, width = data.shape
        prefix = '<' if byte_order == 'I' else '>'
        output_path.write_bytes(data.astype(data.dtype.newbyteorder(prefix)).tobytes())

        if header:
            lines = [
                f"BYTEORDER {byte_order}",
                "LAYOUT BIL",
                f"NROWS {height}",
                f"NCOLS {width}",
                "NBANDS 1",
                f"NBITS {data.dtype.itemsize * 8}",
            ]
            if data.dtype.kind == 'f':
                lines.append("PIXELTYPE FLOAT")
            elif data.dtype.kind == 'i':
                lines.append("PIXELTYPE SIGNEDINT")
            else:
                lines.append("PIXELTYPE UNSIGNEDINT")
            if sector is not None:
                xdim = sector.delta_lon / width
                ydim = sector.delta_lat / height
                lines += [
                    f"ULXMAP {sector.min_lon + xdim / 2.0}",
                    f"ULYMAP {sector.max_lat - ydim / 2.0}",
                    f"XDIM {xdim}",
                    f"YDIM {ydim}",
                ]
            if nodata_value is not None:
                lines.append(f"NODATA {nodata_value}")
            output_path.with_suffix('.hdr').write_text('\n'.join(lines) + '\n')
        return output_path

    @staticmethod
    def gradient(width: int, height: int, dtype=np.int16, scale: float = 1.0) -> np.ndarray:
        """Linear gradient from NW to SE."""
        xx, yy = np.meshgrid(np.arange(width), np.arange(height))
        return ((xx + yy) * scale).astype(dtype)

    @staticmethod
    def write_catalog(output_path: Path, sources, properties=None) -> Path:
        document = {'sources': sources}
        if properties is not None:
            document['properties'] = properties
        with open(output_path, 'w') as f:
            yaml.safe_dump(document, f)
        return output_path


@pytest.fixture(scope="session", autouse=True)
def gdal_initialized():
    assert initialize_gdal()


@pytest.fixture
def raster_helper():
    """Provide raster test helper."""
    return RasterTestHelper()


@pytest.fixture
def test_data_dir(tmp_path):
    return tmp_path


@pytest.fixture
def test_config():
    """Configuration with defaults only."""
    return Config()


@pytest.fixture
def registry(test_config):
    return ReaderRegistry.from_config(test_config)


@pytest.fixture
def elevation_tif(test_data_dir, raster_helper):
    """Int16 elevation grid over lat 0..10, lon 0..10 at 0.1 degrees."""
    data = raster_helper.gradient(100, 100, np.int16, scale=10.0)
    return raster_helper.create_geotiff(
        test_data_dir / "elevation.tif", data, Sector(0, 10, 0, 10)
    )


@pytest.fixture
def rgb_tif(test_data_dir, raster_helper):
    """Solid red RGB image over lat 0..10, lon 0..10."""
    data = np.zeros((3, 50, 50), dtype=np.uint8)
    data[0] = 200
    return raster_helper.create_geotiff(
        test_data_dir / "red.tif", data, Sector(0, 10, 0, 10),
        color_interpretations=[gdal.GCI_RedBand, gdal.GCI_GreenBand, gdal.GCI_BlueBand],
    )
