"""Tests for BIL elevation grids."""

import numpy as np
import pytest

from geocompose.abstractions.interfaces import ReaderHints
from geocompose.abstractions.types import ByteOrder, CoordinateSystemKind, PixelFormat, RasterDataType
from geocompose.exceptions import SourceUnreadableError
from geocompose.geometry import Sector
from geocompose.raster.readers.bil_reader import (
    BILRasterReader, BILReaderOptions, parse_world_file, raw_vrt_xml
)
from geocompose.raster.readers.gdal_reader import GDALRasterReader


@pytest.fixture
def reader(test_config):
    return BILRasterReader(BILReaderOptions.from_config(test_config), test_config)


class TestHeaderedBIL:
    """Grids with an ESRI header are decoded by GDAL."""

    def test_registry_picks_gdal(self, registry, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "tile.bil",
                                        raster_helper.gradient(30, 20, np.int16), Sector(10, 12, 20, 23))
        assert registry.find_reader_for(path).name == 'gdal'

    def test_header_metadata(self, test_config, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "tile.bil",
                                        raster_helper.gradient(30, 20, np.int16), Sector(10, 12, 20, 23))
        metadata = GDALRasterReader(settings=test_config).read_metadata(path)

        assert (metadata.width, metadata.height, metadata.band_count) == (30, 20, 1)
        assert metadata.data_type == 'Int16'
        assert metadata.driver == 'EHdr'
        assert metadata.pixel_format is PixelFormat.ELEVATION
        assert metadata.coordinate_system is CoordinateSystemKind.GEOGRAPHIC
        assert metadata.sector.min_lat == pytest.approx(10)
        assert metadata.sector.max_lat == pytest.approx(12)
        assert metadata.sector.max_lon == pytest.approx(23)

    def test_big_endian_header(self, test_config, raster_helper, test_data_dir):
        data = raster_helper.gradient(16, 16, np.int16, scale=100.0)
        path = raster_helper.create_bil(test_data_dir / "motorola.bil", data,
                                        Sector(0, 1, 0, 1), byte_order='M')
        with GDALRasterReader(settings=test_config).open(path) as handle:
            samples = handle.read_window(0, 0, 16, 16, 16, 16, resampling='nearest')
        np.testing.assert_array_equal(samples[0], data)

    def test_header_nodata(self, test_config, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "nd.bil", np.ones((4, 4), np.int16),
                                        Sector(0, 1, 0, 1), nodata_value=-9999)
        assert GDALRasterReader(settings=test_config).read_metadata(path).nodata_value == -9999

    def test_bil_reader_leaves_headered_grids_to_gdal(self, reader, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "headered.bil", np.zeros((4, 4), np.int16),
                                        Sector(0, 1, 0, 1))
        assert not reader.can_read(path)
        with pytest.raises(SourceUnreadableError):
            reader.open(path)


class TestHeaderlessBIL:
    """Bare square tiles read through a raw VRT band."""

    def test_registry_picks_bil(self, registry, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "bare.bil",
                                        raster_helper.gradient(16, 16, np.int16), header=False)
        assert registry.find_reader_for(path).name == 'bil'

    def test_square_tile(self, reader, raster_helper, test_data_dir):
        data = raster_helper.gradient(64, 64, np.int16)
        path = raster_helper.create_bil(test_data_dir / "bare.bil", data, header=False)
        hints = ReaderHints(sector=Sector(30, 31, 60, 61))

        metadata = reader.read_metadata(path, hints)
        assert (metadata.width, metadata.height) == (64, 64)
        assert metadata.driver == 'BIL'
        assert metadata.data_type == 'Int16'
        assert metadata.pixel_format is PixelFormat.ELEVATION
        assert metadata.sector == Sector(30, 31, 60, 61)
        assert metadata.coordinate_system is CoordinateSystemKind.GEOGRAPHIC

        with reader.open(path, hints) as handle:
            window = handle.read_window(0, 0, 64, 64, 64, 64, resampling='nearest')
        np.testing.assert_array_equal(window[0], data)

    def test_big_endian_option(self, raster_helper, test_data_dir):
        data = raster_helper.gradient(8, 8, np.int16, scale=300.0)
        path = raster_helper.create_bil(test_data_dir / "motorola.bil", data, byte_order='M', header=False)
        reader = BILRasterReader(BILReaderOptions(byte_order=ByteOrder.BIG_ENDIAN))

        with reader.open(path, ReaderHints(sector=Sector(0, 1, 0, 1))) as handle:
            window = handle.read_window(0, 0, 8, 8, 8, 8, resampling='nearest')
        np.testing.assert_array_equal(window[0], data)

    def test_byte_order_hint(self, reader, raster_helper, test_data_dir):
        data = raster_helper.gradient(8, 8, np.int16, scale=300.0)
        path = raster_helper.create_bil(test_data_dir / "hinted.bil", data, byte_order='M', header=False)
        hints = ReaderHints(sector=Sector(0, 1, 0, 1), extra={'byte_order': 'big'})

        with reader.open(path, hints) as handle:
            window = handle.read_window(0, 0, 8, 8, 8, 8, resampling='nearest')
        np.testing.assert_array_equal(window[0], data)

    def test_float_data_type_hint(self, reader, raster_helper, test_data_dir):
        data = raster_helper.gradient(8, 8, np.float32, scale=0.5)
        path = raster_helper.create_bil(test_data_dir / "float.bil32", data, header=False)
        hints = ReaderHints(sector=Sector(0, 1, 0, 1), data_type='Float32')

        assert reader.read_metadata(path, hints).data_type == 'Float32'
        with reader.open(path, hints) as handle:
            assert handle.data_type is RasterDataType.FLOAT32

    def test_sentinel_nodata_applied_on_open(self, reader, raster_helper, test_data_dir):
        data = np.full((10, 10), 12, dtype=np.int16)
        data[5, 5] = -32767
        path = raster_helper.create_bil(test_data_dir / "void.bil", data, header=False)
        hints = ReaderHints(sector=Sector(0, 1, 0, 1))

        assert reader.read_metadata(path, hints).nodata_value is None
        with reader.open(path, hints) as handle:
            assert handle.nodata_value == -32767

    def test_world_file(self, reader, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "world.bil", np.zeros((10, 10), np.int16),
                                        header=False)
        # Upper-left pixel center at (5.05, 49.95), 0.1 degree pixels
        path.with_suffix('.blw').write_text("0.1\n0.0\n0.0\n-0.1\n5.05\n49.95\n")

        sector = reader.read_metadata(path).sector
        assert sector.min_lon == pytest.approx(5.0)
        assert sector.max_lon == pytest.approx(6.0)
        assert sector.max_lat == pytest.approx(50.0)
        assert sector.min_lat == pytest.approx(49.0)

    def test_without_georeferencing(self, reader, raster_helper, test_data_dir):
        path = raster_helper.create_bil(test_data_dir / "loose.bil", np.zeros((4, 4), np.int16),
                                        header=False)
        assert reader.read_metadata(path).sector is None

    def test_non_square(self, reader, test_data_dir):
        path = test_data_dir / "odd.bil"
        path.write_bytes(b'\x00' * 2 * 6)
        with pytest.raises(SourceUnreadableError):
            reader.read_metadata(path)

    def test_can_read(self, reader, raster_helper, test_data_dir, elevation_tif):
        path = raster_helper.create_bil(test_data_dir / "bare.bil", np.zeros((4, 4), np.int16),
                                        header=False)
        assert reader.can_read(path)
        assert not reader.can_read(elevation_tif)
        assert not reader.can_read(test_data_dir / "absent.bil")


def test_raw_vrt_layout(test_data_dir):
    xml = raw_vrt_xml(test_data_dir / "a&b.bil", 32, RasterDataType.INT32, ByteOrder.BIG_ENDIAN,
                      (0.0, 0.5, 0.0, 16.0, 0.0, -0.5))
    assert 'rasterXSize="32"' in xml
    assert 'subClass="VRTRawRasterBand"' in xml
    assert '<PixelOffset>4</PixelOffset>' in xml
    assert '<LineOffset>128</LineOffset>' in xml
    assert '<ByteOrder>MSB</ByteOrder>' in xml
    assert 'a&amp;b.bil' in xml
    assert '<GeoTransform>0.0, 0.5, 0.0, 16.0, 0.0, -0.5</GeoTransform>' in xml


def test_parse_world_file(test_data_dir):
    path = test_data_dir / "grid.bilw"
    path.write_text("2.0\n0.0\n0.0\n-2.0\n101.0\n199.0\n")
    assert parse_world_file(path) == (100.0, 2.0, 0.0, 200.0, 0.0, -2.0)
