"""Tests for finished composition rasters."""

import numpy as np
import pytest

from geocompose.abstractions.types import ByteOrder, ColorModel, RasterDataType
from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector
from geocompose.raster.composed import ElevationRaster, ImageRaster


class TestImageRaster:
    """Test image buffer invariants."""

    def test_buffer_is_pixel_interleaved(self):
        pixels = np.zeros((2, 3, 3), dtype=np.uint8)
        pixels[0, 0] = (1, 2, 3)
        raster = ImageRaster(width=3, height=2, band_count=3, color_model=ColorModel.RGB, pixels=pixels)

        assert len(raster.pixel_buffer) == 3 * 2 * 3
        assert raster.pixel_buffer[:3] == b'\x01\x02\x03'
        assert raster.bytes_per_sample == 1
        assert raster.band(2)[0, 0] == 3

    def test_single_band_accepts_2d_pixels(self):
        raster = ImageRaster(width=4, height=2, band_count=1, color_model=ColorModel.GRAYSCALE,
                             pixels=np.full((2, 4), 9, dtype=np.uint8))
        assert raster.pixels.shape == (2, 4, 1)

    def test_shape_mismatch(self):
        with pytest.raises(InvalidArgumentError):
            ImageRaster(width=4, height=4, band_count=4, color_model=ColorModel.RGBA,
                        pixels=np.zeros((4, 3, 4), dtype=np.uint8))

    def test_band_count_must_match_color_model(self):
        with pytest.raises(InvalidArgumentError):
            ImageRaster(width=2, height=2, band_count=3, color_model=ColorModel.RGBA,
                        pixels=np.zeros((2, 2, 3), dtype=np.uint8))

    def test_palette_needs_color_table(self):
        with pytest.raises(InvalidArgumentError):
            ImageRaster(width=2, height=2, band_count=1, color_model=ColorModel.PALETTE,
                        pixels=np.zeros((2, 2), dtype=np.uint8))


class TestElevationRaster:
    """Test elevation buffers and xarray export."""

    @pytest.fixture
    def samples(self):
        return np.array([[1, 2, 3], [4, 5, -32768]], dtype=np.int16)

    def make(self, samples, byte_order=ByteOrder.BIG_ENDIAN, data_type=RasterDataType.INT16):
        return ElevationRaster(width=3, height=2, sector=Sector(10, 12, 20, 23),
                               byte_order=byte_order, data_type=data_type,
                               nodata_value=-32768, samples=samples)

    def test_big_endian_buffer(self, samples):
        raster = self.make(samples)
        assert raster.band_count == 1
        assert raster.bytes_per_sample == 2
        assert raster.sample_buffer[:4] == b'\x00\x01\x00\x02'

    def test_little_endian_buffer(self, samples):
        raster = self.make(samples, ByteOrder.LITTLE_ENDIAN)
        assert raster.sample_buffer[:4] == b'\x01\x00\x02\x00'

    def test_float_buffer_length(self, samples):
        raster = self.make(samples.astype(np.float64), data_type=RasterDataType.FLOAT32)
        assert raster.samples.dtype == np.float32
        assert len(raster.sample_buffer) == 3 * 2 * 4

    def test_shape_mismatch(self):
        with pytest.raises(InvalidArgumentError):
            self.make(np.zeros((3, 2), dtype=np.int16))

    def test_to_xarray(self, samples):
        array = self.make(samples).to_xarray()
        assert array.dims == ('lat', 'lon')
        assert array.name == 'elevation'
        # Pixel centers, first row northernmost
        assert array.lat.values.tolist() == pytest.approx([11.5, 10.5])
        assert array.lon.values.tolist() == pytest.approx([20.5, 21.5, 22.5])
        assert array.attrs['nodata'] == -32768
        assert array.attrs['data_type'] == 'Int16'
        assert int(array.sel(lat=10.5, lon=21.5)) == 5
