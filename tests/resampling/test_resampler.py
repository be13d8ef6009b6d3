"""Tests for warping sources onto request grids."""

import numpy as np
import pytest

from geocompose.abstractions.types import CoordinateSystemKind
from geocompose.abstractions.interfaces import ReaderHints
from geocompose.composition import CompositionRequest
from geocompose.config import Config
from geocompose.exceptions import OutOfCoverageError, SourceUnreadableError
from geocompose.geometry import Sector
from geocompose.raster.readers import gdal_backend
from geocompose.raster.readers.bil_reader import BILRasterReader
from geocompose.raster.readers.gdal_reader import GDALRasterReader
from geocompose.resampling import Resampler
from geocompose.resampling.pyramid import FULL_RESOLUTION


def request_for(sector, width, height):
    return CompositionRequest(target_sector=sector, target_width=width, target_height=height)


class TestResampler:
    """Test resampling of north-up geographic sources."""

    @pytest.fixture
    def reader(self, test_config):
        return GDALRasterReader(settings=test_config)

    @pytest.fixture
    def resampler(self, test_config):
        return Resampler(test_config)

    def test_fully_covered_request_has_no_mask(self, reader, resampler, elevation_tif):
        with reader.open(elevation_tif) as handle:
            result = resampler.resample(handle, request_for(Sector(2, 4, 2, 4), 20, 20))

        assert result.data.shape == (1, 20, 20)
        assert result.data.dtype == np.int16
        assert result.valid_mask.all()
        assert result.level.index == FULL_RESOLUTION

    def test_samples_follow_source(self, reader, resampler, elevation_tif):
        # 0.1 degree source pixels; one request pixel per source pixel
        with reader.open(elevation_tif) as handle:
            result = resampler.resample(handle, request_for(Sector(5, 6, 5, 6), 10, 10))

        # Source value at row r, col c is 10 * (r + c); request starts at row 40, col 50
        expected = 10 * (40 + 50)
        assert result.data[0, 0, 0] == pytest.approx(expected, abs=10)
        assert result.data[0, 9, 9] > result.data[0, 0, 0]

    def test_partially_covered_request_is_masked(self, reader, resampler, elevation_tif):
        with reader.open(elevation_tif) as handle:
            result = resampler.resample(handle, request_for(Sector(5, 15, 5, 15), 20, 20))

        assert result.valid_mask.shape == (20, 20)
        # Rows 10.. lie south of lat 10, columns ..9 west of lon 10
        assert result.valid_mask[15, 5]
        assert not result.valid_mask[5, 5]
        assert not result.valid_mask[15, 15]
        assert not result.valid_mask.all()

    def test_disjoint_request(self, reader, resampler, elevation_tif):
        with reader.open(elevation_tif) as handle:
            with pytest.raises(OutOfCoverageError):
                resampler.resample(handle, request_for(Sector(50, 60, 50, 60), 10, 10))

    def test_edge_only_overlap_is_noop(self, reader, resampler, elevation_tif):
        with reader.open(elevation_tif) as handle:
            assert resampler.resample(handle, request_for(Sector(10, 20, 0, 10), 10, 10)) is None

    def test_small_clip_warps_full_resolution(self, reader, resampler, elevation_tif):
        with reader.open(elevation_tif) as handle:
            result = resampler.resample(handle, request_for(Sector(0, 0.5, 0, 0.5), 5, 5))
        assert result.data.shape == (1, 5, 5)
        assert result.level.is_full_resolution
        assert result.valid_mask.all()

    def test_small_clip_across_source_edge_allocates_request_sized_rasters(
            self, reader, resampler, raster_helper, test_data_dir, monkeypatch):
        path = raster_helper.create_geotiff(test_data_dir / "large.tif",
                                            raster_helper.gradient(1000, 1000, np.int16) + 1,
                                            Sector(0, 10, 0, 10))
        allocated = []
        create_mem_dataset = gdal_backend.create_mem_dataset

        def recording(width, height, *args, **kwargs):
            allocated.append((width, height))
            return create_mem_dataset(width, height, *args, **kwargs)

        monkeypatch.setattr(gdal_backend, 'create_mem_dataset', recording)
        with reader.open(path) as handle:
            result = resampler.resample(handle, request_for(Sector(9.9, 10.1, 9.9, 10.1), 4, 4))

        assert result.level.is_full_resolution
        assert allocated and all(size == (4, 4) for size in allocated)
        # Only the south-west quarter of the request lies on the source
        assert result.valid_mask[3, 0] and result.valid_mask[2, 1]
        assert not result.valid_mask[0, 0]
        assert not result.valid_mask[1, 1]
        assert not result.valid_mask[3, 3]

    def test_overview_selection(self, reader, resampler, raster_helper, test_data_dir):
        data = raster_helper.gradient(400, 400, np.int16)
        path = raster_helper.create_geotiff(test_data_dir / "pyramid.tif", data, Sector(0, 10, 0, 10),
                                            overviews=[2, 4])
        with reader.open(path) as handle:
            assert handle.overviews == [(200, 200), (100, 100)]
            result = resampler.resample(handle, request_for(Sector(0, 10, 0, 10), 50, 50))

        assert result.level.index == 1
        assert result.data.shape == (1, 50, 50)
        assert result.valid_mask.all()

    def test_nodata_is_excluded_from_data_mask(self, reader, resampler, raster_helper, test_data_dir):
        data = np.full((100, 100), 500, dtype=np.int16)
        data[:, :50] = -9999
        path = raster_helper.create_geotiff(test_data_dir / "holes.tif", data, Sector(0, 10, 0, 10),
                                            nodata_value=-9999)
        with reader.open(path) as handle:
            result = resampler.resample(handle, request_for(Sector(0, 10, 0, 10), 20, 20))

        assert result.valid_mask.all()
        mask = result.data_mask()
        assert not mask[10, 2]
        assert mask[10, 17]

    def test_projected_source(self, reader, resampler, raster_helper, test_data_dir):
        data = raster_helper.gradient(200, 200, np.int16)
        path = raster_helper.create_geotiff(
            test_data_dir / "utm.tif", data, epsg=32632,
            geo_transform=(500000, 500, 0, 5100000, 0, -500),
        )
        with reader.open(path) as handle:
            assert handle.coordinate_system is CoordinateSystemKind.PROJECTED
            lat, lon = handle.sector.centroid
            inner = Sector(lat - 0.1, lat + 0.1, lon - 0.1, lon + 0.1)
            result = resampler.resample(handle, request_for(inner, 16, 16))

        assert result.data.shape == (1, 16, 16)
        assert result.valid_mask.all()

    def test_palette_source_keeps_indices(self, reader, resampler, raster_helper, test_data_dir):
        data = np.zeros((60, 60), dtype=np.uint8)
        data[:, 30:] = 3
        palette = [(0, 0, 0, 255), (255, 0, 0, 255), (0, 255, 0, 255), (0, 0, 255, 255)]
        path = raster_helper.create_geotiff(test_data_dir / "palette.tif", data, Sector(0, 6, 0, 6),
                                            color_table=palette)
        with reader.open(path) as handle:
            result = resampler.resample(handle, request_for(Sector(0, 6, 0, 6), 25, 25))

        assert set(np.unique(result.data)) <= {0, 3}
        assert result.color_table.shape[1] == 4
        assert tuple(result.color_table[3]) == (0, 0, 255, 255)

    def test_bil_source(self, resampler, raster_helper, test_data_dir, test_config):
        data = raster_helper.gradient(120, 120, np.int16)
        path = raster_helper.create_bil(test_data_dir / "grid.bil", data, header=False)
        reader = BILRasterReader(settings=test_config)
        with reader.open(path, ReaderHints(sector=Sector(0, 1.2, 0, 1.2))) as handle:
            result = resampler.resample(handle, request_for(Sector(0.2, 1.0, 0.2, 1.0), 40, 40))

        assert result.data.shape == (1, 40, 40)
        assert result.valid_mask.all()


class TestRotatedAndScreenRasters:
    """Test sources that cannot be cropped axis-aligned."""

    @pytest.fixture
    def reader(self, test_config):
        return GDALRasterReader(settings=test_config)

    @pytest.fixture
    def rotated_tif(self, raster_helper, test_data_dir):
        data = raster_helper.gradient(200, 200, np.int16) + 1
        return raster_helper.create_geotiff(
            test_data_dir / "rotated.tif", data,
            geo_transform=(100.0, 0.01, 0.001, 20.0, 0.001, -0.01),
        )

    def test_rotated_source(self, reader, rotated_tif, test_config):
        resampler = Resampler(test_config)
        with reader.open(rotated_tif) as handle:
            request = request_for(handle.sector, 32, 32)
            result = resampler.resample(handle, request)

        assert result.data.shape == (1, 32, 32)
        # The bounding sector of a rotated footprint has uncovered corners
        assert result.valid_mask.any()
        assert not result.valid_mask.all()
        assert not result.valid_mask[0, 0]

    def test_rotated_source_uses_synthetic_levels(self, reader, rotated_tif):
        resampler = Resampler(Config(overrides={'raster_processing': {'max_raster_dimension': 64}}))
        with reader.open(rotated_tif) as handle:
            result = resampler.resample(handle, request_for(handle.sector, 16, 16))

        assert result.level.max_dimension <= 64
        assert result.data.shape == (1, 16, 16)

    def test_oversized_rotated_source(self, reader, raster_helper, test_data_dir):
        data = raster_helper.gradient(200, 200, np.int16) + 1
        path = raster_helper.create_geotiff(
            test_data_dir / "rotated_ovr.tif", data,
            geo_transform=(100.0, 0.01, 0.001, 20.0, 0.001, -0.01),
            overviews=[2],
        )
        resampler = Resampler(Config(overrides={'raster_processing': {'max_raster_dimension': 64}}))
        with reader.open(path) as handle:
            lat, lon = handle.sector.centroid
            request = request_for(Sector(lat - 0.15, lat + 0.15, lon - 0.15, lon + 0.15), 200, 200)
            with pytest.raises(SourceUnreadableError):
                resampler.resample(handle, request)

    def test_screen_raster_placed_on_hint_sector(self, reader, raster_helper, test_data_dir, test_config):
        data = np.zeros((40, 40), dtype=np.uint8)
        data[:, 20:] = 255
        path = raster_helper.create_geotiff(test_data_dir / "screen.tif", data, epsg=None)
        hints = ReaderHints(sector=Sector(0, 4, 0, 4))

        with reader.open(path, hints) as handle:
            assert handle.coordinate_system is CoordinateSystemKind.SCREEN
            assert handle.area is None
            result = Resampler(test_config).resample(handle, request_for(Sector(0, 4, 0, 4), 20, 20))

        assert result.valid_mask.all()
        assert result.data[0, 10, 2] == 0
        assert result.data[0, 10, 17] == 255
