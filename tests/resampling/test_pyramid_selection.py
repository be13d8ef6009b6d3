"""Tests for overview level selection."""

import pytest

from geocompose.exceptions import ResourceExhaustedError
from geocompose.geometry import Sector
from geocompose.resampling import PyramidSelector
from geocompose.resampling.pyramid import FULL_RESOLUTION, synthetic_levels

SOURCE = Sector(10, 20, 100, 110)
OVERVIEWS = [(1800, 1800), (900, 900), (450, 450)]


class TestPyramidSelector:
    """Test level selection and the size cap."""

    @pytest.fixture
    def selector(self):
        return PyramidSelector(max_dimension=3072)

    def test_selects_coarsest_sufficient_overview(self, selector):
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, Sector(12, 14, 102, 104), 256, 256)
        assert level.index == 0
        assert (level.width, level.height) == (1800, 1800)

    def test_low_resolution_request_uses_coarsest(self, selector):
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, Sector(12, 14, 102, 104), 64, 64)
        assert level.index == 2

    def test_fine_request_uses_full_resolution(self, selector):
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, Sector(12, 14, 102, 104), 1024, 1024)
        assert level.index == FULL_RESOLUTION
        assert level.is_full_resolution

    def test_both_axes_must_qualify(self, selector):
        # Fine enough in longitude only
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, Sector(12, 14, 102, 104), 64, 1024)
        assert level.index == FULL_RESOLUTION

    def test_no_overviews(self, selector):
        level = selector.select(3600, 3600, [], SOURCE, Sector(12, 14, 102, 104), 64, 64)
        assert level.index == FULL_RESOLUTION

    @pytest.mark.parametrize("size", [16, 64, 100, 256, 400, 900, 2000])
    def test_never_coarser_than_requested(self, selector, size):
        request = Sector(12, 14, 102, 104)
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, request, size, size)
        lat_res, lon_res = level.resolution(SOURCE)
        if not level.is_full_resolution:
            assert lat_res <= request.delta_lat / size
            assert lon_res <= request.delta_lon / size

    def test_cap_keeps_small_levels(self, selector):
        level = selector.select(3600, 3600, OVERVIEWS, SOURCE, Sector(12, 14, 102, 104), 256, 256)
        assert selector.cap(level, OVERVIEWS) is level

    def test_cap_falls_back_to_coarsest_overview(self, selector):
        full = selector.levels(3600, 3600, OVERVIEWS)[0]
        capped = selector.cap(full, OVERVIEWS)
        assert capped.capped
        assert capped.index == 2
        assert (capped.width, capped.height) == (450, 450)

    def test_cap_without_fitting_level(self, selector):
        full = selector.levels(3600, 3600, [])[0]
        with pytest.raises(ResourceExhaustedError):
            selector.cap(full, [])
        with pytest.raises(ResourceExhaustedError):
            selector.cap(full, [(3500, 3500)])


class TestSyntheticLevels:
    """Test power-of-two decimation levels."""

    def test_small_raster_needs_none(self):
        assert synthetic_levels(100, 100, 3072) == []

    def test_stops_at_first_fitting_level(self):
        assert synthetic_levels(5000, 4000, 3072) == [(2500, 2000)]
        assert synthetic_levels(10000, 10000, 3072) == [(5000, 5000), (2500, 2500)]

    def test_rounds_up(self):
        assert synthetic_levels(3073, 7, 3072) == [(1537, 4)]
