"""Tests for the Sector value type."""

import pytest

from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector


class TestSectorConstruction:
    """Test construction and parsing."""

    def test_inverted_bounds_rejected(self):
        with pytest.raises(InvalidArgumentError):
            Sector(10, 0, 0, 10)
        with pytest.raises(InvalidArgumentError):
            Sector(0, 10, 10, 0)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            Sector(float('nan'), 1, 0, 1)

    def test_zero_extent_is_legal(self):
        sector = Sector(5, 5, 0, 10)
        assert sector.is_empty
        assert sector.delta_lat == 0

    def test_from_bounds(self):
        sector = Sector.from_bounds((100, 10, 110, 20))
        assert sector == Sector(10, 20, 100, 110)
        assert sector.bounds == (100, 10, 110, 20)

    @pytest.mark.parametrize("value", [
        [10, 20, 100, 110],
        {'min_lat': 10, 'max_lat': 20, 'min_lon': 100, 'max_lon': 110},
        {'south': 10, 'north': 20, 'west': 100, 'east': 110},
        ("10", "20", "100", "110"),
    ])
    def test_parse(self, value):
        assert Sector.parse(value) == Sector(10, 20, 100, 110)

    def test_parse_rejects_wrong_length(self):
        with pytest.raises(InvalidArgumentError):
            Sector.parse([1, 2, 3])

    def test_parse_rejects_missing_keys(self):
        with pytest.raises(InvalidArgumentError):
            Sector.parse({'min_lat': 1, 'max_lat': 2})


class TestSectorOperations:
    """Test set operations on sectors."""

    @pytest.mark.parametrize("a,b", [
        (Sector(0, 10, 0, 10), Sector(5, 15, 5, 15)),
        (Sector(-45, 45, -90, 90), Sector(0, 10, 80, 100)),
        (Sector(0, 10, 0, 10), Sector(10, 20, 0, 10)),
        (Sector(0, 1, 0, 1), Sector(2, 3, 2, 3)),
    ])
    def test_intersection_is_symmetric(self, a, b):
        assert a.intersection(b) == b.intersection(a)

    def test_intersection_with_itself(self):
        sector = Sector(12, 14, 102, 104)
        assert sector.intersection(sector) == sector

    def test_edge_touch_intersects_with_empty_overlap(self):
        a = Sector(0, 10, 0, 10)
        b = Sector(10, 20, 0, 10)
        assert a.intersects(b)
        overlap = a.intersection(b)
        assert overlap is not None
        assert overlap.is_empty

    def test_disjoint(self):
        a = Sector(0, 10, 0, 10)
        b = Sector(50, 60, 50, 60)
        assert not a.intersects(b)
        assert a.intersection(b) is None
        assert not a.intersects(None)

    def test_union(self):
        a = Sector(0, 10, 0, 10)
        b = Sector(5, 15, -5, 5)
        assert a.union(b) == Sector(0, 15, -5, 10)
        assert a.union(None) == a

    def test_union_all(self):
        sectors = [None, Sector(0, 1, 0, 1), Sector(2, 3, 2, 3), None]
        assert Sector.union_all(sectors) == Sector(0, 3, 0, 3)
        assert Sector.union_all([None]) is None
        assert Sector.union_all([]) is None

    def test_contains(self):
        outer = Sector(10, 20, 100, 110)
        assert outer.contains(Sector(12, 14, 102, 104))
        assert outer.contains(outer)
        assert not outer.contains(Sector(5, 14, 102, 104))
        assert outer.contains_point(15, 105)
        assert outer.contains_point(10, 110)
        assert not outer.contains_point(9.9, 105)

    def test_derived_values(self):
        sector = Sector(10, 20, 100, 110)
        assert sector.delta_lat == 10
        assert sector.delta_lon == 10
        assert sector.area_degrees == 100
        assert sector.centroid == (15, 105)
        assert sector.to_list() == [10, 20, 100, 110]
        assert sector.to_polygon().bounds == (100, 10, 110, 20)
