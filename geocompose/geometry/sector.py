# geocompose/geometry/sector.py
"""Geographic rectangle value type."""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Sequence, Union, Mapping, Any

from shapely.geometry import box, Polygon

from geocompose.exceptions import InvalidArgumentError


@dataclass(frozen=True)
class Sector:
    """Axis-aligned rectangle in WGS84 degrees.

    Bounds are closed intervals: two sectors sharing only an edge
    intersect, with a zero-extent intersection.
    """
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def __post_init__(self):
        for name in ('min_lat', 'max_lat', 'min_lon', 'max_lon'):
            value = getattr(self, name)
            try:
                number = float(value)
            except (TypeError, ValueError):
                number = math.nan
            if not math.isfinite(number):
                raise InvalidArgumentError(f"Sector {name} must be a finite number, got {value!r}")
            object.__setattr__(self, name, number)
        if self.min_lat > self.max_lat:
            raise InvalidArgumentError(
                f"Sector min_lat {self.min_lat} is greater than max_lat {self.max_lat}"
            )
        if self.min_lon > self.max_lon:
            raise InvalidArgumentError(
                f"Sector min_lon {self.min_lon} is greater than max_lon {self.max_lon}"
            )

    @classmethod
    def from_degrees(cls, min_lat: float, max_lat: float,
                     min_lon: float, max_lon: float) -> 'Sector':
        return cls(min_lat, max_lat, min_lon, max_lon)

    @classmethod
    def from_bounds(cls, bounds: Sequence[float]) -> 'Sector':
        """Create from ``(west, south, east, north)``."""
        west, south, east, north = bounds
        return cls(south, north, west, east)

    @classmethod
    def parse(cls, value: Union['Sector', Sequence[float], Mapping[str, Any]]) -> 'Sector':
        """Parse a sector from a catalog entry.

        Accepts a Sector, ``[min_lat, max_lat, min_lon, max_lon]`` or a
        mapping with those keys (``south``/``north``/``west``/``east`` also
        accepted).
        """
        if isinstance(value, Sector):
            return value
        if isinstance(value, Mapping):
            return cls(
                value.get('min_lat', value.get('south')),
                value.get('max_lat', value.get('north')),
                value.get('min_lon', value.get('west')),
                value.get('max_lon', value.get('east')),
            )
        values = list(value)
        if len(values) != 4:
            raise InvalidArgumentError(
                f"Sector needs 4 values [min_lat, max_lat, min_lon, max_lon], got {values}"
            )
        return cls(*values)

    @staticmethod
    def union_all(sectors: Iterable[Optional['Sector']]) -> Optional['Sector']:
        """Union of all non-None sectors, or None if there are none."""
        result = None
        for sector in sectors:
            if sector is not None:
                result = sector if result is None else result.union(sector)
        return result

    @property
    def delta_lat(self) -> float:
        return self.max_lat - self.min_lat

    @property
    def delta_lon(self) -> float:
        return self.max_lon - self.min_lon

    @property
    def is_empty(self) -> bool:
        """True when the sector has zero extent on either axis."""
        return self.delta_lat <= 0 or self.delta_lon <= 0

    @property
    def area_degrees(self) -> float:
        return self.delta_lat * self.delta_lon

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """``(west, south, east, north)``."""
        return (self.min_lon, self.min_lat, self.max_lon, self.max_lat)

    @property
    def centroid(self) -> Tuple[float, float]:
        """``(lat, lon)`` of the center."""
        return ((self.min_lat + self.max_lat) / 2.0, (self.min_lon + self.max_lon) / 2.0)

    def to_polygon(self) -> Polygon:
        return box(self.min_lon, self.min_lat, self.max_lon, self.max_lat)

    def intersects(self, other: Optional['Sector']) -> bool:
        if other is None:
            return False
        return (self.min_lat <= other.max_lat and other.min_lat <= self.max_lat and
                self.min_lon <= other.max_lon and other.min_lon <= self.max_lon)

    def intersection(self, other: Optional['Sector']) -> Optional['Sector']:
        if not self.intersects(other):
            return None
        return Sector(
            max(self.min_lat, other.min_lat),
            min(self.max_lat, other.max_lat),
            max(self.min_lon, other.min_lon),
            min(self.max_lon, other.max_lon),
        )

    def union(self, other: Optional['Sector']) -> 'Sector':
        if other is None:
            return self
        return Sector(
            min(self.min_lat, other.min_lat),
            max(self.max_lat, other.max_lat),
            min(self.min_lon, other.min_lon),
            max(self.max_lon, other.max_lon),
        )

    def contains(self, other: 'Sector') -> bool:
        return (self.min_lat <= other.min_lat and other.max_lat <= self.max_lat and
                self.min_lon <= other.min_lon and other.max_lon <= self.max_lon)

    def contains_point(self, lat: float, lon: float) -> bool:
        return self.min_lat <= lat <= self.max_lat and self.min_lon <= lon <= self.max_lon

    def to_list(self):
        return [self.min_lat, self.max_lat, self.min_lon, self.max_lon]

    def __str__(self) -> str:
        return (f"Sector(lat {self.min_lat:.6f}..{self.max_lat:.6f}, "
                f"lon {self.min_lon:.6f}..{self.max_lon:.6f})")
