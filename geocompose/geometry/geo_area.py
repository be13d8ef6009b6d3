# geocompose/geometry/geo_area.py
"""Native-coordinate footprint of a raster and geographic <-> pixel mapping."""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from pyproj import CRS, Transformer
from shapely.geometry import Polygon, box
from shapely import ops

from . import geotransform
from .sector import Sector

logger = logging.getLogger(__name__)

WGS84 = CRS.from_epsg(4326)

# Points per sector edge when projecting sector outlines
DENSIFY_SEGMENTS = 32

# Pixel coordinates closer than this to a whole pixel snap onto it
PIXEL_EPSILON = 1e-6


class GeoArea:
    """Footprint of a raster in its native coordinate system.

    The footprint is the polygon spanned by the four geo-transform corners,
    so rotated (non north-up) rasters are represented exactly. Geographic
    sectors are projected into the native system with densified outlines
    before being compared with the footprint.
    """

    def __init__(self, srs_wkt: str, geo_transform: Sequence[float], width: int, height: int):
        self.crs = CRS.from_user_input(srs_wkt)
        self.geo_transform = tuple(float(v) for v in geo_transform)
        self.width = int(width)
        self.height = int(height)
        self.footprint = Polygon(geotransform.corners(self.geo_transform, self.width, self.height))

        if self.crs.is_geographic and self.crs.equals(WGS84, ignore_axis_order=True):
            self._to_native = None
            self._to_geographic = None
        else:
            self._to_native = Transformer.from_crs(WGS84, self.crs, always_xy=True)
            self._to_geographic = Transformer.from_crs(self.crs, WGS84, always_xy=True)

    @property
    def is_geographic(self) -> bool:
        return bool(self.crs.is_geographic)

    @property
    def is_projected(self) -> bool:
        return bool(self.crs.is_projected)

    @property
    def is_north_up(self) -> bool:
        return geotransform.is_north_up(self.geo_transform)

    @property
    def native_area(self) -> float:
        return self.footprint.area

    def to_sector(self) -> Sector:
        """Geographic bounding sector of the footprint."""
        outline = self.footprint.segmentize(self._segment_length(self.footprint))
        if self._to_geographic is not None:
            outline = ops.transform(self._to_geographic.transform, outline)
        xs, ys = self._finite_coords(outline)
        return Sector(
            max(-90.0, float(ys.min())), min(90.0, float(ys.max())),
            max(-180.0, float(xs.min())), min(180.0, float(xs.max())),
        )

    def sector_polygon(self, sector: Sector) -> Polygon:
        """The sector outline in native coordinates."""
        outline = sector.to_polygon()
        if self._to_native is None:
            return outline
        outline = outline.segmentize(self._segment_length(outline))
        projected = ops.transform(self._to_native.transform, outline)
        if not projected.is_valid:
            xs, ys = self._finite_coords(projected)
            return box(xs.min(), ys.min(), xs.max(), ys.max())
        return projected

    def bounding_area(self, sector: Sector) -> Tuple[float, float, float, float]:
        """``(min_x, min_y, max_x, max_y)`` of the sector in native coordinates."""
        return self.sector_polygon(sector).bounds

    def contains(self, sector: Sector) -> bool:
        """True when the footprint fully covers the sector's bounding area."""
        min_x, min_y, max_x, max_y = self.bounding_area(sector)
        tolerance = 1e-9 * max(abs(self.geo_transform[1]), abs(self.geo_transform[5]), 1e-12)
        return self.footprint.buffer(tolerance).covers(box(min_x, min_y, max_x, max_y))

    def intersection_ratio(self, sector: Sector) -> float:
        """Share of the footprint area covered by the sector, in [0, 1]."""
        if self.native_area <= 0:
            return 0.0
        overlap = self.footprint.intersection(self.sector_polygon(sector))
        return overlap.area / self.native_area

    def to_pixel(self, x: float, y: float, level_width: int, level_height: int) -> Tuple[float, float]:
        """Native x/y to fractional pixel/line of a level ``level_width`` x ``level_height``."""
        level_gt = geotransform.scaled(self.geo_transform, self.width, self.height,
                                       level_width, level_height)
        return geotransform.apply(geotransform.invert(level_gt), x, y)

    def pixel_window(self, sector: Sector, level_width: int,
                     level_height: int) -> Optional[Tuple[int, int, int, int]]:
        """Pixel window ``(col_off, row_off, cols, rows)`` of a level covering the sector.

        Offsets are floored and the far edge ceiled, then clamped to the level
        dimensions. Returns None when nothing of the level is covered.
        """
        min_x, min_y, max_x, max_y = self.bounding_area(sector)
        cols, rows = [], []
        for x, y in ((min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)):
            col, row = self.to_pixel(x, y, level_width, level_height)
            cols.append(col)
            rows.append(row)

        col0 = max(0, int(np.floor(min(cols) + PIXEL_EPSILON)))
        row0 = max(0, int(np.floor(min(rows) + PIXEL_EPSILON)))
        col1 = min(level_width, int(np.ceil(max(cols) - PIXEL_EPSILON)))
        row1 = min(level_height, int(np.ceil(max(rows) - PIXEL_EPSILON)))
        if col1 <= col0 or row1 <= row0:
            return None
        return col0, row0, col1 - col0, row1 - row0

    def _segment_length(self, polygon: Polygon) -> float:
        min_x, min_y, max_x, max_y = polygon.bounds
        span = max(max_x - min_x, max_y - min_y)
        return span / DENSIFY_SEGMENTS if span > 0 else 1.0

    @staticmethod
    def _finite_coords(polygon: Polygon) -> Tuple[np.ndarray, np.ndarray]:
        coords = np.asarray(polygon.exterior.coords, dtype=float)
        coords = coords[np.isfinite(coords).all(axis=1)]
        if coords.size == 0:
            raise ValueError("Outline has no finite coordinates in the target system")
        return coords[:, 0], coords[:, 1]
