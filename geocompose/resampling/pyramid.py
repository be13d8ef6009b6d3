# geocompose/resampling/pyramid.py
"""Choose the overview level a request is served from."""

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from geocompose.exceptions import ResourceExhaustedError
from geocompose.geometry import Sector

logger = logging.getLogger(__name__)

FULL_RESOLUTION = -1


@dataclass(frozen=True)
class PyramidLevel:
    """One level of a raster pyramid.

    ``index`` is the position in the overview list (finest first) or -1 for
    full resolution. ``capped`` marks a level chosen by the size limit
    rather than by resolution.
    """
    index: int
    width: int
    height: int
    capped: bool = False

    @property
    def is_full_resolution(self) -> bool:
        return self.index == FULL_RESOLUTION

    @property
    def max_dimension(self) -> int:
        return max(self.width, self.height)

    def resolution(self, sector: Sector) -> Tuple[float, float]:
        """Degrees per pixel ``(lat, lon)`` of this level over ``sector``."""
        return sector.delta_lat / self.height, sector.delta_lon / self.width


def synthetic_levels(width: int, height: int, max_dimension: int) -> List[Tuple[int, int]]:
    """Power-of-two decimations, finest first, ending with the first that fits the limit."""
    levels = []
    factor = 2
    while max(width, height) > max_dimension and factor <= 2 ** 30:
        level = (max(1, math.ceil(width / factor)), max(1, math.ceil(height / factor)))
        levels.append(level)
        if max(level) <= max_dimension:
            break
        factor *= 2
    return levels


class PyramidSelector:
    """Picks the coarsest level that still resolves the request."""

    def __init__(self, max_dimension: int = 3072):
        self.max_dimension = int(max_dimension)

    def levels(self, width: int, height: int,
               overviews: Sequence[Tuple[int, int]]) -> List[PyramidLevel]:
        """Full resolution followed by the overviews, finest first."""
        return [PyramidLevel(FULL_RESOLUTION, width, height)] + [
            PyramidLevel(i, w, h) for i, (w, h) in enumerate(overviews)
        ]

    def select(self, width: int, height: int, overviews: Sequence[Tuple[int, int]],
               source_sector: Sector, request_sector: Sector,
               request_width: int, request_height: int) -> PyramidLevel:
        """Coarsest level whose resolution is finer than or equal to the request's.

        Both axes must qualify. Full resolution is used when no overview does.
        """
        req_lat = request_sector.delta_lat / request_height
        req_lon = request_sector.delta_lon / request_width

        selected = None
        for level in self.levels(width, height, overviews):
            lat_res, lon_res = level.resolution(source_sector)
            if lat_res <= req_lat and lon_res <= req_lon:
                selected = level
            else:
                break

        if selected is None:
            selected = PyramidLevel(FULL_RESOLUTION, width, height)

        logger.debug(
            f"Pyramid level {selected.index} ({selected.width}x{selected.height}) for "
            f"request resolution {req_lat:.6g} x {req_lon:.6g} deg"
        )
        return selected

    def cap(self, level: PyramidLevel, overviews: Sequence[Tuple[int, int]]) -> PyramidLevel:
        """Apply the size limit to a level that will be materialised whole.

        An oversized level falls back to the coarsest overview; when even
        that exceeds the limit ResourceExhaustedError is raised.
        """
        if level.max_dimension <= self.max_dimension:
            return level

        if overviews:
            index = len(overviews) - 1
            width, height = overviews[index]
            if max(width, height) <= self.max_dimension:
                logger.info(
                    f"Level {level.width}x{level.height} exceeds {self.max_dimension}px, "
                    f"using coarsest overview {width}x{height}"
                )
                return PyramidLevel(index, width, height, capped=True)

        raise ResourceExhaustedError(
            f"Working raster {level.width}x{level.height} exceeds the "
            f"{self.max_dimension}px limit and no overview fits"
        )
