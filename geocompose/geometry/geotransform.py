# geocompose/geometry/geotransform.py
"""Helpers for GDAL-style six-coefficient affine geo-transforms.

A geo-transform maps pixel/line coordinates to georeferenced x/y:

    x = gt[0] + col * gt[1] + row * gt[2]
    y = gt[3] + col * gt[4] + row * gt[5]
"""

from typing import List, Sequence, Tuple

from geocompose.exceptions import InvalidArgumentError

GeoTransform = Tuple[float, float, float, float, float, float]

IDENTITY_GEO_TRANSFORM: GeoTransform = (0.0, 1.0, 0.0, 0.0, 0.0, 1.0)


def from_sector(sector, width: int, height: int) -> GeoTransform:
    """North-up transform covering ``sector`` with ``width`` x ``height`` pixels.

    The pixel height is always negative.
    """
    if width <= 0 or height <= 0:
        raise InvalidArgumentError(f"Raster size must be positive, got {width}x{height}")
    return (
        sector.min_lon,
        sector.delta_lon / width,
        0.0,
        sector.max_lat,
        0.0,
        -sector.delta_lat / height,
    )


def is_identity(gt: Sequence[float]) -> bool:
    """True for GDAL's default transform, i.e. a raster with no georeferencing."""
    return tuple(float(v) for v in gt) == IDENTITY_GEO_TRANSFORM


def is_north_up(gt: Sequence[float]) -> bool:
    return gt[2] == 0.0 and gt[4] == 0.0


def apply(gt: Sequence[float], col: float, row: float) -> Tuple[float, float]:
    return (gt[0] + col * gt[1] + row * gt[2],
            gt[3] + col * gt[4] + row * gt[5])


def invert(gt: Sequence[float]) -> GeoTransform:
    """Inverse transform mapping x/y back to pixel/line."""
    det = gt[1] * gt[5] - gt[2] * gt[4]
    if det == 0.0:
        raise InvalidArgumentError(f"Geo-transform is not invertible: {tuple(gt)}")
    inv_det = 1.0 / det
    a = gt[5] * inv_det
    b = -gt[2] * inv_det
    d = -gt[4] * inv_det
    e = gt[1] * inv_det
    return (
        -gt[0] * a - gt[3] * b, a, b,
        -gt[0] * d - gt[3] * e, d, e,
    )


def corners(gt: Sequence[float], width: int, height: int) -> List[Tuple[float, float]]:
    """Upper-left, upper-right, lower-right, lower-left corner coordinates."""
    return [apply(gt, 0, 0), apply(gt, width, 0),
            apply(gt, width, height), apply(gt, 0, height)]


def extent(gt: Sequence[float], width: int, height: int) -> Tuple[float, float, float, float]:
    """``(min_x, min_y, max_x, max_y)`` of the raster footprint.

    Works for rotated transforms and for positive pixel heights.
    """
    xs, ys = zip(*corners(gt, width, height))
    return min(xs), min(ys), max(xs), max(ys)


def scaled(gt: Sequence[float], src_width: int, src_height: int,
           dst_width: int, dst_height: int) -> GeoTransform:
    """Transform of the same footprint resampled to ``dst_width`` x ``dst_height``."""
    sx = src_width / float(dst_width)
    sy = src_height / float(dst_height)
    return (gt[0], gt[1] * sx, gt[2] * sy, gt[3], gt[4] * sx, gt[5] * sy)


def window(gt: Sequence[float], col_off: float, row_off: float,
           win_width: float, win_height: float,
           out_width: int, out_height: int) -> GeoTransform:
    """Transform of a pixel window read into ``out_width`` x ``out_height``."""
    x0, y0 = apply(gt, col_off, row_off)
    sx = win_width / float(out_width)
    sy = win_height / float(out_height)
    return (x0, gt[1] * sx, gt[2] * sy, y0, gt[4] * sx, gt[5] * sy)


def looks_geodetic(gt: Sequence[float], width: int, height: int) -> bool:
    """True when the whole footprint fits in longitude/latitude ranges."""
    if is_identity(gt):
        return False
    min_x, min_y, max_x, max_y = extent(gt, width, height)
    return -180.0 <= min_x and max_x <= 180.0 and -90.0 <= min_y and max_y <= 90.0
