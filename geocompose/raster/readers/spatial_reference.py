# geocompose/raster/readers/spatial_reference.py
"""Resolve and classify the spatial reference of a source raster."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple

from osgeo import osr

from geocompose.abstractions.types import CoordinateSystemKind
from geocompose.geometry import geotransform
from .gdal_backend import wgs84_wkt

logger = logging.getLogger(__name__)


def to_wkt(text: Optional[str]) -> Optional[str]:
    """Normalise WKT, a proj string or ``EPSG:xxxx`` to WKT; None when unusable."""
    if not text or not str(text).strip():
        return None
    srs = osr.SpatialReference()
    try:
        srs.SetFromUserInput(str(text).strip())
    except RuntimeError as e:
        logger.debug(f"Unusable spatial reference {str(text)[:60]!r}: {e}")
        return None
    return srs.ExportToWkt()


def read_prj_sidecar(source: Path) -> Optional[str]:
    """WKT from a ``.prj`` / ``.PRJ`` file next to the source, if any."""
    for suffix in ('.prj', '.PRJ'):
        candidate = source.with_suffix(suffix)
        if candidate.is_file():
            try:
                wkt = to_wkt(candidate.read_text(errors='replace'))
            except OSError as e:
                logger.warning(f"Cannot read {candidate}: {e}")
                continue
            if wkt:
                logger.debug(f"Spatial reference of {source.name} taken from {candidate.name}")
                return wkt
    return None


def resolve_spatial_reference(dataset_wkt: Optional[str],
                              source: Path,
                              hint: Optional[str],
                              mapped_wkt: Optional[str],
                              geo_transform: Sequence[float],
                              width: int,
                              height: int) -> Tuple[Optional[str], str]:
    """Pick the spatial reference of a raster.

    Order: the dataset's own projection, a ``.prj`` sidecar, the reader hint,
    the projection mapped from format metadata, and finally geographic WGS84
    when the geo-transform only spans longitude/latitude ranges.

    Returns:
        ``(wkt, origin)`` where origin names the step that produced it.
    """
    wkt = to_wkt(dataset_wkt)
    if wkt:
        return wkt, 'dataset'

    wkt = read_prj_sidecar(source)
    if wkt:
        return wkt, 'sidecar'

    wkt = to_wkt(hint)
    if wkt:
        return wkt, 'hint'

    if mapped_wkt:
        return mapped_wkt, 'metadata'

    if geotransform.looks_geodetic(geo_transform, width, height):
        logger.debug(f"Assuming geographic WGS84 for {source.name}")
        return wgs84_wkt(), 'assumed'

    return None, 'none'


def classify(srs_wkt: Optional[str], geo_transform: Optional[Sequence[float]]) -> CoordinateSystemKind:
    """Coordinate system kind of a raster.

    A raster without a geo-transform (or with GDAL's identity default) is in
    screen coordinates regardless of any projection metadata.
    """
    if geo_transform is None or geotransform.is_identity(geo_transform):
        return CoordinateSystemKind.SCREEN
    if not srs_wkt:
        return CoordinateSystemKind.UNKNOWN

    srs = osr.SpatialReference()
    try:
        srs.ImportFromWkt(srs_wkt)
    except RuntimeError:
        return CoordinateSystemKind.UNKNOWN
    if srs.IsProjected():
        return CoordinateSystemKind.PROJECTED
    if srs.IsGeographic():
        return CoordinateSystemKind.GEOGRAPHIC
    return CoordinateSystemKind.UNKNOWN
