# geocompose/raster/readers/metadata_mapper.py
"""Map format specific dataset metadata onto composition attributes.

GDAL exposes GeoTIFF keys, ERDAS IMAGINE projection fields and NITF image
subheader fields in the dataset's default metadata domain. The mappers here
turn the ones that matter for composition into typed values.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from osgeo import osr

logger = logging.getLogger(__name__)


@dataclass
class MappedMetadata:
    """Result of mapping raw dataset metadata."""
    projection_wkt: Optional[str] = None
    projection_name: Optional[str] = None
    projection_zone: Optional[int] = None
    hemisphere: Optional[str] = None  # 'N' or 'S'
    datum: Optional[str] = None
    units: Optional[str] = None  # 'm' or 'ft'
    epsg_code: Optional[int] = None
    actual_bits_per_pixel: Optional[int] = None
    max_pixel_value: Optional[float] = None
    extended: Dict[str, Any] = field(default_factory=dict)


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(str(value).strip())
    except (TypeError, ValueError):
        return None


class MetadataMapper:
    """Maps the projection related keys every driver may report."""

    def map(self, extended: Dict[str, str], mapped: MappedMetadata) -> MappedMetadata:
        proj = zone = None

        geotiff_cs = extended.get('GEOTIFF_CHAR__ProjectedCSTypeGeoKey')
        if geotiff_cs:
            proj = geotiff_cs.upper()
            idx = proj.find('ZONE_')
            if idx != -1:
                zone = proj[idx + 5:].upper()

        if proj is None and extended.get('IMG__PROJECTION_NAME'):
            proj = extended['IMG__PROJECTION_NAME'].upper()

        if zone is None and extended.get('IMG__PROJECTION_ZONE'):
            zone = extended['IMG__PROJECTION_ZONE'].upper()

        if proj is not None and 'UTM' in proj:
            mapped.projection_name = 'UTM'
            if zone:
                zone = zone.strip()
                if zone.endswith('N') or zone.endswith('S'):
                    mapped.hemisphere = zone[-1]
                    zone = zone[:-1]
                number = _to_int(zone)
                if number is not None and 1 <= number <= 60:
                    mapped.projection_zone = number

        spheroid = extended.get('IMG__SPHEROID_NAME', '').upper()
        if 'WGS' in spheroid and '84' in spheroid:
            mapped.datum = 'WGS84'

        units = extended.get('IMG__HORIZONTAL_UNITS', '').lower()
        if 'meter' in units or 'metre' in units:
            mapped.units = 'm'
        elif 'feet' in units or 'foot' in units:
            mapped.units = 'ft'

        epsg = _to_int(extended.get('GEOTIFF_NUM__3072__ProjectedCSTypeGeoKey'))
        if epsg is None:
            epsg = _to_int(extended.get('GEO__ProjectedCSTypeGeoKey'))
        mapped.epsg_code = epsg

        mapped.projection_wkt = self._projection_wkt(mapped)
        return mapped

    def _projection_wkt(self, mapped: MappedMetadata) -> Optional[str]:
        srs = osr.SpatialReference()
        try:
            if mapped.epsg_code is not None:
                srs.ImportFromEPSG(mapped.epsg_code)
                return srs.ExportToWkt()
            if mapped.projection_name != 'UTM' or mapped.projection_zone is None:
                return None
            proj4 = f"+proj=utm +zone={mapped.projection_zone}"
            if mapped.hemisphere == 'S':
                proj4 += " +south"
            if mapped.datum:
                proj4 += f" +ellps={mapped.datum} +datum={mapped.datum}"
            if mapped.units:
                proj4 += " +units=m" if mapped.units == 'm' else " +units=ft"
            srs.ImportFromProj4(proj4)
            return srs.ExportToWkt()
        except RuntimeError as e:
            logger.debug(f"Could not build projection from metadata: {e}")
            return None


class NITFMetadataMapper(MetadataMapper):
    """Adds NITF image subheader fields on top of the projection keys."""

    def map(self, extended: Dict[str, str], mapped: MappedMetadata) -> MappedMetadata:
        mapped = super().map(extended, mapped)

        abpp = _to_int(extended.get('NITF_ABPP'))
        if abpp is not None and abpp > 0:
            mapped.actual_bits_per_pixel = abpp

        dynamic_range = _to_float(extended.get('NITF_USE00A_DYNAMIC_RANGE'))
        if dynamic_range is not None and dynamic_range > 0:
            mapped.max_pixel_value = dynamic_range

        return mapped


MAPPERS = {
    'NITF': NITFMetadataMapper,
}


def map_dataset_metadata(extended: Dict[str, str], driver_name: str) -> MappedMetadata:
    """Map a dataset's default-domain metadata using the driver's mapper."""
    extended = {k: v for k, v in (extended or {}).items() if v not in (None, '')}
    mapper = MAPPERS.get(driver_name, MetadataMapper)()
    return mapper.map(extended, MappedMetadata(extended=dict(extended)))
