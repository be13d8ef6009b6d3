# geocompose/raster/readers/bil_reader.py
"""Headerless band-interleaved-by-line (BIL) elevation tiles.

BIL grids with an ESRI ``.hdr`` header are decoded by GDAL's EHdr driver
through the GDAL reader. This reader covers bare tiles: a single square
band of the configured sample type, georeferenced by a ``.blw``/``.bilw``
world file or the reader hints, exposed to GDAL as a raw VRT band.
"""

import dataclasses
import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Tuple
from xml.sax.saxutils import escape

from osgeo import gdal

from geocompose.abstractions.interfaces import RasterReader, ReaderHints, RasterMetadata
from geocompose.abstractions.types import ByteOrder, PixelFormat, RasterDataType
from geocompose.exceptions import SourceUnreadableError, handle_gdal_error
from geocompose.geometry import geotransform
from geocompose.raster.handle import NativeRasterHandle
from . import gdal_backend
from .gdal_reader import describe_dataset

logger = logging.getLogger(__name__)

WORLD_FILE_SUFFIXES = ('.blw', '.bilw', '.bpw')

# GDAL's names for raw band byte orders
VRT_BYTE_ORDERS = {ByteOrder.LITTLE_ENDIAN: 'LSB', ByteOrder.BIG_ENDIAN: 'MSB'}


@dataclass
class BILReaderOptions:
    """Options of the BIL reader."""
    suffixes: Tuple[str, ...] = ('bil', 'bil16', 'bil32')
    default_data_type: RasterDataType = RasterDataType.INT16
    byte_order: ByteOrder = ByteOrder.LITTLE_ENDIAN
    pixel_format: PixelFormat = PixelFormat.ELEVATION
    nodata_sentinels: Tuple[float, ...] = (-32767, -32768)

    @classmethod
    def from_config(cls, settings: Any) -> 'BILReaderOptions':
        return cls(
            default_data_type=RasterDataType.parse(settings.get('readers.bil.default_data_type', 'Int16')),
            byte_order=ByteOrder.parse(settings.get('readers.bil.byte_order', 'little')),
            nodata_sentinels=tuple(settings.get('elevation.nodata_sentinels', (-32767, -32768))),
        )


def _find_sidecar(source: Path, suffixes) -> Optional[Path]:
    for suffix in suffixes:
        for candidate in (source.with_suffix(suffix), source.with_suffix(suffix.upper())):
            if candidate.is_file():
                return candidate
    return None


def parse_world_file(path: Path) -> Tuple[float, ...]:
    """Geo-transform from a six line world file (coordinates of the UL pixel center)."""
    values = [float(line.strip()) for line in path.read_text().splitlines() if line.strip()]
    if len(values) < 6:
        raise SourceUnreadableError(f"World file {path} needs 6 values, found {len(values)}")
    a, d, b, e, c, f = values[:6]
    return (c - a / 2.0 - b / 2.0, a, b, f - d / 2.0 - e / 2.0, d, e)


def raw_vrt_xml(path: Path, side: int, data_type: RasterDataType, byte_order: ByteOrder,
                geo_transform: Optional[Tuple[float, ...]] = None) -> str:
    """VRT document exposing a square single-band raw file to GDAL."""
    sample_bytes = data_type.bytes_per_sample
    lines = [f'<VRTDataset rasterXSize="{side}" rasterYSize="{side}">']
    if geo_transform is not None:
        lines.append(f'  <GeoTransform>{", ".join(repr(float(v)) for v in geo_transform)}</GeoTransform>')
    lines += [
        f'  <VRTRasterBand dataType="{data_type.value}" band="1" subClass="VRTRawRasterBand">',
        f'    <SourceFilename relativeToVRT="0">{escape(str(path.resolve()))}</SourceFilename>',
        '    <ImageOffset>0</ImageOffset>',
        f'    <PixelOffset>{sample_bytes}</PixelOffset>',
        f'    <LineOffset>{side * sample_bytes}</LineOffset>',
        f'    <ByteOrder>{VRT_BYTE_ORDERS[byte_order]}</ByteOrder>',
        '  </VRTRasterBand>',
        '</VRTDataset>',
    ]
    return '\n'.join(lines)


@contextmanager
def _raw_sources_allowed():
    """Let an in-memory VRT reference the raw file on this thread."""
    options = {
        'GDAL_VRT_ENABLE_RAWRASTERBAND': 'YES',
        'GDAL_VRT_RAWRASTERBAND_ALLOWED_SOURCE': 'ALL',
    }
    previous = {key: gdal.GetThreadLocalConfigOption(key, None) for key in options}
    for key, value in options.items():
        gdal.SetThreadLocalConfigOption(key, value)
    try:
        yield
    finally:
        for key, value in previous.items():
            gdal.SetThreadLocalConfigOption(key, value)


class BILRasterReader(RasterReader):
    """Reads bare square BIL tiles."""

    name = 'bil'

    def __init__(self, options: Optional[BILReaderOptions] = None, settings: Optional[Any] = None):
        self.options = options or BILReaderOptions()
        self._settings = settings

    def is_available(self) -> bool:
        return gdal_backend.initialize_gdal(self._settings)

    def can_read(self, source, hints: Optional[ReaderHints] = None) -> bool:
        try:
            path = Path(source)
            return (self.is_available() and path.is_file()
                    and path.suffix.lower().lstrip('.') in self.options.suffixes
                    and _find_sidecar(path, ('.hdr',)) is None)
        except OSError as e:
            logger.debug(f"BIL reader cannot read {source}: {e}")
            return False

    def tile_size(self, path: Path, data_type: RasterDataType) -> int:
        """Side length of the square tile ``path`` holds."""
        samples = path.stat().st_size // data_type.bytes_per_sample
        side = math.isqrt(samples)
        if side == 0 or side * side != samples:
            raise SourceUnreadableError(
                f"{path.name}: no header and {samples} samples do not form a square tile"
            )
        return side

    def _open_dataset(self, path: Path, hints: ReaderHints) -> gdal.Dataset:
        gdal_backend.require_gdal(self._settings)
        if _find_sidecar(path, ('.hdr',)) is not None:
            raise SourceUnreadableError(f"{path.name} has a header; read it with the GDAL reader")

        data_type = RasterDataType.parse(hints.data_type) or self.options.default_data_type
        side = self.tile_size(path, data_type)

        geo_transform = None
        world_path = _find_sidecar(path, WORLD_FILE_SUFFIXES)
        if world_path is not None:
            geo_transform = parse_world_file(world_path)
        elif hints.sector is not None:
            geo_transform = geotransform.from_sector(hints.sector, side, side)

        byte_order = ByteOrder.parse(hints.extra.get('byte_order')) or self.options.byte_order
        with _raw_sources_allowed():
            dataset = gdal.Open(raw_vrt_xml(path, side, data_type, byte_order, geo_transform))
        if dataset is None:
            raise SourceUnreadableError(f"GDAL cannot expose {path} as a raw raster")
        return dataset

    def _describe(self, dataset: gdal.Dataset, path: Path, hints: ReaderHints,
                  scan_for_sentinels: bool) -> RasterMetadata:
        hints = dataclasses.replace(hints, pixel_format=hints.pixel_format or self.options.pixel_format)
        return describe_dataset(
            dataset, path, hints,
            quick_reading=not scan_for_sentinels,
            nodata_sentinels=self.options.nodata_sentinels,
            driver_name='BIL',
        )

    @handle_gdal_error("Read BIL metadata")
    def read_metadata(self, source, hints: Optional[ReaderHints] = None) -> RasterMetadata:
        path = Path(source)
        hints = hints or ReaderHints()
        dataset = self._open_dataset(path, hints)
        try:
            # Sentinel nodata needs a full sample scan, which only open pays for
            return self._describe(dataset, path, hints, scan_for_sentinels=False)
        finally:
            gdal_backend.release_dataset(dataset)

    @handle_gdal_error("Open BIL raster")
    def open(self, source, hints: Optional[ReaderHints] = None) -> NativeRasterHandle:
        path = Path(source)
        hints = hints or ReaderHints()
        dataset = self._open_dataset(path, hints)
        try:
            metadata = self._describe(dataset, path, hints, scan_for_sentinels=True)
        except Exception:
            gdal_backend.release_dataset(dataset)
            raise
        return NativeRasterHandle(dataset, path, metadata)
