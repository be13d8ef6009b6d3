# geocompose/raster/descriptor.py
"""Catalog entries: declared sources and the descriptors built from them."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from geocompose.abstractions.interfaces import RasterReader, ReaderHints, RasterMetadata
from geocompose.abstractions.types import CoordinateSystemKind, PixelFormat
from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector
from geocompose.raster.handle import NativeRasterHandle


@dataclass(frozen=True)
class SourceEntry:
    """One source as declared in a catalog document."""
    path: Path
    sector: Optional[Sector] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, entry: Union[str, Mapping[str, Any]],
                     base_dir: Optional[Path] = None) -> 'SourceEntry':
        """Parse a ``{path, sector, properties}`` mapping or a bare path string."""
        if isinstance(entry, (str, Path)):
            entry = {'path': entry}
        if not isinstance(entry, Mapping) or not entry.get('path'):
            raise InvalidArgumentError(f"Catalog source needs a 'path': {entry!r}")

        path = Path(entry['path']).expanduser()
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path

        sector = entry.get('sector')
        return cls(
            path=path,
            sector=Sector.parse(sector) if sector is not None else None,
            properties=dict(entry.get('properties') or {}),
        )

    def hints(self) -> ReaderHints:
        return ReaderHints.from_mapping({**self.properties,
                                         **({'sector': self.sector} if self.sector else {})})


@dataclass(frozen=True)
class RasterDescriptor:
    """Everything the compositor needs to know about a source without opening it."""
    source: Path
    reader: RasterReader
    sector: Sector
    pixel_format: PixelFormat
    data_type: str
    band_count: int
    nodata_value: Optional[float] = None
    coordinate_system: CoordinateSystemKind = CoordinateSystemKind.UNKNOWN
    name: str = ''
    hints: ReaderHints = field(default_factory=ReaderHints)
    max_pixel_value: Optional[float] = None
    actual_bits_per_pixel: Optional[int] = None
    has_color_table: bool = False

    @classmethod
    def from_metadata(cls, source: Path, reader: RasterReader, metadata: RasterMetadata,
                      hints: ReaderHints, sector: Sector) -> 'RasterDescriptor':
        return cls(
            source=Path(source),
            reader=reader,
            sector=sector,
            pixel_format=metadata.pixel_format,
            data_type=metadata.data_type,
            band_count=metadata.band_count,
            nodata_value=metadata.nodata_value,
            coordinate_system=metadata.coordinate_system,
            name=Path(source).stem,
            hints=hints,
            max_pixel_value=metadata.max_pixel_value,
            actual_bits_per_pixel=metadata.actual_bits_per_pixel,
            has_color_table=metadata.has_color_table,
        )

    def open(self) -> NativeRasterHandle:
        """Open the source through the reader that described it."""
        return self.reader.open(self.source, self.hints)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'source': str(self.source),
            'reader': self.reader.name,
            'sector': self.sector.to_list(),
            'pixel_format': self.pixel_format.value,
            'data_type': self.data_type,
            'band_count': self.band_count,
            'nodata_value': self.nodata_value,
            'coordinate_system': self.coordinate_system.value,
        }
