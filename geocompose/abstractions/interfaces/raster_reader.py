# geocompose/abstractions/interfaces/raster_reader.py
"""Reader interface implemented by every source format backend."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union, TYPE_CHECKING

from geocompose.abstractions.types import PixelFormat, CoordinateSystemKind
from geocompose.geometry.sector import Sector

if TYPE_CHECKING:
    from geocompose.raster.handle import NativeRasterHandle

SourcePath = Union[str, Path]


@dataclass(frozen=True)
class ReaderHints:
    """Per-source overrides handed to a reader.

    Typed fields cover the overrides every reader understands; anything
    format specific travels in ``extra``.
    """
    sector: Optional[Sector] = None
    pixel_format: Optional[PixelFormat] = None
    nodata_value: Optional[float] = None
    spatial_reference: Optional[str] = None  # WKT, proj string or "EPSG:xxxx"
    data_type: Optional[str] = None
    quick_reading: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Optional[Dict[str, Any]]) -> 'ReaderHints':
        """Build hints from a catalog ``properties`` mapping; unknown keys go to ``extra``."""
        if not values:
            return cls()
        values = dict(values)
        sector = values.pop('sector', None)
        pixel_format = values.pop('pixel_format', None)
        nodata = values.pop('nodata_value', values.pop('nodata', None))
        return cls(
            sector=Sector.parse(sector) if sector is not None else None,
            pixel_format=PixelFormat.parse(pixel_format),
            nodata_value=float(nodata) if nodata is not None else None,
            spatial_reference=values.pop('spatial_reference', None),
            data_type=values.pop('data_type', None),
            quick_reading=bool(values.pop('quick_reading', False)),
            extra=values,
        )


@dataclass
class RasterMetadata:
    """Header level description of a source raster, read without decoding pixels."""
    width: int
    height: int
    band_count: int
    data_type: str
    driver: str
    sector: Optional[Sector] = None
    pixel_format: PixelFormat = PixelFormat.IMAGE
    coordinate_system: CoordinateSystemKind = CoordinateSystemKind.UNKNOWN
    nodata_value: Optional[float] = None
    spatial_reference: Optional[str] = None
    geo_transform: Optional[Tuple[float, ...]] = None
    overview_sizes: List[Tuple[int, int]] = field(default_factory=list)
    actual_bits_per_pixel: Optional[int] = None
    max_pixel_value: Optional[float] = None
    has_color_table: bool = False
    extended: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['sector'] = self.sector.to_list() if self.sector else None
        data['pixel_format'] = self.pixel_format.value
        data['coordinate_system'] = self.coordinate_system.value
        return data


class RasterReader(ABC):
    """Base class for source format decoders.

    Implementations must keep ``can_read`` cheap and free of exceptions;
    ``read_metadata`` must not decode pixel data.
    """

    name: str = 'abstract'

    def is_available(self) -> bool:
        """Whether the backend this reader depends on initialised."""
        return True

    @abstractmethod
    def can_read(self, source: SourcePath, hints: Optional[ReaderHints] = None) -> bool:
        """Check if this reader can decode the given source."""
        pass

    @abstractmethod
    def read_metadata(self, source: SourcePath, hints: Optional[ReaderHints] = None) -> RasterMetadata:
        """Read dimensions, georeferencing and pixel format."""
        pass

    @abstractmethod
    def open(self, source: SourcePath, hints: Optional[ReaderHints] = None) -> 'NativeRasterHandle':
        """Open the source for pixel access. The caller owns the handle."""
        pass

    def decode_sector(self, source: SourcePath, hints: Optional[ReaderHints] = None) -> Optional[Sector]:
        """Geographic extent of the source, decoding it if the header is not enough."""
        with self.open(source, hints) as handle:
            return handle.sector

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
