# geocompose/raster/catalog.py
"""Immutable catalog of raster sources available for composition."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from geocompose.abstractions.types import ByteOrder, PixelFormat
from geocompose.exceptions import InvalidArgumentError
from geocompose.geometry import Sector
from geocompose.infrastructure.logging import log_operation
from .descriptor import RasterDescriptor, SourceEntry
from .readers.registry import ReaderRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogProperties:
    """Catalog-wide properties read once when the catalog is built."""
    name: Optional[str] = None
    pixel_format: Optional[PixelFormat] = None
    image_format: Optional[str] = None
    data_type: Optional[str] = None
    byte_order: Optional[ByteOrder] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    KNOWN_KEYS = ('name', 'pixel_format', 'image_format', 'data_type', 'byte_order')

    @classmethod
    def from_items(cls, items: Union[None, Mapping[str, Any], Iterable[Mapping[str, Any]]]) -> 'CatalogProperties':
        """Build from a mapping or a list of mappings.

        When a key appears more than once with different values the first
        value is kept and the conflict is logged.
        """
        if not items:
            return cls()
        if isinstance(items, Mapping):
            items = [items]

        merged: Dict[str, Any] = {}
        for item in items:
            if not isinstance(item, Mapping):
                raise InvalidArgumentError(f"Catalog properties must be mappings, got {item!r}")
            for key, value in item.items():
                if key in merged and merged[key] != value:
                    logger.warning(
                        f"Conflicting catalog property '{key}': keeping {merged[key]!r}, "
                        f"ignoring {value!r}"
                    )
                    continue
                merged.setdefault(key, value)

        extra = {k: v for k, v in merged.items() if k not in cls.KNOWN_KEYS}
        return cls(
            name=merged.get('name'),
            pixel_format=PixelFormat.parse(merged.get('pixel_format')),
            image_format=merged.get('image_format'),
            data_type=merged.get('data_type'),
            byte_order=ByteOrder.parse(merged.get('byte_order')),
            extra=extra,
        )


class RasterCatalog:
    """Descriptors of every usable source plus their combined coverage.

    Sources that no reader accepts, or whose extent cannot be determined,
    are logged and left out; the catalog never fails because of one source.
    """

    def __init__(self, descriptors: Iterable[RasterDescriptor],
                 properties: Optional[CatalogProperties] = None,
                 registry: Optional[ReaderRegistry] = None,
                 settings: Optional[Any] = None):
        if settings is None:
            from geocompose.config import config as settings

        self._descriptors: Tuple[RasterDescriptor, ...] = tuple(descriptors)
        self.properties = properties or CatalogProperties()
        self.registry = registry
        self.default_pixel_format = (
            PixelFormat.parse(settings.get('composition.default_pixel_format')) or PixelFormat.IMAGE
        )

        coverage = Sector.union_all(d.sector for d in self._descriptors)
        # Coverage is only usable with extent on both axes
        self._sector = coverage if coverage is not None and not coverage.is_empty else None

    @classmethod
    @log_operation("build_catalog")
    def from_sources(cls, entries: Iterable[Union[SourceEntry, Mapping[str, Any], str]],
                     registry: Optional[ReaderRegistry] = None,
                     properties: Optional[CatalogProperties] = None,
                     base_dir: Optional[Path] = None,
                     settings: Optional[Any] = None) -> 'RasterCatalog':
        """Describe every declared source with the first reader that accepts it."""
        registry = registry or ReaderRegistry.from_config(settings)
        descriptors = []

        for raw_entry in entries:
            try:
                entry = (raw_entry if isinstance(raw_entry, SourceEntry)
                         else SourceEntry.from_mapping(raw_entry, base_dir))
            except InvalidArgumentError as e:
                logger.warning(f"Skipping invalid catalog entry: {e}")
                continue

            descriptor = cls._describe(entry, registry)
            if descriptor is not None:
                descriptors.append(descriptor)

        catalog = cls(descriptors, properties, registry, settings)
        logger.info(f"Catalog built with {len(catalog)} sources, coverage {catalog.sector}")
        return catalog

    @staticmethod
    def _describe(entry: SourceEntry, registry: ReaderRegistry) -> Optional[RasterDescriptor]:
        hints = entry.hints()
        reader = registry.find_reader_for(entry.path, hints)
        if reader is None:
            logger.warning(f"No reader for {entry.path} - skipping")
            return None

        try:
            metadata = reader.read_metadata(entry.path, hints)
            sector = entry.sector or metadata.sector
            if sector is None:
                sector = reader.decode_sector(entry.path, hints)
        except Exception as e:
            logger.error(f"Failed to describe {entry.path}: {e}", exc_info=True)
            return None

        if sector is None:
            logger.warning(f"No geographic extent for {entry.path} - skipping")
            return None

        logger.debug(f"Added {entry.path.name} via {reader.name} reader: {sector}")
        return RasterDescriptor.from_metadata(entry.path, reader, metadata, hints, sector)

    @classmethod
    def from_mapping(cls, document: Mapping[str, Any],
                     registry: Optional[ReaderRegistry] = None,
                     base_dir: Optional[Path] = None) -> 'RasterCatalog':
        """Build from a ``{properties: ..., sources: [...]}`` document."""
        if not isinstance(document, Mapping):
            raise InvalidArgumentError("Catalog document must be a mapping")
        sources = document.get('sources') or []
        if not isinstance(sources, list):
            raise InvalidArgumentError("Catalog 'sources' must be a list")
        properties = CatalogProperties.from_items(document.get('properties'))
        return cls.from_sources(sources, registry, properties, base_dir, settings)

    @classmethod
    def from_yaml(cls, path: Union[str, Path],
                  registry: Optional[ReaderRegistry] = None,
                  settings: Optional[Any] = None) -> 'RasterCatalog':
        """Build from a YAML catalog file; relative source paths resolve against its directory."""
        path = Path(path)
        with open(path, 'r') as f:
            document = yaml.safe_load(f) or {}
        return cls.from_mapping(document, registry, base_dir=path.parent, settings=settings)

    @property
    def descriptors(self) -> Tuple[RasterDescriptor, ...]:
        return self._descriptors

    @property
    def sector(self) -> Optional[Sector]:
        """Union of all source sectors, or None when there is no coverage."""
        return self._sector

    @property
    def pixel_format(self) -> PixelFormat:
        """Declared pixel format, else the first source's, else the configured default."""
        if self.properties.pixel_format is not None:
            return self.properties.pixel_format
        if self._descriptors:
            return self._descriptors[0].pixel_format
        return self.default_pixel_format

    def __len__(self) -> int:
        return len(self._descriptors)

    def __iter__(self) -> Iterator[RasterDescriptor]:
        return iter(self._descriptors)

    def intersecting(self, sector: Sector) -> List[RasterDescriptor]:
        """Descriptors overlapping the sector with non-zero area, in catalog order."""
        result = []
        for descriptor in self._descriptors:
            overlap = descriptor.sector.intersection(sector)
            if overlap is not None and not overlap.is_empty:
                result.append(descriptor)
        return result

    def summary(self) -> Dict[str, Any]:
        by_format: Dict[str, int] = {}
        for descriptor in self._descriptors:
            key = descriptor.pixel_format.value
            by_format[key] = by_format.get(key, 0) + 1
        return {
            'name': self.properties.name,
            'total_sources': len(self._descriptors),
            'sector': self._sector.to_list() if self._sector else None,
            'by_pixel_format': by_format,
            'sources': [d.to_dict() for d in self._descriptors],
        }

    def generate_report(self, output_path: Path) -> None:
        """Write the catalog summary as JSON."""
        report = {'generated': datetime.now().isoformat(), **self.summary()}
        with open(output_path, 'w') as f:
            json.dump(report, f, indent=2)
        logger.info(f"Catalog report written to {output_path}")
