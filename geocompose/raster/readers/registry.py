# geocompose/raster/readers/registry.py
"""Ordered, immutable set of raster readers."""

import logging
from typing import Any, Iterable, Iterator, Optional, Tuple

from geocompose.abstractions.interfaces import RasterReader, ReaderHints

logger = logging.getLogger(__name__)


class ReaderRegistry:
    """Readers consulted in order; the first that accepts a source wins.

    The registry is built once and handed to whoever needs it; it never
    changes after construction, so it can be shared between threads.
    """

    def __init__(self, readers: Iterable[RasterReader]):
        self._readers: Tuple[RasterReader, ...] = tuple(readers)

    @classmethod
    def from_config(cls, settings: Optional[Any] = None) -> 'ReaderRegistry':
        """Build the readers listed under ``readers.enabled``, in that order."""
        from .gdal_reader import GDALRasterReader, GDALReaderOptions
        from .bil_reader import BILRasterReader, BILReaderOptions

        if settings is None:
            from geocompose.config import config as settings

        factories = {
            'gdal': lambda: GDALRasterReader(GDALReaderOptions.from_config(settings), settings),
            'bil': lambda: BILRasterReader(BILReaderOptions.from_config(settings), settings),
        }

        readers = []
        for name in settings.get('readers.enabled', ['gdal', 'bil']):
            factory = factories.get(name)
            if factory is None:
                logger.warning(f"Unknown reader '{name}' in configuration - skipping")
                continue
            readers.append(factory())
        return cls(readers)

    @property
    def readers(self) -> Tuple[RasterReader, ...]:
        return self._readers

    def __iter__(self) -> Iterator[RasterReader]:
        return iter(self._readers)

    def __len__(self) -> int:
        return len(self._readers)

    def find_reader_for(self, source, hints: Optional[ReaderHints] = None) -> Optional[RasterReader]:
        """First available reader whose ``can_read`` accepts the source, or None."""
        for reader in self._readers:
            try:
                if not reader.is_available():
                    logger.debug(f"Skipping unavailable reader {reader.name}")
                    continue
                if reader.can_read(source, hints):
                    return reader
            except Exception as e:
                logger.warning(f"Reader {reader.name} failed probing {source}: {e}")
        return None

    def get(self, name: str) -> Optional[RasterReader]:
        for reader in self._readers:
            if reader.name == name:
                return reader
        return None

    def __repr__(self) -> str:
        return f"ReaderRegistry({[reader.name for reader in self._readers]})"
