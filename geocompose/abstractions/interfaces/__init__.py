"""Interfaces implemented by raster readers."""

from .raster_reader import RasterReader, ReaderHints, RasterMetadata

__all__ = ['RasterReader', 'ReaderHints', 'RasterMetadata']
