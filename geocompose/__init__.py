"""
Raster composition engine.

Composes a single image or elevation raster for an arbitrary geographic
rectangle and pixel size from a catalog of heterogeneous raster sources.
"""

__version__ = "0.1.0"
__description__ = "Raster composition for heterogeneous geospatial sources"

# Note: submodules are imported explicitly so that GDAL is only initialised
# when a reader or the resampler is actually used.

__all__ = [
    '__version__',
    '__description__',
]
