"""Raster catalog, source handles and composed rasters."""
