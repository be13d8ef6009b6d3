"""Pyramid selection and warping of source rasters onto request grids."""

from .pyramid import PyramidLevel, PyramidSelector
from .resampler import Resampler, ResampledRaster

__all__ = ['PyramidLevel', 'PyramidSelector', 'Resampler', 'ResampledRaster']
