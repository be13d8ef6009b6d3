# geocompose/composition/encoders.py
"""Turn composed rasters into byte streams of a MIME type."""

import logging
import uuid
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, Optional

import numpy as np
from osgeo import gdal

from geocompose.abstractions.types import ColorModel, PixelFormat, RasterDataType
from geocompose.exceptions import InvalidArgumentError, handle_gdal_error
from geocompose.raster.composed import ElevationRaster, ImageRaster
from geocompose.raster.readers.gdal_backend import create_mem_dataset, release_dataset, require_gdal
from .canvas import convert_rgba
from .request import CompositionRequest

logger = logging.getLogger(__name__)

Encoder = Callable[[Any], bytes]

# Sample type forced by each elevation format; None keeps the request's
ELEVATION_FORMATS = {
    'application/bil': None,
    'application/bil16': RasterDataType.INT16,
    'application/bil32': RasterDataType.FLOAT32,
}

_COLOR_INTERPRETATIONS = {
    ColorModel.RGBA: (gdal.GCI_RedBand, gdal.GCI_GreenBand, gdal.GCI_BlueBand, gdal.GCI_AlphaBand),
    ColorModel.RGB: (gdal.GCI_RedBand, gdal.GCI_GreenBand, gdal.GCI_BlueBand),
    ColorModel.GRAYSCALE: (gdal.GCI_GrayIndex,),
    ColorModel.GRAYSCALE_ALPHA: (gdal.GCI_GrayIndex, gdal.GCI_AlphaBand),
    ColorModel.PALETTE: (gdal.GCI_PaletteIndex,),
}


def _read_vsimem(path: str) -> bytes:
    stat = gdal.VSIStatL(path)
    handle = gdal.VSIFOpenL(path, 'rb')
    if handle is None or stat is None:
        raise RuntimeError(f"Encoded output {path} was not written")
    try:
        return bytes(gdal.VSIFReadL(1, stat.size, handle))
    finally:
        gdal.VSIFCloseL(handle)


@handle_gdal_error("Image encoding")
def encode_with_driver(raster: ImageRaster, driver_name: str, extension: str,
                       creation_options=None) -> bytes:
    """Encode an image raster with a GDAL driver through ``/vsimem/``."""
    require_gdal()
    if not isinstance(raster, ImageRaster):
        raise InvalidArgumentError(f"{driver_name} encodes images, got {type(raster).__name__}")

    dataset = create_mem_dataset(raster.width, raster.height, raster.band_count, RasterDataType.BYTE)
    path = f"/vsimem/geocompose_{uuid.uuid4().hex}.{extension}"
    try:
        for index, interpretation in enumerate(_COLOR_INTERPRETATIONS[raster.color_model]):
            band = dataset.GetRasterBand(index + 1)
            band.WriteArray(raster.band(index))
            band.SetColorInterpretation(interpretation)
        if raster.color_model is ColorModel.PALETTE:
            table = gdal.ColorTable()
            for entry, rgba in enumerate(raster.color_table):
                table.SetColorEntry(entry, tuple(int(v) for v in rgba))
            dataset.GetRasterBand(1).SetRasterColorTable(table)

        output = gdal.GetDriverByName(driver_name).CreateCopy(path, dataset, 0, creation_options or [])
        if output is None:
            raise RuntimeError(f"{driver_name} driver could not encode the raster")
        release_dataset(output)
        return _read_vsimem(path)
    finally:
        release_dataset(dataset)
        gdal.Unlink(path)


def encode_png(raster: ImageRaster) -> bytes:
    return encode_with_driver(raster, 'PNG', 'png')


def _without_alpha(raster: ImageRaster) -> ImageRaster:
    if raster.color_model is ColorModel.PALETTE:
        rgba = raster.color_table[raster.band(0)]
        model = ColorModel.RGB
    elif raster.color_model is ColorModel.RGBA:
        rgba, model = raster.pixels, ColorModel.RGB
    elif raster.color_model is ColorModel.GRAYSCALE_ALPHA:
        return ImageRaster(raster.width, raster.height, 1, ColorModel.GRAYSCALE,
                           raster.pixels[..., :1].copy())
    else:
        return raster
    return ImageRaster(raster.width, raster.height, model.band_count, model, convert_rgba(rgba, model))


def jpeg_encoder(quality: int = 85) -> Encoder:
    """JPEG encoder; alpha and palettes are flattened since JPEG carries neither."""
    def encode_jpeg(raster: ImageRaster) -> bytes:
        return encode_with_driver(_without_alpha(raster), 'JPEG', 'jpg', [f'QUALITY={int(quality)}'])
    return encode_jpeg


def encode_bil(raster: ElevationRaster) -> bytes:
    """Raw samples in the raster's byte order, rows north to south."""
    if not isinstance(raster, ElevationRaster):
        raise InvalidArgumentError(f"BIL encodes elevations, got {type(raster).__name__}")
    return raster.sample_buffer


class EncoderRegistry:
    """MIME type to encoder lookup."""

    def __init__(self, encoders: Optional[Dict[str, Encoder]] = None):
        self._encoders: Dict[str, Encoder] = {}
        for mime_type, encoder in (encoders or {}).items():
            self.register(mime_type, encoder)

    @classmethod
    def with_defaults(cls, settings: Optional[Any] = None) -> 'EncoderRegistry':
        if settings is None:
            from geocompose.config import config as settings
        quality = settings.get('composition.jpeg_quality', 85)
        return cls({
            'image/png': encode_png,
            'image/jpeg': jpeg_encoder(quality),
            'application/bil': encode_bil,
            'application/bil16': encode_bil,
            'application/bil32': encode_bil,
        })

    @staticmethod
    def _key(mime_type: str) -> str:
        return mime_type.split(';')[0].strip().lower()

    def register(self, mime_type: str, encoder: Encoder):
        self._encoders[self._key(mime_type)] = encoder

    def get(self, mime_type: str) -> Encoder:
        encoder = self._encoders.get(self._key(mime_type))
        if encoder is None:
            raise InvalidArgumentError(
                f"No encoder for {mime_type!r}; available: {sorted(self._encoders)}"
            )
        return encoder

    def __contains__(self, mime_type: str) -> bool:
        return self._key(mime_type) in self._encoders

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._encoders))

    def encode(self, raster, mime_type: str) -> bytes:
        return self.get(mime_type)(raster)


def request_for_format(request: CompositionRequest, image_format: str) -> CompositionRequest:
    """Adjust pixel format and sample type to what ``image_format`` carries."""
    key = EncoderRegistry._key(image_format)
    if key in ELEVATION_FORMATS:
        data_type = ELEVATION_FORMATS[key] or request.data_type
        return replace(request, pixel_format=PixelFormat.ELEVATION, data_type=data_type)
    if key.startswith('image/'):
        return replace(request, pixel_format=PixelFormat.IMAGE)
    return request


def encode_composition(compositor, request: CompositionRequest,
                       image_format: Optional[str] = None,
                       encoders: Optional[EncoderRegistry] = None) -> bytes:
    """Compose a request and return it encoded as ``image_format``.

    Elevation formats compose elevations and image formats compose imagery,
    whatever the catalog's default pixel format.
    """
    image_format = image_format or compositor.config.get('composition.default_image_format', 'image/png')
    encoders = encoders or EncoderRegistry.with_defaults(compositor.config)
    encoder = encoders.get(image_format)

    raster = compositor.compose(request_for_format(request, image_format))
    encoded = encoder(raster)
    logger.debug(f"Encoded {raster.width}x{raster.height} composition as {image_format}: "
                 f"{len(encoded)} bytes")
    return encoded


def decode_bil(buffer: bytes, width: int, height: int, data_type: RasterDataType,
               byte_order) -> np.ndarray:
    """Samples of a BIL buffer as a ``(height, width)`` array in native byte order."""
    dtype = data_type.numpy_dtype.newbyteorder(byte_order.numpy_prefix)
    expected = width * height * data_type.bytes_per_sample
    if len(buffer) != expected:
        raise InvalidArgumentError(f"BIL buffer holds {len(buffer)} bytes, expected {expected}")
    return np.frombuffer(buffer, dtype=dtype).reshape(height, width).astype(data_type.numpy_dtype)
