"""Composition-specific exceptions for consistent error handling."""

import functools
from typing import Optional


class GeoComposeError(Exception):
    """Base composition error."""
    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        super().__init__(message)
        self.original_exception = original_exception


class InvalidArgumentError(GeoComposeError, ValueError):
    """Raised when a request or a value object is malformed."""
    pass


class OutOfCoverageError(GeoComposeError):
    """Raised when a request does not intersect the available coverage."""
    pass


class DecoderUnavailableError(GeoComposeError):
    """Raised when a format backend failed to initialise."""
    pass


class SourceUnreadableError(GeoComposeError):
    """Raised when a source cannot be opened, decoded or warped."""
    pass


class ResourceExhaustedError(GeoComposeError):
    """Raised when a working raster would exceed the configured size limit."""
    pass


def handle_gdal_error(operation_name: str):
    """Decorator to turn GDAL failures into SourceUnreadableError.

    Composition errors raised inside the wrapped call pass through untouched.
    """
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except GeoComposeError:
                raise
            except RuntimeError as e:
                # GDAL raises RuntimeError once exceptions are enabled
                raise SourceUnreadableError(
                    f"{operation_name} failed: {e}", e
                ) from e
            except (OSError, ValueError, MemoryError) as e:
                raise SourceUnreadableError(
                    f"{operation_name} failed: {type(e).__name__}: {e}", e
                ) from e
        return wrapper
    return decorator
