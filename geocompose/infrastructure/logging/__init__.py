"""Structured logging infrastructure for composition monitoring."""

from .structured_logger import StructuredLogger, get_logger
from .context import CompositionLoggingContext
from .decorators import log_operation
from .setup import setup_logging, setup_simple_logging

__all__ = [
    'StructuredLogger',
    'get_logger',
    'CompositionLoggingContext',
    'log_operation',
    'setup_logging',
    'setup_simple_logging',
]
