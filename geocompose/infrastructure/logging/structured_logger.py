"""Structured logging with context propagation for composition requests."""

import logging
import sys
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Any, Optional

# Context variables for correlation across a composition request
request_context: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
source_context: ContextVar[Optional[str]] = ContextVar('source', default=None)
stage_context: ContextVar[Optional[str]] = ContextVar('stage', default=None)


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%fZ')


class StructuredLogger(logging.Logger):
    """Logger that injects request context into every record.

    Records carry three extra attributes consumed by the formatters:
    ``context`` (request id, source, stage and caller fields),
    ``performance`` and ``traceback``.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self._context_fields: Dict[str, Any] = {}

    def _log(self, level, msg, args, exc_info=None, extra=None, stack_info=False, **kwargs):
        context = {
            'request_id': request_context.get(),
            'source': source_context.get(),
            'stage': stage_context.get(),
            'logger_name': self.name,
            'timestamp': _utc_timestamp(),
            **self._context_fields
        }
        context = {k: v for k, v in context.items() if v is not None}

        if extra and isinstance(extra, dict):
            extra = dict(extra)
            performance = extra.pop('performance', None)
            context.update(extra.pop('context', {}))
            traceback_str = extra.pop('traceback', None)
        else:
            performance = None
            traceback_str = None

        if not traceback_str and exc_info:
            if isinstance(exc_info, BaseException):
                exc_info = (type(exc_info), exc_info, exc_info.__traceback__)
            elif not isinstance(exc_info, tuple):
                exc_info = sys.exc_info()
            if exc_info[0] is not None:
                traceback_str = ''.join(traceback.format_exception(*exc_info))

        if extra is None:
            extra = {}
        extra.update({
            'context': context,
            'performance': performance,
            'traceback': traceback_str
        })

        super()._log(level, msg, args, exc_info=False, extra=extra,
                     stack_info=stack_info, **kwargs)

    def add_context(self, **fields):
        """Add persistent context fields to all future log messages."""
        self._context_fields.update(fields)

    def remove_context(self, *keys):
        for key in keys:
            self._context_fields.pop(key, None)

    def log_performance(self, operation: str, duration: float, **metrics):
        """Log performance metrics for an operation.

        Args:
            operation: Operation name
            duration: Duration in seconds
            **metrics: Additional metrics (pixels, sources, ...)
        """
        performance_data = {
            'operation': operation,
            'duration_seconds': round(duration, 3),
            'timestamp': _utc_timestamp(),
            **metrics
        }

        if 'pixels' in metrics and duration > 0:
            performance_data['pixels_per_second'] = round(metrics['pixels'] / duration, 2)

        self.info(
            f"Performance: {operation} completed in {duration:.3f}s",
            extra={'performance': performance_data}
        )

    def log_error_with_context(self, error: Exception, operation: str = None, **context):
        """Log an error with full context and traceback."""
        error_context = {
            'error_type': type(error).__name__,
            'error_module': type(error).__module__,
            **context
        }
        if operation:
            error_context['operation'] = operation

        self.error(
            f"{type(error).__name__}: {error}",
            exc_info=error,
            extra={'context': error_context}
        )


_logger_cache: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Get or create a structured logger instance.

    Example:
        from geocompose.infrastructure.logging import get_logger
        logger = get_logger(__name__)
    """
    if name in _logger_cache:
        return _logger_cache[name]

    original_class = logging.getLoggerClass()
    logging.setLoggerClass(StructuredLogger)
    try:
        logger = logging.getLogger(name)
    finally:
        logging.setLoggerClass(original_class)

    if not isinstance(logger, StructuredLogger):
        # A plain logger already owns the name; log through a structured
        # child that propagates to it
        plain = logger
        logger = StructuredLogger(name)
        logger.parent = plain

    _logger_cache[name] = logger
    return logger

