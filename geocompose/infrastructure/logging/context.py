"""Logging context management for composition request correlation."""

import time
import uuid
from contextlib import contextmanager
from typing import Optional, Dict, Any

from .structured_logger import (
    request_context, source_context, stage_context, get_logger
)


class CompositionLoggingContext:
    """Manages logging context throughout one composition request.

    Context is propagated to every log message emitted within scope:
    the request id while composing, and the source currently being
    read and painted.
    """

    def __init__(self, request_id: Optional[str] = None):
        self.request_id = request_id or uuid.uuid4().hex[:12]
        self.timings: Dict[str, Dict[str, Any]] = {}
        self.logger = get_logger(self.__class__.__name__)

    @contextmanager
    def request(self, **metadata):
        """Context for the whole composition request.

        Example:
            with ctx.request(width=512, height=512):
                ...
        """
        request_token = request_context.set(self.request_id)
        stage_token = stage_context.set('compose')
        start_time = time.time()

        self.logger.debug(
            "Composition started",
            extra={'context': metadata}
        )

        status = 'failed'
        try:
            yield self
            status = 'completed'
        finally:
            duration = time.time() - start_time
            self.timings['request'] = {'duration': duration, 'status': status}
            self.logger.log_performance('compose', duration, status=status, **metadata)
            stage_context.reset(stage_token)
            request_context.reset(request_token)

    @contextmanager
    def source(self, name: str, **metadata):
        """Context for reading and painting one source."""
        token = source_context.set(name)
        start_time = time.time()
        status = 'failed'
        try:
            yield self
            status = 'painted'
        finally:
            duration = time.time() - start_time
            self.timings[name] = {'duration': duration, 'status': status, **metadata}
            self.logger.debug(
                f"Source {name} {status} in {duration:.3f}s",
                extra={'context': metadata}
            )
            source_context.reset(token)

    def get_timings(self) -> Dict[str, Dict[str, Any]]:
        return self.timings.copy()

