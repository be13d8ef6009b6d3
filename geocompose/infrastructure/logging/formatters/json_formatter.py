"""JSON formatter for structured machine-readable logs."""

import json
import logging
import traceback
from datetime import datetime, timezone


class JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON with context and metadata."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
            'thread_name': record.threadName,
            'process': record.process
        }

        context = getattr(record, 'context', None)
        if context:
            log_data['context'] = context

        perf = getattr(record, 'performance', None)
        if perf:
            log_data['performance'] = perf

        tb = getattr(record, 'traceback', None)
        if tb:
            log_data['traceback'] = tb
        elif record.exc_info:
            log_data['traceback'] = self.formatException(record.exc_info)

        return json.dumps(log_data, separators=(',', ':'), default=str)

    def formatException(self, exc_info) -> str:
        return ''.join(traceback.format_exception(*exc_info))
