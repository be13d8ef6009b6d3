"""Setup and configuration for the structured logging system."""

import logging
import sys
from pathlib import Path
from typing import Optional, Any

from .structured_logger import get_logger
from .handlers import ConsoleHandler, FileHandler


def _reset_root(level: int) -> logging.Logger:
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    return root_logger


def setup_logging(config: Any,
                  log_file: Optional[str] = None,
                  console: bool = True,
                  file: bool = True,
                  log_level: Optional[str] = None):
    """Configure the structured logging system.

    Args:
        config: Config instance (anything with a dot-notation ``get``)
        log_file: Optional log file path (uses ``logging.file`` if not provided)
        console: Whether to enable console logging
        file: Whether to enable rotating JSON file logging
        log_level: Minimum log level (defaults to ``logging.level``)
    """
    log_level = (log_level or config.get('logging.level', 'INFO')).upper()
    level = getattr(logging, log_level, logging.INFO)
    root_logger = _reset_root(level)

    if console:
        console_handler = ConsoleHandler(
            use_colors=sys.stderr.isatty(),
            show_context=True
        )
        console_handler.setLevel(level)
        root_logger.addHandler(console_handler)

    if file:
        if log_file is None:
            log_file = config.get('logging.file') or str(
                Path(config.get('paths.logs_dir', 'logs')) / 'geocompose.log'
            )
        file_handler = FileHandler(
            filename=str(log_file),
            max_bytes=config.get('logging.max_file_size', 10 * 1024 * 1024),
            backup_count=config.get('logging.backup_count', 5),
            use_json=True
        )
        root_logger.addHandler(file_handler)

    logger = get_logger(__name__)
    logger.debug(
        "Structured logging system initialized",
        extra={
            'context': {
                'log_level': log_level,
                'handlers': {
                    'console': console,
                    'file': str(log_file) if file else None,
                }
            }
        }
    )


def setup_simple_logging(log_level: str = 'INFO'):
    """Console-only logging for scripts and debugging."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = _reset_root(level)

    console_handler = ConsoleHandler(show_context=True)
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)
