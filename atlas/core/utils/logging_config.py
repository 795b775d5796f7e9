"""
Structured logging configuration for the ATLAS HR service.

JSON lines in production, colored single-line records in development.
Workflow code attaches structured fields (request_id, step_id, actor_id)
through ``log_with_context`` so operators can filter on them.
"""

import os
import sys
import json
import logging
from datetime import datetime, timezone


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'line': record.lineno,
        }

        if getattr(record, 'context', None):
            log_entry.update(record.context)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, '')
        reset = self.RESET if color else ''

        timestamp = datetime.now().strftime('%H:%M:%S')
        base = f'{color}[{timestamp}] {record.levelname:8}{reset} {record.name:36} {record.getMessage()}'

        context = getattr(record, 'context', None)
        if context:
            base = f"{base} | {' '.join(f'{k}={v}' for k, v in context.items())}"

        if record.exc_info:
            base = f'{base}\n{self.formatException(record.exc_info)}'
        return base


def setup_logging(level: str = 'INFO', json_format: bool = None,
                  logger_name: str = 'atlas') -> logging.Logger:
    """Configure and return the application logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting. If None, auto-detects from PRODUCTION
            or a Gunicorn SERVER_SOFTWARE.
        logger_name: Root name of the application logger tree.
    """
    if json_format is None:
        json_format = os.environ.get('PRODUCTION', '').lower() == 'true' or \
                      'gunicorn' in os.environ.get('SERVER_SOFTWARE', '')

    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    handler.setFormatter(JSONFormatter() if json_format else DevelopmentFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    # Request lines from the dev server drown out workflow logs
    logging.getLogger('werkzeug').setLevel(logging.WARNING)

    return logger


def get_logger(name: str = 'atlas') -> logging.Logger:
    """Get a logger instance (e.g. 'atlas.core.approvals.engine')."""
    return logging.getLogger(name)


def log_with_context(logger: logging.Logger, level: int, message: str,
                     exc_info=None, **context):
    """Log a message with structured context fields.

    Usage:
        log_with_context(logger, logging.ERROR, 'Auto-approval failed',
                         request_id=12, actor_id=3)
    """
    if not logger.isEnabledFor(level):
        return
    logger.log(level, message, exc_info=exc_info, extra={'context': context})
