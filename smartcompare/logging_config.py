"""Logging setup: readable console output plus JSON log files.

Session code logs through ``get_logger(__name__, product_id=...)``; the bound
fields are written as top-level keys in the JSON files and shown as a
``[key=value]`` prefix on the console.
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from pythonjsonlogger import jsonlogger

from smartcompare.config import settings

# Client libraries that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai", "urllib3")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps service, level and source location."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['service'] = settings.service_name
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['source'] = f"{record.filename}:{record.lineno}"
        # Bound fields are already top-level keys
        log_record.pop('context', None)


class ConsoleFormatter(logging.Formatter):
    """Plain-text formatter that prefixes bound context fields."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if not context:
            return line
        prefix = " ".join(f"{key}={value}" for key, value in context.items())
        return f"[{prefix}] {line}"


def setup_logging(base_dir: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        base_dir: Directory that holds the log folder (defaults to the
            current working directory)

    Returns:
        The configured root logger
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / settings.log_dir
    logs_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(ConsoleFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(console_handler)

    json_formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    for filename, level in (("app.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename)
        handler.setLevel(level)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter that attaches bound context to every record."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get('extra') or {})
        extra.update(self.extra)
        extra['context'] = dict(self.extra)
        kwargs['extra'] = extra
        return msg, kwargs

    def bind(self, **context) -> "LoggerAdapter":
        """Return a new adapter with additional context fields."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> LoggerAdapter:
    """
    Get a logger with bound context fields.

    Args:
        name: Logger name (usually __name__)
        **context: Fields added to every record (e.g. product_id='p1')

    Returns:
        LoggerAdapter with context
    """
    return LoggerAdapter(logging.getLogger(name), context)
