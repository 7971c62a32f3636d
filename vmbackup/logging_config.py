"""
Logging configuration for the VM backup tool
"""
import json
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_FILE_NAME = "vmbackup.log"
TEXT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Attributes every LogRecord carries; anything else came in through ``extra``
_RESERVED_ATTRS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'exc_info', 'exc_text', 'stack_info', 'lineno', 'funcName',
    'created', 'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'taskName',
})


def _extra_fields(record: logging.LogRecord) -> dict:
    return {key: value for key, value in record.__dict__.items() if key not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        entry.update(_extra_fields(record))
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Plain text with structured fields appended as key=value"""

    def __init__(self, fmt: str = TEXT_FORMAT):
        super().__init__(fmt)

    def format(self, record):
        line = super().format(record)
        extras = _extra_fields(record)
        if extras:
            line += " [" + " ".join(f"{key}={value}" for key, value in extras.items()) + "]"
        return line


def _make_formatter(log_format: str) -> logging.Formatter:
    return JSONFormatter() if log_format == "json" else TextFormatter()


def setup_logging(console: Optional[Console] = None,
                  log_level: str = "INFO",
                  log_format: str = "text",
                  log_dir: Optional[str] = "/var/log/vmbackup",
                  log_file_max_size: int = 10485760) -> None:
    """Rich console handler plus a rotating file in ``log_dir`` when it is writable

    Console records go through ``console`` so they render above any live
    progress bar drawn on the same console.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console = console or Console(stderr=True)
    if log_format == "json":
        console_handler = RichHandler(console=console, show_time=False, show_level=False,
                                      show_path=False)
        console_handler.setFormatter(JSONFormatter())
    else:
        console_handler = RichHandler(console=console, show_path=False)
        console_handler.setFormatter(TextFormatter("%(name)s: %(message)s"))
    console_handler.setLevel(level)
    root_logger.addHandler(console_handler)

    if log_dir:
        try:
            Path(log_dir).mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                Path(log_dir) / LOG_FILE_NAME,
                maxBytes=log_file_max_size,
                backupCount=5,
                encoding='utf-8'
            )
        except OSError as e:
            root_logger.warning("File logging disabled: %s", e)
        else:
            file_handler.setFormatter(_make_formatter(log_format))
            root_logger.addHandler(file_handler)

    logging.getLogger('asyncio').setLevel(logging.WARNING)


class StructuredLogger:
    """Logger wrapper that turns keyword arguments into ``extra`` fields"""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    def _log(self, level, msg, *args, **kwargs):
        extra = kwargs.pop('extra', {})
        extra.update(kwargs)
        self._logger.log(level, msg, *args, extra=extra or None)

    def debug(self, msg, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name))


class LogOperation:
    """Context manager logging start, completion or failure of an operation with its duration"""

    def __init__(self, logger: StructuredLogger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.start_time: Optional[datetime] = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.info(f"Starting {self.operation}", operation=self.operation,
                         phase='start', **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()
        if exc_type is None:
            self.logger.info(f"Completed {self.operation}", operation=self.operation,
                             phase='complete', duration_seconds=duration, **self.context)
        else:
            self.logger.error(f"Failed {self.operation}", operation=self.operation,
                              phase='failed', duration_seconds=duration,
                              error=str(exc_val), **self.context)
        return False
