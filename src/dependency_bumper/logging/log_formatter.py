"""
Log formatters for machine-readable and colored console output.
"""

import json
import logging
from datetime import datetime
from typing import Dict, Any, Optional

# Attributes every LogRecord carries; anything else was passed through ``extra``
_STANDARD_FIELDS = frozenset({
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname', 'filename',
    'module', 'lineno', 'funcName', 'created', 'msecs', 'relativeCreated',
    'thread', 'threadName', 'processName', 'process', 'taskName',
    'exc_info', 'exc_text', 'stack_info', 'message', 'asctime'
})


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter emitting one object per log record.

    Fields passed through ``extra`` (for instance the repository being
    processed) are collected under an ``extra`` key.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            extra = {
                key: value for key, value in record.__dict__.items()
                if key not in _STANDARD_FIELDS and not key.startswith('_')
            }
            if extra:
                log_entry["extra"] = extra

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the whole line by level, for terminals."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'
    BOLD = '\033[1m'

    def __init__(self, fmt: Optional[str] = None, datefmt: Optional[str] = None):
        super().__init__(fmt, datefmt)

    def format(self, record: logging.LogRecord) -> str:
        formatted = super().format(record)

        level_color = self.COLORS.get(record.levelname)
        if not level_color:
            return formatted

        bold_level = f"{self.BOLD}{record.levelname}{self.RESET}{level_color}"
        formatted = formatted.replace(record.levelname, bold_level, 1)
        return f"{level_color}{formatted}{self.RESET}"
