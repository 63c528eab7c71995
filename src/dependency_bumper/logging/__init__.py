"""
Logging system for the dependency bumper.
"""

from .logger_config import setup_logging, close_logging, LoggerConfig, LoggingManager
from .log_formatter import StructuredFormatter, ColoredFormatter

__all__ = [
    "setup_logging",
    "close_logging",
    "LoggerConfig",
    "LoggingManager",
    "StructuredFormatter",
    "ColoredFormatter"
]
