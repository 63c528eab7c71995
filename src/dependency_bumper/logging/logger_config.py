"""
Logger configuration and setup for the dependency bumper.
"""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional, Dict
from dataclasses import dataclass

from ..config import LoggingConfig
from .log_formatter import StructuredFormatter, ColoredFormatter


@dataclass
class LoggerConfig:
    """Configuration for logging system."""
    level: str = "INFO"
    file_path: Optional[str] = None
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    max_file_size: int = 10  # MB
    backup_count: int = 5
    enable_console: bool = True
    enable_structured: bool = False
    enable_colors: bool = True

    @classmethod
    def from_app_config(cls, config: LoggingConfig) -> 'LoggerConfig':
        """Build logger configuration from the application logging section."""
        return cls(
            level=config.level,
            file_path=config.file,
            format_string=config.format,
            max_file_size=config.max_file_size,
            backup_count=config.backup_count,
            enable_structured=config.structured
        )


class LoggingManager:
    """
    Centralized logging manager for the dependency bumper.

    Installs a console handler and, when a log file is configured, a
    rotating file handler on the root logger.
    """

    def __init__(self):
        """Initialize the logging manager."""
        self._handlers: Dict[str, logging.Handler] = {}
        self._configured = False
        self.config: Optional[LoggerConfig] = None

    def setup_logging(self, config: Optional[LoggerConfig] = None) -> None:
        """
        Set up the logging system with the specified configuration.

        Calling this again replaces the handlers installed by the previous call.

        Args:
            config: Logging configuration (defaults used if not provided)
        """
        if self._configured:
            self.close_handlers()

        config = config or LoggerConfig()
        self.config = config

        root_logger = logging.getLogger()
        root_logger.setLevel(self._get_log_level(config.level))

        if config.enable_console:
            console_handler = self._create_console_handler(config)
            root_logger.addHandler(console_handler)
            self._handlers['console'] = console_handler

        if config.file_path:
            file_handler = self._create_file_handler(config)
            root_logger.addHandler(file_handler)
            self._handlers['file'] = file_handler

        self._configure_third_party_loggers()

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging system initialized with level: {config.level}")

        self._configured = True

    def _create_console_handler(self, config: LoggerConfig) -> logging.Handler:
        """Create console handler with appropriate formatter."""
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(self._get_log_level(config.level))

        if config.enable_structured:
            formatter = StructuredFormatter()
        elif config.enable_colors and sys.stdout.isatty():
            formatter = ColoredFormatter(config.format_string)
        else:
            formatter = logging.Formatter(config.format_string)

        handler.setFormatter(formatter)
        return handler

    def _create_file_handler(self, config: LoggerConfig) -> logging.Handler:
        """Create rotating file handler."""
        log_path = Path(config.file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        handler = logging.handlers.RotatingFileHandler(
            filename=config.file_path,
            maxBytes=config.max_file_size * 1024 * 1024,  # Convert MB to bytes
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(self._get_log_level(config.level))

        if config.enable_structured:
            formatter = StructuredFormatter()
        else:
            formatter = logging.Formatter(config.format_string)

        handler.setFormatter(formatter)
        return handler

    def _configure_third_party_loggers(self) -> None:
        """Configure third-party library loggers to reduce noise."""
        for logger_name in ('urllib3', 'requests', 'git'):
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    def _get_log_level(self, level_str: str) -> int:
        """Convert string log level to logging constant."""
        level_mapping = {
            'DEBUG': logging.DEBUG,
            'INFO': logging.INFO,
            'WARNING': logging.WARNING,
            'ERROR': logging.ERROR,
            'CRITICAL': logging.CRITICAL
        }
        return level_mapping.get(level_str.upper(), logging.INFO)

    def close_handlers(self) -> None:
        """Detach and close all handlers installed by this manager."""
        root_logger = logging.getLogger()
        for handler in self._handlers.values():
            root_logger.removeHandler(handler)
            handler.close()

        self._handlers.clear()
        self._configured = False


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(config: Optional[LoggerConfig] = None) -> None:
    """
    Set up the global logging system.

    Args:
        config: Logging configuration
    """
    _logging_manager.setup_logging(config)


def close_logging() -> None:
    """Close logging system and clean up resources."""
    _logging_manager.close_handlers()
