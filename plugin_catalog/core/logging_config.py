"""Logging configuration and utilities for the Plugin Catalog."""

import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict
from .config import LoggingConfig, get_config

DEVELOPER_LOG_FILENAME = "_developer_changes.log"


class ColoredFormatter(logging.Formatter):
    """Custom formatter that adds colors to console output."""

    # ANSI color codes
    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
        'RESET': '\033[0m'        # Reset
    }

    def format(self, record):
        """Format log record with colors."""
        levelname = record.levelname
        if levelname in self.COLORS:
            record.levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"
        try:
            return super().format(record)
        finally:
            record.levelname = levelname


class LoggingManager:
    """Manages logging configuration and setup."""

    def __init__(self, config: Optional[LoggingConfig] = None):
        """
        Initialize logging manager.

        Args:
            config: Logging configuration. If None, uses global config.
        """
        self.config = config or get_config().logging
        self.handlers: Dict[str, logging.Handler] = {}
        self._setup_root_logger()

    def _setup_root_logger(self):
        """Set up the root logger with configured handlers."""
        root_logger = logging.getLogger()

        # Only replace handlers this manager owns
        for handler in list(root_logger.handlers):
            if getattr(handler, '_plugin_catalog', False):
                root_logger.removeHandler(handler)
                handler.close()

        try:
            log_level = getattr(logging, self.config.level.upper())
            root_logger.setLevel(log_level)
        except AttributeError:
            root_logger.setLevel(logging.INFO)
            root_logger.warning(f"Invalid log level '{self.config.level}', using INFO")

        if self.config.console_enabled:
            self._add_root_handler('console', self._create_console_handler())

        if self.config.file_enabled and self.config.file_path:
            file_handler = self._create_file_handler()
            if file_handler:
                self._add_root_handler('file', file_handler)

    def _add_root_handler(self, name: str, handler: logging.Handler):
        handler._plugin_catalog = True
        logging.getLogger().addHandler(handler)
        self.handlers[name] = handler

    def _create_console_handler(self) -> logging.Handler:
        """Create and configure console handler."""
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(ColoredFormatter(self.config.format))
        return handler

    def _create_file_handler(self) -> Optional[logging.Handler]:
        """Create and configure rotating file handler."""
        try:
            self.config.file_path.parent.mkdir(parents=True, exist_ok=True)

            max_bytes = self.config.file_max_size_mb * 1024 * 1024
            handler = logging.handlers.RotatingFileHandler(
                self.config.file_path,
                maxBytes=max_bytes,
                backupCount=self.config.file_backup_count,
                encoding='utf-8'
            )
            handler.setFormatter(logging.Formatter(self.config.format))
            return handler

        except OSError as e:
            # If file handler creation fails, log to console
            logging.getLogger(__name__).error(f"Failed to create file handler: {e}")
            return None


class AuditFormatter(logging.Formatter):
    """Formats audit entries as "[<ISO-8601 timestamp>] <entry>"."""

    def __init__(self):
        super().__init__('[%(asctime)s] %(message)s')

    def formatTime(self, record, datefmt=None):
        return datetime.fromtimestamp(record.created).astimezone().isoformat(timespec='seconds')


class AuditFileHandler(logging.FileHandler):
    """Append-only audit file whose write failures are reported, never raised."""

    def emit(self, record):
        # FileHandler opens a delayed stream outside its own error handling
        try:
            super().emit(record)
        except OSError:
            self.handleError(record)

    def handleError(self, record):
        logging.getLogger(__name__).warning(
            f"Could not write audit log {self.baseFilename}: {sys.exc_info()[1]}"
        )


class DeveloperAuditLog:
    """
    Human-readable record of the renames made inside one developer folder.

    Entries go to ``_developer_changes.log`` in the developer folder through a
    dedicated logger that does not propagate to the application log. The file
    is opened lazily, so a read-only folder only costs a warning.
    """

    def __init__(self, developer_folder: Path, filename: str = DEVELOPER_LOG_FILENAME):
        self.path = Path(developer_folder) / filename
        self.logger = logging.getLogger(f"plugin_catalog.audit.{id(self)}")
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

        self.handler = AuditFileHandler(self.path, mode='a', encoding='utf-8', delay=True)
        self.handler.setFormatter(AuditFormatter())
        self.logger.addHandler(self.handler)

    def write(self, entry: str):
        """Append one entry."""
        self.logger.info(entry)

    def close(self):
        """Flush and detach the file handler."""
        self.logger.removeHandler(self.handler)
        self.handler.close()
        logging.Logger.manager.loggerDict.pop(self.logger.name, None)


# Global logging manager instance
_logging_manager = None


def setup_logging(config: Optional[LoggingConfig] = None) -> LoggingManager:
    """
    Set up global logging configuration.

    Args:
        config: Optional logging configuration

    Returns:
        LoggingManager instance
    """
    global _logging_manager
    _logging_manager = LoggingManager(config)
    return _logging_manager
