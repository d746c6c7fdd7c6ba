"""Error handling utilities for the Plugin Catalog."""

import errno
import logging
from pathlib import Path
from typing import Callable, List, Optional, Union
from functools import wraps

from .exceptions import (
    FileSystemError, IOFailureError, PathNotFoundError, PermissionDeniedError
)


logger = logging.getLogger(__name__)


class ErrorHandler:
    """Centralized translation of OS errors and error reporting."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize error handler.

        Args:
            logger: Logger instance to use for error reporting
        """
        self.logger = logger or logging.getLogger(__name__)

    def handle_file_system_error(self, error: Exception, file_path: Union[str, Path]) -> None:
        """
        Translate an OS error into the matching catalog exception.

        Args:
            error: The exception that occurred
            file_path: Path where the error occurred

        Raises:
            PermissionDeniedError, PathNotFoundError, IOFailureError or FileSystemError
        """
        file_path = Path(file_path) if isinstance(file_path, str) else file_path

        if isinstance(error, OSError):
            if error.errno in (errno.EACCES, errno.EPERM):
                self.logger.debug(f"Permission denied accessing {file_path}: {error}")
                raise PermissionDeniedError(f"Permission denied: {file_path}") from error
            elif error.errno == errno.ENOENT:
                self.logger.debug(f"File not found: {file_path}")
                raise PathNotFoundError(f"Path not found: {file_path}") from error
            elif error.errno == errno.ENOSPC:
                self.logger.debug(f"No space left on device: {error}")
                raise IOFailureError("No space left on device") from error
            else:
                self.logger.debug(f"File system error accessing {file_path}: {error}")
                raise IOFailureError(f"File system error: {error}") from error

        self.logger.debug(f"Unexpected file system error: {error}")
        raise FileSystemError(f"Unexpected file system error: {error}") from error

    def log_error_summary(self, errors: List[Union[str, Exception]], operation: str = "operation"):
        """
        Log a summary of errors that occurred during an operation.

        Args:
            errors: Exceptions or messages collected during the operation
            operation: Description of the operation
        """
        if not errors:
            return

        error_counts = {}
        for error in errors:
            error_type = type(error).__name__ if isinstance(error, Exception) else "Error"
            error_counts[error_type] = error_counts.get(error_type, 0) + 1

        self.logger.warning(f"Error summary for {operation}:")
        for error_type, count in error_counts.items():
            self.logger.warning(f"  {error_type}: {count} occurrences")

        # Log first few unique error messages
        unique_messages = set()
        for error in errors[:10]:
            message = str(error)
            if message not in unique_messages:
                unique_messages.add(message)
                self.logger.warning(f"  Example: {message}")


def safe_path_operation(func: Callable) -> Callable:
    """
    Decorator translating OS errors raised by a path operation into catalog exceptions.

    Args:
        func: Function that performs path operations

    Returns:
        Wrapped function with error handling
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except OSError as e:
            # Extract file path from args if possible
            file_path = getattr(e, 'filename', None)
            if file_path is None:
                for arg in args:
                    if isinstance(arg, (str, Path)):
                        file_path = arg
                        break

            ErrorHandler().handle_file_system_error(e, file_path or "unknown")

    return wrapper
