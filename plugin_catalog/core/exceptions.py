"""Custom exceptions for the Plugin Catalog."""


class PluginCatalogError(Exception):
    """Base exception for plugin catalog errors."""
    pass


class FileSystemError(PluginCatalogError):
    """Exception for file system related errors."""
    pass


class PermissionDeniedError(FileSystemError):
    """Exception raised when a directory is not writable."""
    pass


class IOFailureError(FileSystemError):
    """Exception for failed file system operations other than permissions."""
    pass


class PathNotFoundError(IOFailureError):
    """Exception for path not found errors."""
    pass


class DirectoryUnreadableError(FileSystemError):
    """Exception raised when a folder cannot be enumerated."""
    pass


class ValidationError(PluginCatalogError):
    """Exception for data validation errors."""
    pass


class InvalidCharacterSetError(ValidationError):
    """Exception for developer or plugin names that cannot be used in a filename."""

    def __init__(self, message, name=""):
        super().__init__(message)
        self.name = name


class ScanError(PluginCatalogError):
    """Exception for scanning operation errors."""
    pass


class ScanCancelledError(ScanError):
    """Exception for cancelled scan operations."""
    pass


class ConfigurationError(PluginCatalogError):
    """Exception for configuration related errors."""
    pass
