"""Plugin Catalog - A tool for normalizing and cataloging audio plugin downloads."""

__version__ = "0.1.0"
__author__ = "Plugin Catalog Team"
__description__ = "A tool for normalizing and cataloging audio plugin downloads"

# Import main components for programmatic access
from .core.models import CategorizedFiles, ParsedFileName, ScanOptions, ScanResult
from .core.parser import parse_file_name
from .core.scanner import PluginScanner
from .cli.main import cli

__all__ = [
    "CategorizedFiles",
    "ParsedFileName",
    "ScanOptions",
    "ScanResult",
    "parse_file_name",
    "PluginScanner",
    "cli"
]
