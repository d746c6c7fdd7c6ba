"""Core engine for plugin file parsing, renaming and cataloging."""

from .models import (
    FileRole, ParsedFileName, PluginUnit, CategorizedFiles, RenameOutcome, ScanOptions, ScanResult
)
from .parser import parse_file_name
from .normalizer import canonical_name, normalize_file_name, normalize_image_name
from .grouper import group_plugin_files
from .categorizer import FileCategorizer
from .renamer import RenameExecutor
from .scanner import CancellationToken, PluginScanner

__all__ = [
    "FileRole",
    "ParsedFileName",
    "PluginUnit",
    "CategorizedFiles",
    "RenameOutcome",
    "ScanOptions",
    "ScanResult",
    "parse_file_name",
    "canonical_name",
    "normalize_file_name",
    "normalize_image_name",
    "group_plugin_files",
    "FileCategorizer",
    "RenameExecutor",
    "CancellationToken",
    "PluginScanner"
]
