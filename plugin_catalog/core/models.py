"""Core data models and enums for the Plugin Catalog."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Any


class FileRole(Enum):
    """Roles a file can play inside a plugin unit."""
    INSTALLER = "installer"
    DOCUMENTATION = "documentation"
    IMAGE = "image"
    OTHER = "other"

    @classmethod
    def get_extensions(cls) -> Dict[str, "FileRole"]:
        """Get mapping of file extensions to roles."""
        return {
            # Installers and packages
            ".zip": cls.INSTALLER,
            ".exe": cls.INSTALLER,
            ".msi": cls.INSTALLER,

            # Documentation
            ".md": cls.DOCUMENTATION,
            ".pdf": cls.DOCUMENTATION,
            ".txt": cls.DOCUMENTATION,

            # Images
            ".png": cls.IMAGE,
            ".jpg": cls.IMAGE,
            ".jpeg": cls.IMAGE,
            ".gif": cls.IMAGE,
            ".webp": cls.IMAGE,
        }

    @classmethod
    def from_path(cls, file_path: Path) -> "FileRole":
        """Classify a file based on its extension. Unknown extensions are OTHER."""
        return cls.get_extensions().get(Path(file_path).suffix.lower(), cls.OTHER)


@dataclass(frozen=True)
class ParsedFileName:
    """Structured fields recovered from a free-form plugin filename.

    Every field except ``extension`` may be empty, meaning absent.
    ``extension`` is lowercase and includes the leading dot.
    """
    developer: str = ""
    plugin_name: str = ""
    platform: str = ""
    version: str = ""
    suffix: str = ""
    extension: str = ""


@dataclass
class PluginUnit:
    """Files judged to belong to one logical plugin inside a developer folder."""
    base_name: str
    developer_folder: Path
    files: List[Path] = field(default_factory=list)

    @property
    def developer(self) -> str:
        return self.developer_folder.name


@dataclass
class CategorizedFiles:
    """Files of a plugin unit sorted into their roles."""
    zip_file: Optional[Path] = None
    executable_file: Optional[Path] = None
    documentation_files: List[Path] = field(default_factory=list)
    image_files: List[Path] = field(default_factory=list)
    other_files: List[Path] = field(default_factory=list)

    def all_files(self) -> List[Path]:
        """Return every file of the record, installers first."""
        files = [f for f in (self.zip_file, self.executable_file) if f is not None]
        return files + self.documentation_files + self.image_files + self.other_files

    def to_dict(self, relative_to: Optional[Path] = None) -> Dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        def _fmt(path: Optional[Path]) -> Optional[str]:
            if path is None:
                return None
            if relative_to is not None:
                try:
                    return Path(path).relative_to(relative_to).as_posix()
                except ValueError:
                    pass
            return str(path)

        return {
            "zip_file": _fmt(self.zip_file),
            "executable_file": _fmt(self.executable_file),
            "documentation_files": [_fmt(p) for p in self.documentation_files],
            "image_files": [_fmt(p) for p in self.image_files],
            "other_files": [_fmt(p) for p in self.other_files],
        }


# developer folder name -> plugin base name -> categorized files
DeveloperCatalog = Dict[str, Dict[str, CategorizedFiles]]


@dataclass
class RenameOutcome:
    """Result of one rename attempt."""
    source: Path
    target: Path
    status: str  # renamed, unchanged, planned, failed
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.status != "failed"


@dataclass
class ScanOptions:
    """Options for a catalog scan."""
    rename_files: bool = True
    rename_images: bool = True
    dry_run: bool = False
    verbose: bool = False


@dataclass
class ScanResult:
    """Result of a catalog scan."""
    developers: int = 0
    plugins: int = 0
    zips: int = 0
    stopped: bool = False
    catalog: DeveloperCatalog = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    renamed: int = 0
    failed: int = 0
    duration: float = 0.0

    def counts(self) -> Dict[str, Any]:
        """Aggregate counts handed to note and index generators."""
        return {
            "developers": self.developers,
            "plugins": self.plugins,
            "zips": self.zips,
            "stopped": self.stopped,
        }
