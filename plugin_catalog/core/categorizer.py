"""Sort the files of a plugin unit into installer, documentation, image and other roles."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from .exceptions import FileSystemError
from .models import CategorizedFiles, FileRole, RenameOutcome
from .normalizer import normalize_image_name
from .renamer import RenameExecutor


class FileCategorizer:
    """Classifies plugin files by extension and optionally renames their images."""

    def __init__(self, renamer: Optional[RenameExecutor] = None):
        """
        Initialize the categorizer.

        Args:
            renamer: Executor used by rename_images. Categorization alone
                     never needs one.
        """
        self.renamer = renamer
        self.logger = logging.getLogger(__name__)

    def categorize(self, files: Sequence[Path]) -> CategorizedFiles:
        """
        Categorize the files of one plugin unit.

        The first .zip becomes the zip file and the first .exe/.msi the
        executable; further installer candidates land in other_files.
        Every input path appears in exactly one slot.

        Args:
            files: Paths of the plugin unit, in discovery order

        Returns:
            CategorizedFiles record
        """
        result = CategorizedFiles()
        remaining: List[Path] = []
        seen = set()

        # First pass: installers
        for file in files:
            file = Path(file)
            if file in seen:
                continue
            seen.add(file)

            ext = file.suffix.lower()
            if ext == '.zip' and result.zip_file is None:
                result.zip_file = file
            elif ext in ('.exe', '.msi') and result.executable_file is None:
                result.executable_file = file
            else:
                remaining.append(file)

        # Second pass: everything else by role
        for file in remaining:
            role = FileRole.from_path(file)
            if role is FileRole.DOCUMENTATION:
                result.documentation_files.append(file)
            elif role is FileRole.IMAGE:
                result.image_files.append(file)
            else:
                result.other_files.append(file)

        return result

    def rename_images(
        self,
        categorized: CategorizedFiles,
        plugin_name: str,
        developer_folder: Union[str, Path],
    ) -> Tuple[CategorizedFiles, List[RenameOutcome]]:
        """
        Rename a unit's images after the plugin.

        Images are renamed one after another since they all aim for the same
        name and rely on the executor's numbering. A failed rename keeps the
        original path in the record.

        Returns:
            Tuple of (updated record, one outcome per image)
        """
        if self.renamer is None:
            raise ValueError("rename_images requires a RenameExecutor")

        image_files: List[Path] = []
        outcomes: List[RenameOutcome] = []

        for image in categorized.image_files:
            desired = image.with_name(normalize_image_name(image, plugin_name, developer_folder))
            try:
                new_path = self.renamer.rename(image, desired)
            except FileSystemError as e:
                self.logger.error(f"Failed to rename image {image}: {e}")
                image_files.append(image)
                outcomes.append(RenameOutcome(image, desired, "failed", e))
                continue

            image_files.append(new_path)
            status = "unchanged" if new_path == image else ("planned" if self.renamer.dry_run else "renamed")
            outcomes.append(RenameOutcome(image, new_path, status))

        return replace(categorized, image_files=image_files), outcomes
