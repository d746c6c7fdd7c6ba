"""
Apply computed renames to the filesystem.

The executor never overwrites an existing file. When the desired name is
taken by a different file it tries ``"<stem>-1<ext>"``, ``"<stem>-2<ext>"``
and so on until a free name turns up.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Optional

from .error_handler import safe_path_operation
from .exceptions import PathNotFoundError, PermissionDeniedError
from .logging_config import DeveloperAuditLog
from .parser import split_extension


class RenameExecutor:
    """Renames files inside one developer folder."""

    def __init__(self, audit_log: Optional[DeveloperAuditLog] = None, dry_run: bool = False):
        """
        Initialize the rename executor.

        Args:
            audit_log: Audit log of the developer folder; renames are not
                       recorded when None
            dry_run: If True, compute targets without touching the filesystem
        """
        self.audit_log = audit_log
        self.dry_run = dry_run
        self.logger = logging.getLogger(__name__)
        # Serializes the free-name check with the rename that claims it
        self._lock = threading.Lock()
        # Targets handed out during a dry run count as taken
        self._planned = set()

    def rename(self, old_path: Path, desired_path: Path) -> Path:
        """
        Rename a file, avoiding collisions.

        Args:
            old_path: Existing file
            desired_path: Where the file should end up

        Returns:
            The path the file now has. This is old_path itself when it
            already carries the desired name.

        Raises:
            PathNotFoundError: If old_path does not exist
            PermissionDeniedError: If the containing directory is not writable
            IOFailureError: If the rename fails for another reason
        """
        old_path = Path(old_path)
        desired_path = Path(desired_path)

        if old_path.name == desired_path.name and old_path.parent == desired_path.parent:
            return old_path

        with self._lock:
            if not old_path.exists():
                raise PathNotFoundError(f"Path not found: {old_path}")

            target = self.find_free_path(old_path, desired_path)
            if target == old_path:
                return old_path

            directory = target.parent
            if not os.access(directory, os.W_OK):
                raise PermissionDeniedError(f"No write permission in directory: {directory}")

            if self.dry_run:
                self._planned.add(target)
                self.logger.info(f"Would rename: {old_path.name} -> {target.name}")
                return target

            self._commit(old_path, target)

        self.logger.info(f"Renamed: {old_path.name} -> {target.name}")
        if self.audit_log is not None:
            self.audit_log.write(f"Renamed: {old_path.name} -> {target.name}")
        return target

    def find_free_path(self, old_path: Path, desired_path: Path) -> Path:
        """
        Pick the first name at or after desired_path that no other file uses.

        Returns old_path when the search reaches the source file itself, which
        happens when a file was already disambiguated by an earlier scan.
        """
        if not self._taken_by_other(old_path, desired_path):
            return desired_path

        stem, extension = split_extension(desired_path.name)
        counter = 1
        while True:
            candidate = desired_path.with_name(f"{stem}-{counter}{extension}")
            if candidate == old_path:
                return old_path
            if not self._taken_by_other(old_path, candidate):
                self.logger.debug(f"Name collision on {desired_path.name}, using {candidate.name}")
                return candidate
            counter += 1

    def _taken_by_other(self, old_path: Path, candidate: Path) -> bool:
        if candidate in self._planned:
            return True
        if not os.path.lexists(candidate):
            return False
        try:
            # Case-only renames on case-insensitive filesystems
            return not os.path.samefile(old_path, candidate)
        except OSError:
            return True

    @safe_path_operation
    def _commit(self, old_path: Path, target: Path) -> None:
        os.rename(old_path, target)
