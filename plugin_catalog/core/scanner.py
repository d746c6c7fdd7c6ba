"""Plugin folder scanner for the Plugin Catalog."""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .categorizer import FileCategorizer
from .error_handler import ErrorHandler
from .exceptions import (
    DirectoryUnreadableError, FileSystemError, InvalidCharacterSetError,
    PathNotFoundError, ScanCancelledError
)
from .grouper import build_plugin_units
from .logging_config import DeveloperAuditLog
from .models import CategorizedFiles, FileRole, PluginUnit, RenameOutcome, ScanOptions, ScanResult
from .normalizer import canonical_target, validate_name
from .parser import has_ambiguous_version
from .renamer import RenameExecutor
from .snapshot import write_snapshot


class CancellationToken:
    """Stop flag shared between a scan and whoever controls it."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        """Request the scan to stop at the next folder or plugin boundary."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise ScanCancelledError("Scan was cancelled by user")


class PluginScanner:
    """Walks developer folders, renames plugin files and builds the catalog."""

    def __init__(
        self,
        config=None,
        progress_callback: Optional[Callable[[int, int], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ):
        """
        Initialize the plugin scanner.

        Args:
            config: Optional configuration object
            progress_callback: Optional callback for progress reporting.
                               Called with (developers_done, developers_total)
                               after each developer folder.
            cancel_token: Token checked before each developer folder and each
                          plugin unit
        """
        # Import here to avoid circular imports
        from .config import get_config

        self.config = config or get_config()
        self.progress_callback = progress_callback
        self.cancel_token = cancel_token or CancellationToken()
        self.error_handler = ErrorHandler()
        self.logger = logging.getLogger(__name__)

    def scan(self, root: Path, options: Optional[ScanOptions] = None) -> ScanResult:
        """
        Scan the root folder, one developer folder at a time.

        Args:
            root: Folder whose subfolders are developer folders
            options: Scanning options; defaults come from the configuration

        Returns:
            ScanResult with the catalog and aggregate counts

        Raises:
            PathNotFoundError: If root does not exist
            DirectoryUnreadableError: If root cannot be listed
        """
        if options is None:
            options = ScanOptions(
                rename_files=self.config.scan.rename_files,
                rename_images=self.config.scan.rename_images,
            )

        start_time = time.time()
        root = Path(root)
        developer_folders = self.list_developer_folders(root)
        result = ScanResult()
        failures: List[Exception] = []

        self.logger.info(f"Scanning {len(developer_folders)} developer folders in {root}")

        try:
            for index, developer_path in enumerate(developer_folders, start=1):
                self.cancel_token.raise_if_cancelled()
                self._scan_developer(developer_path, options, result, failures)
                self._report_progress(index, len(developer_folders))
        except ScanCancelledError:
            result.stopped = True
            self.logger.info("Scan stopped by user")

        result.duration = time.time() - start_time

        if failures:
            self.error_handler.log_error_summary(failures, "plugin scan")

        if not options.dry_run:
            try:
                write_snapshot(result, root, self.config.scan.snapshot_filename)
            except FileSystemError as e:
                self.logger.error(f"Could not write scan snapshot: {e}")
                result.errors.append(str(e))

        self.logger.info(
            f"Scan {'stopped' if result.stopped else 'completed'}: "
            f"{result.developers} developers, {result.plugins} plugins, {result.zips} zips"
        )
        return result

    def cancel_scan(self):
        """Cancel the current scan operation."""
        self.cancel_token.cancel()
        self.logger.info("Scan cancellation requested")

    def list_developer_folders(self, root: Path) -> List[Path]:
        """
        List the developer folders directly under root.

        Raises:
            PathNotFoundError: If root does not exist
            DirectoryUnreadableError: If root is not a readable directory
        """
        root = Path(root)
        if not root.exists():
            raise PathNotFoundError(f"Path does not exist: {root}")
        if not root.is_dir():
            raise DirectoryUnreadableError(f"Path is not a directory: {root}")

        try:
            with os.scandir(root) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            raise DirectoryUnreadableError(f"Cannot read directory {root}: {e}") from e

        ignored = set(self.config.scan.folders_to_ignore)
        return [
            Path(entry.path) for entry in entries
            if entry.is_dir() and not entry.name.startswith('.') and entry.name not in ignored
        ]

    def find_plugin_files(self, developer_path: Path) -> List[Path]:
        """
        Recursively find the plugin files of a developer folder.

        Keeps files with an allowed extension and prunes folders from the
        ignore list. Unreadable subfolders are logged and skipped.

        Raises:
            DirectoryUnreadableError: If the developer folder itself cannot be listed
        """
        developer_path = Path(developer_path)
        files: List[Path] = []
        self._collect_files(developer_path, developer_path, files)
        return files

    def _collect_files(self, directory: Path, developer_path: Path, files: List[Path]):
        scan_config = self.config.scan
        extensions = {ext.lower() for ext in scan_config.extensions}
        ignored = set(scan_config.folders_to_ignore)
        own_files = {scan_config.audit_log_filename, scan_config.snapshot_filename}

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            if directory == developer_path:
                raise DirectoryUnreadableError(f"Cannot read directory {directory}: {e}") from e
            self.logger.warning(f"Skipping unreadable directory {directory}: {e}")
            return

        for entry in entries:
            if entry.name.startswith('.'):
                continue

            path = Path(entry.path)
            try:
                if entry.is_dir(follow_symlinks=False):
                    if entry.name not in ignored:
                        self._collect_files(path, developer_path, files)
                elif entry.is_file():
                    if entry.name in own_files:
                        continue
                    if path.suffix.lower() in extensions:
                        files.append(path)
            except OSError as e:
                self.logger.warning(f"Could not access {path}: {e}")

    def _scan_developer(self, developer_path: Path, options: ScanOptions,
                        result: ScanResult, failures: List[Exception]):
        developer = developer_path.name
        self.logger.info(f"Processing developer folder: {developer}")

        try:
            validate_name(developer, "developer name")
            files = self.find_plugin_files(developer_path)
        except (InvalidCharacterSetError, DirectoryUnreadableError) as e:
            self._record_failure(result, failures, e, f"Skipping developer folder {developer}")
            return

        result.developers += 1
        if not files:
            self.logger.info(f"No matching files in {developer}")
            return

        audit_log = None
        if not options.dry_run:
            audit_log = DeveloperAuditLog(developer_path, self.config.scan.audit_log_filename)
        renamer = RenameExecutor(audit_log, dry_run=options.dry_run)

        try:
            for unit in build_plugin_units(files, developer_path):
                self.cancel_token.raise_if_cancelled()
                self._scan_unit(unit, renamer, options, result, failures)
        finally:
            if audit_log is not None:
                audit_log.close()

    def _scan_unit(self, unit: PluginUnit, renamer: RenameExecutor, options: ScanOptions,
                   result: ScanResult, failures: List[Exception]):
        try:
            validate_name(unit.base_name, "plugin name")
        except InvalidCharacterSetError as e:
            self._record_failure(result, failures, e, f"Skipping plugin in {unit.developer}")
            return

        for file in unit.files:
            if has_ambiguous_version(file.name):
                self.logger.warning(f"Several version-like tokens in {file.name}, using the first one")

        categorized, outcomes = self.process_unit(unit, renamer, options)

        for outcome in outcomes:
            if outcome.status == "failed":
                result.failed += 1
                self._record_failure(result, failures, outcome.error, f"Failed to rename {outcome.source.name}")
            elif outcome.status in ("renamed", "planned"):
                result.renamed += 1

        result.catalog.setdefault(unit.developer, {})[unit.base_name] = categorized
        self.logger.log(
            logging.INFO if options.verbose else logging.DEBUG,
            f"Cataloged {unit.developer}/{unit.base_name}: {len(unit.files)} file(s), "
            f"{sum(1 for o in outcomes if o.status in ('renamed', 'planned'))} renamed"
        )

        if all(outcome.succeeded for outcome in outcomes):
            result.plugins += 1
            if categorized.zip_file is not None:
                result.zips += 1

    def process_unit(self, unit: PluginUnit, renamer: RenameExecutor,
                     options: ScanOptions) -> Tuple[CategorizedFiles, List[RenameOutcome]]:
        """
        Rename and categorize the files of one plugin unit.

        Returns:
            Tuple of (categorized files, rename outcomes)
        """
        files = unit.files
        outcomes: List[RenameOutcome] = []

        if options.rename_files:
            files, outcomes = self.rename_unit_files(unit, renamer)

        categorizer = FileCategorizer(renamer)
        categorized = categorizer.categorize(files)

        if options.rename_images and categorized.image_files:
            categorized, image_outcomes = categorizer.rename_images(
                categorized, unit.base_name, unit.developer_folder
            )
            outcomes.extend(image_outcomes)

        return categorized, outcomes

    def rename_unit_files(self, unit: PluginUnit,
                          renamer: RenameExecutor) -> Tuple[List[Path], List[RenameOutcome]]:
        """
        Rename the non-image files of a unit to their canonical names.

        Renames run concurrently and every outcome is collected; one failure
        does not stop its siblings. Images are left to the categorizer.

        Returns:
            Tuple of (file paths after renaming in input order, outcomes)
        """
        targets = [f for f in unit.files if FileRole.from_path(f) is not FileRole.IMAGE]
        new_paths: Dict[Path, Path] = {}
        outcomes: List[RenameOutcome] = []

        if targets:
            with ThreadPoolExecutor(max_workers=self.config.scan.rename_workers) as executor:
                futures = {}
                for source in targets:
                    desired = canonical_target(source, unit.developer_folder)
                    futures[executor.submit(renamer.rename, source, desired)] = (source, desired)

                for future in as_completed(futures):
                    source, desired = futures[future]
                    try:
                        new_path = future.result()
                    except FileSystemError as e:
                        outcomes.append(RenameOutcome(source, desired, "failed", e))
                        continue
                    except Exception as e:
                        self.logger.error(f"Unexpected error renaming {source}: {e}", exc_info=True)
                        outcomes.append(RenameOutcome(source, desired, "failed", e))
                        continue

                    new_paths[source] = new_path
                    if new_path == source:
                        status = "unchanged"
                    else:
                        status = "planned" if renamer.dry_run else "renamed"
                    outcomes.append(RenameOutcome(source, new_path, status))

        return [new_paths.get(f, f) for f in unit.files], outcomes

    def _record_failure(self, result: ScanResult, failures: List[Exception],
                        error: Exception, context: str):
        message = f"{context}: {error}"
        self.logger.error(message)
        result.errors.append(message)
        failures.append(error)

    def _report_progress(self, completed: int, total: int):
        if self.progress_callback:
            try:
                self.progress_callback(completed, total)
            except Exception as e:
                self.logger.warning(f"Progress callback error: {e}")
