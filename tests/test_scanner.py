"""Tests for the plugin folder scanner."""

import errno
import json
import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from plugin_catalog.core.config import AppConfig
from plugin_catalog.core.exceptions import (
    DirectoryUnreadableError, PathNotFoundError, PermissionDeniedError
)
from plugin_catalog.core.models import ScanOptions
from plugin_catalog.core.renamer import RenameExecutor
from plugin_catalog.core.scanner import CancellationToken, PluginScanner
from plugin_catalog.core.snapshot import build_snapshot, load_snapshot


class ScannerTestCase:
    """Shared temporary plugin tree."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.root = self.temp_dir / "Plugins"
        self.root.mkdir()
        self.config = AppConfig()

    def teardown_method(self):
        """Clean up test environment."""
        if self.temp_dir.exists():
            for path in self.temp_dir.rglob("*"):
                if path.is_dir():
                    path.chmod(0o755)
            shutil.rmtree(self.temp_dir)

    def make_files(self, developer, *names):
        folder = self.root / developer
        folder.mkdir(parents=True, exist_ok=True)
        paths = []
        for name in names:
            path = folder / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(name)
            paths.append(path)
        return paths

    def names(self, developer):
        return sorted(p.name for p in (self.root / developer).iterdir())


class TestDiscovery(ScannerTestCase):
    """Test folder and file discovery."""

    def test_developer_folders_skip_hidden_and_ignored(self):
        for name in ("Xfer", "Waves", ".git", "Samples"):
            (self.root / name).mkdir()
        (self.root / "loose.zip").touch()

        folders = PluginScanner(config=self.config).list_developer_folders(self.root)

        assert [f.name for f in folders] == ["Waves", "Xfer"]

    def test_missing_root(self):
        with pytest.raises(PathNotFoundError):
            PluginScanner(config=self.config).scan(self.root / "missing")

    def test_root_is_a_file(self):
        file_root = self.temp_dir / "file.txt"
        file_root.touch()

        with pytest.raises(DirectoryUnreadableError):
            PluginScanner(config=self.config).scan(file_root)

    def test_find_plugin_files(self):
        self.make_files(
            "Xfer",
            "Serum.exe", "Serum.pdf", "notes.doc", ".DS_Store",
            "v1/Serum_old.zip", "Presets/Init.zip", "_developer_changes.log",
        )

        files = PluginScanner(config=self.config).find_plugin_files(self.root / "Xfer")

        assert sorted(f.relative_to(self.root / "Xfer").as_posix() for f in files) == [
            "Serum.exe", "Serum.pdf", "v1/Serum_old.zip",
        ]

    def test_extension_allow_list_is_configurable(self):
        self.make_files("Xfer", "Serum.exe", "Serum.pdf")
        self.config.scan.extensions = [".exe"]

        files = PluginScanner(config=self.config).find_plugin_files(self.root / "Xfer")

        assert [f.name for f in files] == ["Serum.exe"]


class TestScan(ScannerTestCase):
    """Test complete scans."""

    def test_installer_is_renamed(self):
        self.make_files("FabFilter", "FabFilter_ProQ3_v3.21_x64_Setup.exe")

        result = PluginScanner(config=self.config).scan(self.root)

        assert self.names("FabFilter") == ["FabFilter - ProQ3 x64 3.21.exe", "_developer_changes.log"]
        assert result.developers == 1
        assert result.plugins == 1
        assert result.zips == 0
        assert result.renamed == 1
        assert not result.stopped

    def test_files_and_images_of_one_plugin(self):
        self.make_files("Waves", "Waves - SSLChannel v1.0.vst3", "Waves_SSLChannel_v1.0_screenshot.png")

        result = PluginScanner(config=self.config).scan(self.root)

        record = result.catalog["Waves"]["SSLChannel"]
        assert record.image_files == [self.root / "Waves" / "Waves - SSLChannel.png"]
        assert record.other_files == [self.root / "Waves" / "Waves - SSLChannel 1.0.vst3"]
        assert self.names("Waves") == [
            "Waves - SSLChannel 1.0.vst3", "Waves - SSLChannel.png", "_developer_changes.log",
        ]
        assert result.plugins == 1

    def test_zip_counts(self):
        self.make_files("Xfer", "Xfer_Serum_1.3.5_Installer.zip", "Xfer - Serum Manual.pdf")
        self.make_files("Arturia", "Arturia - Pigments.zip", "Arturia - Analog Lab.exe")

        result = PluginScanner(config=self.config).scan(self.root)

        assert result.developers == 2
        assert result.plugins == 3
        assert result.zips == 2
        assert result.counts() == {"developers": 2, "plugins": 3, "zips": 2, "stopped": False}

    def test_files_in_subfolders_stay_there(self):
        self.make_files("Xfer", "Win/Xfer_Serum_x64.exe")

        PluginScanner(config=self.config).scan(self.root)

        assert (self.root / "Xfer" / "Win" / "Xfer - Serum x64.exe").exists()

    def test_rescan_changes_nothing(self):
        self.make_files(
            "FabFilter",
            "FabFilter - ProQ3 x64 3.21.exe",
            "FabFilter_ProQ3_v3.21_x64_Setup.exe",
            "proq3_screenshot.png", "proq3_preview.png",
        )
        self.make_files("Native Instruments", "Native_Instruments_Massive_v1.5_x64.zip")

        PluginScanner(config=self.config).scan(self.root)
        first = {dev: self.names(dev) for dev in ("FabFilter", "Native Instruments")}
        second_result = PluginScanner(config=self.config).scan(self.root)
        second = {dev: self.names(dev) for dev in ("FabFilter", "Native Instruments")}

        assert first == second
        assert second_result.renamed == 0
        assert "FabFilter - ProQ3 x64 3.21-1.exe" in first["FabFilter"]
        assert "Native Instruments - Massive x64 1.5.zip" in first["Native Instruments"]

    def test_rescans_settle_names_with_repeated_tokens(self):
        self.make_files("Dev", "Dev_Tool_Win_x64.exe", "Dev_Tool_v2_v3.zip", "Dev - Tool Setup Full.pdf")
        self.make_files("Sonic 2", "Foo.exe")

        results = []
        listings = []
        for _ in range(3):
            results.append(PluginScanner(config=self.config).scan(self.root))
            listings.append({dev: self.names(dev) for dev in ("Dev", "Sonic 2")})

        assert listings[0] == {
            "Dev": ["Dev - Tool 2 v3.zip", "Dev - Tool Win x64.exe", "Dev - Tool.pdf",
                    "_developer_changes.log"],
            "Sonic 2": ["Sonic 2 - Foo.exe", "_developer_changes.log"],
        }
        assert listings[1] == listings[0]
        assert listings[2] == listings[0]
        assert results[0].renamed == 4
        assert [r.renamed for r in results[1:]] == [0, 0]

        audit = (self.root / "Dev" / "_developer_changes.log").read_text(encoding="utf-8")
        assert len(audit.splitlines()) == 3

    def test_verbose_logs_each_plugin(self, caplog):
        self.make_files("Xfer", "Xfer_Serum.exe")

        with caplog.at_level(logging.INFO, logger="plugin_catalog.core.scanner"):
            PluginScanner(config=self.config).scan(self.root, ScanOptions(dry_run=True))
            quiet = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Cataloged")]
            PluginScanner(config=self.config).scan(self.root, ScanOptions(dry_run=True, verbose=True))
            loud = [r.getMessage() for r in caplog.records if r.getMessage().startswith("Cataloged")]

        assert quiet == []
        assert loud == ["Cataloged Xfer/Serum: 1 file(s), 1 renamed"]

    def test_no_rename_option(self):
        self.make_files("FabFilter", "FabFilter_ProQ3_v3.21_x64_Setup.exe", "proq3.png")

        result = PluginScanner(config=self.config).scan(
            self.root, ScanOptions(rename_files=False, rename_images=False)
        )

        assert self.names("FabFilter") == ["FabFilter_ProQ3_v3.21_x64_Setup.exe", "proq3.png"]
        assert result.plugins == 1

    def test_dry_run_leaves_tree_untouched(self):
        self.make_files("FabFilter", "FabFilter_ProQ3_v3.21_x64_Setup.exe")

        result = PluginScanner(config=self.config).scan(self.root, ScanOptions(dry_run=True))

        assert self.names("FabFilter") == ["FabFilter_ProQ3_v3.21_x64_Setup.exe"]
        assert not (self.root / "plugins-data.json").exists()
        assert result.renamed == 1
        record = result.catalog["FabFilter"]["ProQ3"]
        assert record.executable_file.name == "FabFilter - ProQ3 x64 3.21.exe"

    def test_invalid_developer_folder_is_skipped(self):
        if sys.platform == "win32":
            pytest.skip("Name cannot be created on Windows")
        self.make_files("Bad|Name", "Bad_Plugin.exe")
        self.make_files("Xfer", "Xfer - Serum.exe")

        result = PluginScanner(config=self.config).scan(self.root)

        assert result.developers == 1
        assert "Bad|Name" not in result.catalog
        assert self.names("Bad|Name") == ["Bad_Plugin.exe"]
        assert len(result.errors) == 1

    def test_empty_developer_folder_counts(self):
        (self.root / "Xfer").mkdir()

        result = PluginScanner(config=self.config).scan(self.root)

        assert result.developers == 1
        assert result.plugins == 0


class TestFailures(ScannerTestCase):
    """Test isolation of per-file and per-folder failures."""

    def _deny_writes_in(self, folder):
        real_access = os.access

        def fake_access(path, mode, *args, **kwargs):
            if Path(path) == folder and mode == os.W_OK:
                return False
            return real_access(path, mode, *args, **kwargs)

        return patch('plugin_catalog.core.renamer.os.access', side_effect=fake_access)

    def test_unwritable_developer_folder(self):
        self.make_files("FabFilter", "FabFilter_ProQ3_v3.21_x64_Setup.exe", "FabFilter_ProL2.zip")
        self.make_files("Xfer", "Xfer_Serum_x64.exe")

        with self._deny_writes_in(self.root / "FabFilter"):
            result = PluginScanner(config=self.config).scan(self.root)

        assert self.names("FabFilter") == ["FabFilter_ProL2.zip", "FabFilter_ProQ3_v3.21_x64_Setup.exe"]
        assert self.names("Xfer") == ["Xfer - Serum x64.exe", "_developer_changes.log"]
        assert result.developers == 2
        assert result.plugins == 1
        assert result.zips == 0
        assert result.failed == 2
        assert len(result.errors) == 2
        assert "ProQ3" in result.catalog["FabFilter"]
        assert not result.stopped

    @pytest.mark.skipif(sys.platform == "win32" or os.geteuid() == 0,
                        reason="Directory permissions are not enforced")
    def test_read_only_developer_folder(self):
        self.make_files("FabFilter", "FabFilter_ProQ3_v3.21_x64_Setup.exe")
        self.make_files("Xfer", "Xfer_Serum_x64.exe")
        (self.root / "FabFilter").chmod(0o555)

        result = PluginScanner(config=self.config).scan(self.root)

        assert result.plugins == 1
        assert result.failed == 1
        assert "Xfer - Serum x64.exe" in self.names("Xfer")

    def test_one_failure_does_not_stop_siblings(self):
        self.make_files("Xfer", "Xfer_Serum_x64.exe", "Xfer_Serum_x64.zip", "Xfer_Serum_Manual.pdf")
        real_rename = RenameExecutor.rename

        def flaky_rename(executor, old_path, desired_path):
            if old_path.suffix == ".zip":
                raise PermissionDeniedError(f"Permission denied: {old_path}")
            return real_rename(executor, old_path, desired_path)

        with patch.object(RenameExecutor, 'rename', flaky_rename):
            result = PluginScanner(config=self.config).scan(self.root)

        assert "Xfer - Serum x64.exe" in self.names("Xfer")
        assert "Xfer - Serum Manual.pdf" in self.names("Xfer")
        assert "Xfer_Serum_x64.zip" in self.names("Xfer")
        assert result.failed == 1
        assert result.plugins == 0

    def test_failed_rename_is_reported_once(self, caplog):
        self.make_files("Xfer", "Xfer_Serum_x64.exe", "Xfer_Serum_x64.zip")
        real_rename = os.rename

        def denied_rename(src, dst):
            if str(src).endswith(".zip"):
                raise PermissionError(errno.EACCES, "Permission denied", str(src))
            return real_rename(src, dst)

        with caplog.at_level(logging.DEBUG), \
                patch("plugin_catalog.core.renamer.os.rename", denied_rename):
            result = PluginScanner(config=self.config).scan(self.root)

        reports = [
            record for record in caplog.records
            if record.levelno >= logging.WARNING
            and "Xfer_Serum_x64.zip" in record.getMessage()
            and "Example:" not in record.getMessage()
        ]
        assert result.failed == 1
        assert len(reports) == 1
        assert reports[0].getMessage().startswith("Failed to rename Xfer_Serum_x64.zip")

    def test_unreadable_developer_folder_is_skipped(self):
        self.make_files("FabFilter", "FabFilter_ProQ3.exe")
        self.make_files("Xfer", "Xfer_Serum.exe")
        scanner = PluginScanner(config=self.config)
        real_find = scanner.find_plugin_files

        def fake_find(path):
            if path.name == "FabFilter":
                raise DirectoryUnreadableError(f"Cannot read directory {path}")
            return real_find(path)

        with patch.object(scanner, 'find_plugin_files', side_effect=fake_find):
            result = scanner.scan(self.root)

        assert result.developers == 1
        assert list(result.catalog) == ["Xfer"]
        assert len(result.errors) == 1

    def test_progress_callback_errors_are_ignored(self):
        self.make_files("Xfer", "Xfer_Serum.exe")

        def broken_callback(done, total):
            raise RuntimeError("display gone")

        result = PluginScanner(config=self.config, progress_callback=broken_callback).scan(self.root)

        assert result.plugins == 1


class TestCancellation(ScannerTestCase):
    """Test cooperative cancellation."""

    def test_cancel_before_start(self):
        self.make_files("Xfer", "Xfer_Serum.exe")
        token = CancellationToken()
        token.cancel()

        result = PluginScanner(config=self.config, cancel_token=token).scan(self.root)

        assert result.stopped
        assert result.developers == 0
        assert self.names("Xfer") == ["Xfer_Serum.exe"]

    def test_cancel_between_developer_folders(self):
        self.make_files("Arturia", "Arturia_Pigments.exe")
        self.make_files("Xfer", "Xfer_Serum.exe")
        token = CancellationToken()
        progress = []

        def on_progress(done, total):
            progress.append((done, total))
            token.cancel()

        result = PluginScanner(config=self.config, progress_callback=on_progress,
                               cancel_token=token).scan(self.root)

        assert result.stopped
        assert progress == [(1, 2)]
        assert result.counts() == {"developers": 1, "plugins": 1, "zips": 0, "stopped": True}
        assert self.names("Xfer") == ["Xfer_Serum.exe"]

    def test_cancel_leaves_no_unit_half_renamed(self):
        self.make_files("Xfer", "Xfer_Serum_x64.exe", "Xfer_Serum_x64.zip", "Xfer_Vital.exe")
        token = CancellationToken()
        real_rename = RenameExecutor.rename

        def rename_then_cancel(executor, old_path, desired_path):
            token.cancel()
            return real_rename(executor, old_path, desired_path)

        with patch.object(RenameExecutor, 'rename', rename_then_cancel):
            result = PluginScanner(config=self.config, cancel_token=token).scan(self.root)

        assert result.stopped
        assert self.names("Xfer") == [
            "Xfer - Serum x64.exe", "Xfer - Serum x64.zip", "Xfer_Vital.exe", "_developer_changes.log",
        ]
        assert list(result.catalog["Xfer"]) == ["Serum"]

    def test_stopped_scan_still_writes_snapshot(self):
        self.make_files("Xfer", "Xfer_Serum.exe")
        token = CancellationToken()
        token.cancel()

        PluginScanner(config=self.config, cancel_token=token).scan(self.root)

        assert load_snapshot(self.root)["counts"]["stopped"] is True


class TestSnapshot(ScannerTestCase):
    """Test the JSON catalog written after a scan."""

    def test_snapshot_is_written(self):
        self.make_files("Xfer", "Xfer_Serum_1.3.5_Installer.zip", "serum.png")
        self.make_files("Arturia", "Arturia - Pigments.exe")

        PluginScanner(config=self.config).scan(self.root)

        with open(self.root / "plugins-data.json", encoding="utf-8") as f:
            data = json.load(f)
        assert data["counts"] == {"developers": 2, "plugins": 2, "zips": 1, "stopped": False}
        assert list(data["developers"]) == ["Arturia", "Xfer"]
        assert data["developers"]["Xfer"]["Serum"]["zip_file"] == "Xfer/Xfer - Serum 1.3.5.zip"
        assert data["developers"]["Xfer"]["Serum"]["image_files"] == ["Xfer/Xfer - Serum.png"]

    def test_snapshot_file_is_not_cataloged(self):
        self.make_files("Xfer", "Xfer - Serum.exe")
        (self.root / "Xfer" / "plugins-data.json").write_text("{}")

        result = PluginScanner(config=self.config).scan(self.root)

        assert result.catalog["Xfer"]["Serum"].all_files() == [self.root / "Xfer" / "Xfer - Serum.exe"]

    def test_build_snapshot_sorts_developers(self):
        self.make_files("b-dev", "b-dev - One.exe")
        self.make_files("A-dev", "A-dev - Two.exe")
        result = PluginScanner(config=self.config).scan(self.root, ScanOptions(dry_run=True))

        snapshot = build_snapshot(result, self.root)

        assert list(snapshot["developers"]) == ["A-dev", "b-dev"]
        assert snapshot["root"] == str(self.root)

    def test_snapshot_failure_is_reported(self):
        self.make_files("Xfer", "Xfer - Serum.exe")

        with patch('plugin_catalog.core.snapshot.open', side_effect=PermissionError(13, "denied"),
                   create=True):
            result = PluginScanner(config=self.config).scan(self.root)

        assert result.plugins == 1
        assert len(result.errors) == 1
