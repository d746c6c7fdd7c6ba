"""Tests for the collision-safe rename executor."""

import os
import re
import shutil
import sys
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from plugin_catalog.core.exceptions import IOFailureError, PathNotFoundError, PermissionDeniedError
from plugin_catalog.core.logging_config import DeveloperAuditLog
from plugin_catalog.core.renamer import RenameExecutor


class TestRenameExecutor:
    """Test renaming files inside a developer folder."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.developer = self.temp_dir / "FabFilter"
        self.developer.mkdir()
        self.executor = RenameExecutor()

    def teardown_method(self):
        """Clean up test environment."""
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def _touch(self, name, content=None):
        path = self.developer / name
        path.write_text(content if content is not None else name)
        return path

    def test_simple_rename(self):
        source = self._touch("FabFilter_ProQ3_v3.21_x64_Setup.exe")
        desired = self.developer / "FabFilter - ProQ3 x64 3.21.exe"

        result = self.executor.rename(source, desired)

        assert result == desired
        assert desired.exists()
        assert not source.exists()

    def test_same_name_is_a_no_op(self):
        source = self._touch("FabFilter - ProQ3.exe")

        assert self.executor.rename(source, source) == source
        assert source.exists()

    def test_collision_appends_counter(self):
        existing = self._touch("FabFilter - ProQ3 x64 3.21.exe", "existing")
        source = self._touch("FabFilter_ProQ3_v3.21_x64_Setup.exe", "incoming")

        result = self.executor.rename(source, existing)

        assert result == self.developer / "FabFilter - ProQ3 x64 3.21-1.exe"
        assert existing.read_text() == "existing"
        assert result.read_text() == "incoming"
        assert not source.exists()

    def test_counter_skips_taken_names(self):
        self._touch("FabFilter - ProQ3.exe")
        self._touch("FabFilter - ProQ3-1.exe")
        source = self._touch("proq3.exe")

        result = self.executor.rename(source, self.developer / "FabFilter - ProQ3.exe")

        assert result.name == "FabFilter - ProQ3-2.exe"

    def test_numbered_file_stays_put(self):
        self._touch("FabFilter - ProQ3.exe")
        numbered = self._touch("FabFilter - ProQ3-1.exe")

        result = self.executor.rename(numbered, self.developer / "FabFilter - ProQ3.exe")

        assert result == numbered
        assert numbered.exists()

    def test_never_overwrites(self):
        names = ["a.exe", "b.exe", "c.exe", "FabFilter - ProQ3.exe"]
        paths = [self._touch(name) for name in names]
        desired = self.developer / "FabFilter - ProQ3.exe"
        before = set(os.listdir(self.developer))

        results = [self.executor.rename(path, desired) for path in paths[:3]]

        assert len(set(results)) == 3
        assert all(result.name not in before for result in results)
        assert sorted(p.read_text() for p in self.developer.iterdir()) == sorted(names)

    def test_concurrent_renames_do_not_collide(self):
        sources = [self._touch(f"proq3_{i}.exe") for i in range(8)]
        desired = self.developer / "FabFilter - ProQ3.exe"

        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda source: self.executor.rename(source, desired), sources))

        assert len(set(results)) == len(sources)
        assert len(list(self.developer.iterdir())) == len(sources)

    def test_missing_source(self):
        with pytest.raises(PathNotFoundError):
            self.executor.rename(self.developer / "missing.exe", self.developer / "other.exe")

    def test_permission_denied_leaves_file(self):
        source = self._touch("proq3.exe")

        with patch('plugin_catalog.core.renamer.os.access', return_value=False):
            with pytest.raises(PermissionDeniedError):
                self.executor.rename(source, self.developer / "FabFilter - ProQ3.exe")

        assert source.exists()

    def test_os_error_is_translated(self):
        source = self._touch("proq3.exe")
        error = OSError(5, "Input/output error", str(source))

        with patch('plugin_catalog.core.renamer.os.rename', side_effect=error):
            with pytest.raises(IOFailureError):
                self.executor.rename(source, self.developer / "FabFilter - ProQ3.exe")

    @pytest.mark.skipif(sys.platform == "win32" or os.geteuid() == 0,
                        reason="Directory permissions are not enforced")
    def test_read_only_directory(self):
        source = self._touch("proq3.exe")
        self.developer.chmod(0o555)
        try:
            with pytest.raises(PermissionDeniedError):
                self.executor.rename(source, self.developer / "FabFilter - ProQ3.exe")
        finally:
            self.developer.chmod(0o755)

    def test_dry_run_touches_nothing(self):
        source = self._touch("proq3.exe")
        executor = RenameExecutor(dry_run=True)
        desired = self.developer / "FabFilter - ProQ3.exe"

        first = executor.rename(source, desired)
        second = executor.rename(self._touch("proq3_b.exe"), desired)

        assert first == desired
        assert second.name == "FabFilter - ProQ3-1.exe"
        assert source.exists()
        assert not desired.exists()

    def test_audit_log_entry(self):
        source = self._touch("proq3.exe")
        audit_log = DeveloperAuditLog(self.developer)
        try:
            RenameExecutor(audit_log).rename(source, self.developer / "FabFilter - ProQ3.exe")
        finally:
            audit_log.close()

        lines = (self.developer / "_developer_changes.log").read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        assert re.match(
            r"^\[\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2}\] "
            r"Renamed: proq3\.exe -> FabFilter - ProQ3\.exe$",
            lines[0]
        )

    def test_audit_log_appends(self):
        audit_log = DeveloperAuditLog(self.developer)
        try:
            RenameExecutor(audit_log).rename(self._touch("a.exe"), self.developer / "A.exe")
        finally:
            audit_log.close()

        audit_log = DeveloperAuditLog(self.developer)
        try:
            RenameExecutor(audit_log).rename(self._touch("b.exe"), self.developer / "B.exe")
        finally:
            audit_log.close()

        lines = (self.developer / "_developer_changes.log").read_text(encoding="utf-8").splitlines()
        assert [line.split("] ", 1)[1] for line in lines] == [
            "Renamed: a.exe -> A.exe",
            "Renamed: b.exe -> B.exe",
        ]

    def test_unwritable_audit_log_does_not_fail_rename(self):
        source = self._touch("proq3.exe")
        audit_log = DeveloperAuditLog(self.temp_dir / "missing-folder")
        try:
            result = RenameExecutor(audit_log).rename(source, self.developer / "FabFilter - ProQ3.exe")
        finally:
            audit_log.close()

        assert result.exists()
