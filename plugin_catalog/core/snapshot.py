"""JSON snapshot of a scan, written to the root scan folder for external indexers."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from .error_handler import safe_path_operation
from .models import ScanResult

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME = "plugins-data.json"


def build_snapshot(result: ScanResult, root: Path) -> Dict[str, Any]:
    """
    Build the snapshot document for a scan.

    Developers and plugins are sorted alphabetically; paths are relative
    to the root scan folder.
    """
    root = Path(root)
    developers = {}
    for developer in sorted(result.catalog, key=str.casefold):
        plugins = result.catalog[developer]
        developers[developer] = {
            name: plugins[name].to_dict(relative_to=root)
            for name in sorted(plugins, key=str.casefold)
        }

    return {
        "generated_at": datetime.now().isoformat(timespec='seconds'),
        "root": str(root),
        "counts": result.counts(),
        "developers": developers,
    }


@safe_path_operation
def write_snapshot(result: ScanResult, root: Path, filename: str = SNAPSHOT_FILENAME) -> Path:
    """
    Write the snapshot of a scan into the root scan folder.

    Returns:
        Path of the written file

    Raises:
        PermissionDeniedError, IOFailureError: If the file cannot be written
    """
    path = Path(root) / filename
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(build_snapshot(result, root), f, indent=2, ensure_ascii=False)
    logger.info(f"Snapshot saved: {path}")
    return path


@safe_path_operation
def load_snapshot(root: Path, filename: str = SNAPSHOT_FILENAME) -> Dict[str, Any]:
    """
    Load the snapshot written by the last scan of root.

    Raises:
        PathNotFoundError: If no scan has written a snapshot yet
    """
    path = Path(root) / filename
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
