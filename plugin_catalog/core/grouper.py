"""
Group the loose files of a developer folder into plugin units.

Files whose names reduce to the same base name belong to one plugin, even
when their extensions or trailing decorations differ. For example, in the
folder "Waves" both "Waves - SSLChannel v1.0.vst3" and
"Waves_SSLChannel_v1.0_screenshot.png" reduce to "SSLChannel".
"""

import re
from pathlib import Path
from typing import Dict, List, Union

from .models import PluginUnit
from .parser import SEPARATOR_RUN, developer_prefix, split_extension

# Trailing decorations that never distinguish one plugin from another.
TRAILING_NOISE = re.compile(
    r"\s+(?:v?\d+(?:\.\d+)*|pc|windows|win64|win|x64|x86|mac|osx|linux"
    r"|setup|installer|full"
    r"|screenshots?|screen|preview|cover|image|manual|readme|docs|documentation|guide)$",
    re.IGNORECASE,
)


def derive_base_name(file_name: str, developer_folder: Union[str, Path]) -> str:
    """
    Extract the base name shared by all files of one plugin.

    Args:
        file_name: The filename to analyze
        developer_folder: Developer folder name or path

    Returns:
        The base name, e.g. "SSLChannel" for "Waves_SSLChannel_v1.0_screenshot.png"
    """
    stem, _ = split_extension(file_name)
    developer = Path(developer_folder).name

    name = stem
    if developer.strip():
        name = developer_prefix(developer).sub("", name, count=1)

    name = SEPARATOR_RUN.sub(" ", name.replace("_", " ")).strip()

    while True:
        match = TRAILING_NOISE.search(name)
        if not match:
            break
        name = name[:match.start()].rstrip()

    return name or SEPARATOR_RUN.sub(" ", stem).strip()


def group_plugin_files(
    file_paths: List[Path],
    developer_folder: Union[str, Path],
) -> Dict[str, List[Path]]:
    """
    Group file paths by their derived base names.

    Grouping ignores case; the spelling seen first becomes the key. Input
    order is preserved both for keys and for the files of each group.

    Args:
        file_paths: Paths found under one developer folder
        developer_folder: The developer folder

    Returns:
        Dictionary mapping base name to list of file paths
    """
    groups: Dict[str, List[Path]] = {}
    keys: Dict[str, str] = {}

    for file_path in file_paths:
        base_name = derive_base_name(Path(file_path).name, developer_folder)
        key = keys.setdefault(base_name.casefold(), base_name)
        groups.setdefault(key, []).append(Path(file_path))

    return groups


def build_plugin_units(
    file_paths: List[Path],
    developer_folder: Path,
) -> List[PluginUnit]:
    """Group file paths into PluginUnit objects."""
    developer_folder = Path(developer_folder)
    return [
        PluginUnit(base_name=base_name, developer_folder=developer_folder, files=paths)
        for base_name, paths in group_plugin_files(file_paths, developer_folder).items()
    ]
