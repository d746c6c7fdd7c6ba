"""Canonical naming for plugin files.

The canonical form is ``"<Developer> - <Plugin>[ <Platform>][ <Version>]<ext>"``
where the developer always comes from the developer folder name.
"""

import os
import re
from pathlib import Path
from typing import List, Optional, Union

from .exceptions import InvalidCharacterSetError
from .models import ParsedFileName
from .parser import (
    PLATFORM_PATTERN, SEPARATOR_RUN, SUFFIX_PATTERN, VERSION_PATTERNS,
    clean_plugin_name, parse_file_name, split_extension,
)

# Characters rejected by at least one of the filesystems plugins get copied to.
INVALID_NAME_CHARACTERS = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')

# Counter appended by the rename executor to resolve a collision.
DISAMBIGUATOR_PATTERN = re.compile(r"^(?P<stem>.+)-\d+$")


def _folder_name(developer_folder: Union[str, Path]) -> str:
    return Path(developer_folder).name


def _key(text: str) -> str:
    return SEPARATOR_RUN.sub(" ", text).strip().casefold()


def resolve_plugin_name(parsed: ParsedFileName, developer: str) -> str:
    """
    Reconcile the parsed developer token with the developer folder name.

    Without a known developer the parser only splits off the first word, so
    "Native Instruments - Massive" comes back as developer "Native" and plugin
    "Instruments Massive". When the
    two fields together start with the folder name, the echo is dropped; when
    the parsed developer is something else it belonged to the plugin name.
    """
    combined = clean_plugin_name(" ".join((parsed.developer, parsed.plugin_name)))
    folder_key = _key(developer)
    if not folder_key:
        return parsed.plugin_name

    words = combined.split(" ")
    folder_words = folder_key.split(" ")
    if [w.casefold() for w in words[:len(folder_words)]] == folder_words:
        return " ".join(words[len(folder_words):])
    return combined


def _place_before(words: List[str], token: str, pattern: Optional[re.Pattern]) -> List[str]:
    """Insert token ahead of the first word pattern matches, or append it."""
    if pattern is not None:
        for index, word in enumerate(words):
            if pattern.fullmatch(word):
                return words[:index] + [token] + words[index:]
    return words + [token]


def _version_pattern(version: str) -> Optional[re.Pattern]:
    for pattern in VERSION_PATTERNS:
        if pattern.fullmatch(version):
            return pattern
    return None


def normalize_file_name(parsed: ParsedFileName, developer_folder: Union[str, Path]) -> str:
    """
    Build the canonical filename for parsed fields.

    Platform and version normally follow the plugin name. When the plugin
    name still holds a token of the same kind (``"Tool Win"`` parsed with
    platform ``x64``), the extracted value goes in front of it, so parsing
    the result picks the same value again. Leftover suffix words are dropped
    like the suffix itself.

    Args:
        parsed: Fields recovered by parse_file_name
        developer_folder: Developer folder name or path; its name is authoritative

    Returns:
        Canonical filename. The suffix (Setup, Installer, ...) is never kept.
    """
    developer = _folder_name(developer_folder)
    words = [
        word for word in resolve_plugin_name(parsed, developer).split(" ")
        if word and not SUFFIX_PATTERN.fullmatch(word)
    ]

    if parsed.platform:
        words = _place_before(words, parsed.platform, PLATFORM_PATTERN)
    if parsed.version:
        words = _place_before(words, parsed.version, _version_pattern(parsed.version))

    return f"{developer} - {' '.join(words)}{parsed.extension}"


def canonical_name(file_name: str, developer_folder: Union[str, Path]) -> str:
    """Parse a filename against its developer folder and normalize it."""
    developer = _folder_name(developer_folder)
    return normalize_file_name(parse_file_name(file_name, developer), developer)


def normalize_image_name(image_path: Union[str, Path], plugin_name: str,
                         developer_folder: Union[str, Path]) -> str:
    """
    Name an image after the plugin it illustrates.

    Generated documentation links "the plugin's image" by this name, so every
    image of a unit gets the same target; the rename executor numbers the
    duplicates.
    """
    _, extension = split_extension(str(image_path))
    parsed = ParsedFileName(plugin_name=plugin_name, extension=extension)
    return normalize_file_name(parsed, developer_folder)


def is_canonical(file_name: str, developer_folder: Union[str, Path]) -> bool:
    """Check whether a filename already has its canonical form."""
    return canonical_name(file_name, developer_folder) == file_name


def canonical_target(file_path: Path, developer_folder: Union[str, Path]) -> Path:
    """
    Return the canonical sibling path for a file.

    A file the executor numbered on an earlier scan ("X-1.exe" next to an
    existing canonical "X.exe") targets "X.exe" again, so the executor's
    collision search lands back on the file itself.
    """
    file_path = Path(file_path)
    stem, extension = split_extension(file_path.name)
    match = DISAMBIGUATOR_PATTERN.match(stem)
    if match:
        base = file_path.with_name(match.group('stem') + extension)
        if is_canonical(base.name, developer_folder) and os.path.lexists(base):
            return base

    return file_path.with_name(canonical_name(file_path.name, developer_folder))


def validate_name(name: str, kind: str = "name") -> str:
    """
    Reject names that cannot be used inside a filename.

    Args:
        name: Developer or plugin name
        kind: What the name is, used in the error message

    Returns:
        The name, unchanged

    Raises:
        InvalidCharacterSetError: If the name is empty or contains invalid characters
    """
    if not name or not name.strip():
        raise InvalidCharacterSetError(f"Empty {kind}", name)

    match = INVALID_NAME_CHARACTERS.search(name)
    if match:
        raise InvalidCharacterSetError(
            f"Invalid character {match.group(0)!r} in {kind}: {name!r}", name
        )
    return name
