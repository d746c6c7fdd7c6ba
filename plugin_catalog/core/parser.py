"""Filename parsing for plugin installers and their sibling files.

Recovers developer, plugin name, platform, version and suffix from
inconsistently delimited names such as ``FabFilter_ProQ3_v3.21_x64_Setup.exe``.
Each step removes the text it matched before the next step runs, so the
order of the steps is significant:

1. extension
2. developer (leading token up to the first ``-``, ``_`` or whitespace)
3. platform
4. version
5. suffix
6. whatever remains becomes the plugin name
"""

import logging
import os
import re
from typing import Optional, Tuple

from .models import ParsedFileName

logger = logging.getLogger(__name__)

PLATFORM_TOKENS = ("x64", "x86", "win", "windows", "win64", "mac", "osx", "linux")
SUFFIX_TOKENS = ("installer", "setup", "full")

# Tokens are delimited by the ends of the string, whitespace, "_" or "-".
_TOKEN_START = r"(?:^|(?<=[\s_\-]))"
_TOKEN_END = r"(?=[\s_\-]|$)"

DEVELOPER_PATTERN = re.compile(r"^([^-]+?)(?:\s*[-_]\s*|\s+)")

PLATFORM_PATTERN = re.compile(
    _TOKEN_START + r"(win64|windows|win|x64|x86|mac|osx|linux)" + _TOKEN_END,
    re.IGNORECASE,
)

# Longest form first so "1.2.3" is never truncated to "1.2".
VERSION_PATTERNS = (
    re.compile(_TOKEN_START + r"v?(\d+\.\d+\.\d+)" + _TOKEN_END, re.IGNORECASE),
    re.compile(_TOKEN_START + r"v?(\d+\.\d+)" + _TOKEN_END, re.IGNORECASE),
    re.compile(_TOKEN_START + r"v?(\d+)" + _TOKEN_END, re.IGNORECASE),
)

VERSION_LIKE_PATTERN = re.compile(_TOKEN_START + r"v?\d+(?:\.\d+)*" + _TOKEN_END, re.IGNORECASE)

SUFFIX_PATTERN = re.compile(
    _TOKEN_START + r"(installer|setup|full)" + _TOKEN_END,
    re.IGNORECASE,
)

# A trailing ".2" in "Plugin v1.2" is part of the version, not an extension.
EXTENSION_PATTERN = re.compile(r"^\.(?=[0-9]*[A-Za-z])[A-Za-z0-9]+$")

SEPARATOR_RUN = re.compile(r"[\s_\-]+")


def split_extension(file_name: str) -> Tuple[str, str]:
    """
    Split a filename into its stem and lowercase extension.

    Args:
        file_name: Filename, optionally with leading directories

    Returns:
        Tuple of (stem, extension). The extension is empty when the name
        has none.
    """
    name = os.path.basename(file_name)
    stem, ext = os.path.splitext(name)
    if ext and EXTENSION_PATTERN.match(ext):
        return stem, ext.lower()
    return name, ""


def _take(pattern: re.Pattern, text: str) -> Tuple[str, str]:
    """Remove the first match of pattern from text, returning (value, rest)."""
    match = pattern.search(text)
    if not match:
        return "", text
    value = match.group(1) if match.groups() else match.group(0)
    return value, f"{text[:match.start()]} {text[match.end():]}"


def _take_version(text: str) -> Tuple[str, str]:
    for pattern in VERSION_PATTERNS:
        version, rest = _take(pattern, text)
        if version:
            return version, rest
    return "", text


def clean_plugin_name(text: str) -> str:
    """Collapse separator runs to single spaces and trim."""
    return SEPARATOR_RUN.sub(" ", text).strip()


def developer_prefix(developer: str, loose: bool = False) -> re.Pattern:
    """
    Match a developer name at the start of a stem, whatever separators it uses.

    By default the name must be followed by ``-`` or ``_``; with loose set,
    whitespace alone also ends it.
    """
    words = [re.escape(word) for word in SEPARATOR_RUN.split(developer.strip()) if word]
    separator = r"(?:\s*[-_]\s*|\s+)" if loose else r"\s*[-_]\s*"
    return re.compile(r"^" + r"[\s_\-]+".join(words) + separator, re.IGNORECASE)


def parse_file_name(file_name: str, developer: Optional[str] = None) -> ParsedFileName:
    """
    Parse a plugin filename into its structured fields.

    Never raises: fields that cannot be recovered are left empty.

    Args:
        file_name: The filename to analyze
        developer: Known developer name. When given, only a leading echo of
            it is taken as the developer token, so its words never end up
            as platform or version; a name without the echo has no
            developer token.

    Returns:
        ParsedFileName with the recovered fields

    Examples:
        >>> parse_file_name("FabFilter_ProQ3_v3.21_x64_Setup.exe")
        ParsedFileName(developer='FabFilter', plugin_name='ProQ3', platform='x64', version='3.21', suffix='Setup', extension='.exe')
    """
    working, extension = split_extension(file_name or "")

    if developer and clean_plugin_name(developer):
        match = developer_prefix(developer, loose=True).match(working)
        developer = clean_plugin_name(match.group(0)) if match else ""
    else:
        match = DEVELOPER_PATTERN.match(working)
        developer = match.group(1).strip() if match else ""
    if match:
        working = working[match.end():]

    platform, working = _take(PLATFORM_PATTERN, working)
    version, working = _take_version(working)
    suffix, working = _take(SUFFIX_PATTERN, working)

    return ParsedFileName(
        developer=developer,
        plugin_name=clean_plugin_name(working),
        platform=platform,
        version=version,
        suffix=suffix,
        extension=extension,
    )


def has_ambiguous_version(file_name: str) -> bool:
    """
    Check whether a filename carries more than one version-like token.

    The parser keeps the first candidate; names like "Synth 2 v1.5" are a
    known limitation and callers should report them rather than trust the
    extracted version.
    """
    working, _ = split_extension(file_name or "")
    match = DEVELOPER_PATTERN.match(working)
    if match:
        working = working[match.end():]
    return len(VERSION_LIKE_PATTERN.findall(working)) > 1
