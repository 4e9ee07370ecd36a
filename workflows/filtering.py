"""Filtering policy applied to listed files before any download.

Rejections here are policy decisions, not errors: callers record them as
skipped with the returned reason and move on.
"""

import re
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from extraction import FileFamily, classify
from storage import RawFileEntry


# Control characters, path separators and characters that some backends reject
UNSAFE_FILENAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f\x7f]')


def sanitize_filename(name: str) -> str:
    """Sanitize a string for use as a filename or page title."""
    name = re.sub(r'[\x00-\x1f\x7f]', '', name)
    name = name.replace('/', '-')
    name = name.replace('\\', '-')
    name = name.replace(':', '-')
    name = name.replace('*', '')
    name = name.replace('?', '')
    name = name.replace('"', "'")
    name = name.replace('<', '')
    name = name.replace('>', '')
    name = name.replace('|', '-')
    name = name.strip().strip('.')
    name = re.sub(r'\s+', ' ', name)
    name = re.sub(r'-+', '-', name)
    if len(name) > 200:
        name = name[:200].strip()
    return name


def unsafe_name_reason(name: str, path: str = "") -> Optional[str]:
    """Why a filename/path is unsafe to process, or None if it is fine."""
    if not name or not name.strip(".").strip():
        return "empty filename"
    match = UNSAFE_FILENAME_RE.search(name)
    if match:
        return f"filename contains unsafe character {match.group(0)!r}"
    if "\\" in path or "//" in path:
        return "path contains ambiguous separators"
    return None


@dataclass
class FilterPolicy:
    """Which files a source folder accepts.

    Attributes:
        families: Content families accepted from this folder
        max_size_bytes: Size ceiling; larger files are skipped
    """
    families: FrozenSet[FileFamily] = field(
        default_factory=lambda: frozenset({FileFamily.SPEECH, FileFamily.DOCUMENT})
    )
    max_size_bytes: int = 50 * 1024 * 1024

    def rejection_reason(self, entry: RawFileEntry,
                         family: Optional[FileFamily] = None) -> Optional[str]:
        """Return a skip reason for ``entry``, or None if it should be processed."""
        family = family or classify(entry.name)
        if family is None:
            return f"unsupported file type: {entry.name}"
        if family not in self.families:
            return f"{family.value} files are not accepted from this folder"
        if entry.size is not None and entry.size > self.max_size_bytes:
            size_mb = entry.size / 1024 / 1024
            limit_mb = self.max_size_bytes / 1024 / 1024
            return f"file too large ({size_mb:.1f}MB > {limit_mb:.0f}MB)"
        return unsafe_name_reason(entry.name, entry.path)
