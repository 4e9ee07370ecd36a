"""Local filesystem source driver.

Used for manual single-file runs and tests. Paths are relative to the
root_path given at construction; absolute paths inside the root also work.
"""

import hashlib
import os
from datetime import datetime
from typing import List, Optional

from .base import SourceDriver, StorageError, RawFileEntry, copy_to_temp


def compute_sha256(file_path: str) -> str:
    """Compute SHA256 hash of a file."""
    sha256_hash = hashlib.sha256()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256_hash.update(chunk)
    return sha256_hash.hexdigest()


class LocalDriver(SourceDriver):
    """Source driver for a local directory."""

    backend = "local"

    def __init__(self, root_path: str) -> None:
        """Initialize local source driver.

        Args:
            root_path: Path to the root directory

        Raises:
            StorageError: If root_path doesn't exist
        """
        self.root_path = os.path.abspath(root_path)
        if not os.path.exists(self.root_path):
            raise StorageError(f"Directory does not exist: {self.root_path}")
        if not os.path.isdir(self.root_path):
            raise StorageError(f"Not a directory: {self.root_path}")

    @property
    def display_name(self) -> str:
        return f"{self.root_path} (local)"

    def _full_path(self, path: str) -> str:
        """Convert relative path to absolute path."""
        if not path:
            return self.root_path
        return os.path.join(self.root_path, path)

    def _entry_for(self, abs_path: str) -> RawFileEntry:
        try:
            stat = os.stat(abs_path)
            revision = compute_sha256(abs_path)
        except OSError as e:
            raise StorageError(f"Failed to read {abs_path}: {e}")

        return RawFileEntry(
            backend=self.backend,
            path=abs_path,
            name=os.path.basename(abs_path),
            size=stat.st_size,
            modified=datetime.fromtimestamp(stat.st_mtime),
            tag="file",
            revision=revision,
        )

    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        """List files at the given path."""
        full_path = self._full_path(path)

        if not os.path.exists(full_path):
            raise StorageError(f"Path does not exist: {path}")
        if not os.path.isdir(full_path):
            raise StorageError(f"Not a directory: {path}")

        results = []

        if recursive:
            for root, dirs, files in os.walk(full_path):
                dirs.sort()
                for filename in sorted(files):
                    results.append(self._entry_for(os.path.join(root, filename)))
        else:
            for filename in sorted(os.listdir(full_path)):
                abs_path = os.path.join(full_path, filename)
                if os.path.isfile(abs_path):
                    results.append(self._entry_for(abs_path))

        return results

    def get_file(self, path: str) -> RawFileEntry:
        """Look up a single file."""
        full_path = self._full_path(path)

        if not os.path.exists(full_path):
            raise StorageError(f"File does not exist: {path}")
        if not os.path.isfile(full_path):
            raise StorageError(f"Not a file: {path}")

        return self._entry_for(full_path)

    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        """Copy the file to a temp location.

        Unlike remote drivers there is nothing to download, but the pipeline
        deletes whatever this returns, so the original must never be handed out.
        """
        if not os.path.isfile(entry.path):
            raise StorageError(f"File does not exist: {entry.path}")
        return copy_to_temp(entry.path, temp_dir)

    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        """Local files have no public link."""
        return None
