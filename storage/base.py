"""Base classes for source drivers.

This module defines the abstract interface that all storage backends must
implement, plus the canonical file entry shape every backend normalizes into.
"""

import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class AuthExpiredError(StorageError):
    """Credentials expired and could not be refreshed."""
    pass


@dataclass(frozen=True)
class FileIdentity:
    """Stable key for one logical remote file.

    Built only from backend-reported fields (file id and content hash or
    revision). Shareable links are never part of an identity.

    Attributes:
        backend: 'dropbox', 'gdrive' or 'local'
        path_or_id: Backend file id, or lower-cased path when no id exists
        revision: Content hash or revision, empty if the backend has none
    """
    backend: str
    path_or_id: str
    revision: str = ""

    def __str__(self) -> str:
        if self.revision:
            return f"{self.backend}:{self.path_or_id}@{self.revision[:12]}"
        return f"{self.backend}:{self.path_or_id}"


@dataclass(frozen=True)
class RawFileEntry:
    """Backend-reported metadata for a file or folder.

    Every driver converts its native listing objects into this shape before
    anything else sees them.

    Attributes:
        backend: 'dropbox', 'gdrive' or 'local'
        path: Path within the backend (Dropbox path_display, Drive folder path
              joined with '/', absolute path for local)
        name: Filename only (no directory)
        size: File size in bytes (None if unknown)
        modified: Last modification time reported by the backend
        tag: 'file' or 'folder'
        id: Backend-specific identifier (Dropbox id, Drive file id)
        revision: Content hash / revision used for identity
    """
    backend: str
    path: str
    name: str
    size: Optional[int] = None
    modified: Optional[datetime] = None
    tag: str = "file"
    id: Optional[str] = None
    revision: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.tag == "folder"

    @property
    def identity(self) -> FileIdentity:
        key = self.id or self.path.lower()
        return FileIdentity(self.backend, key, self.revision or "")


class SourceDriver(ABC):
    """Abstract base class for source backends.

    All drivers (local filesystem, Google Drive, Dropbox) implement this
    interface. Drivers that talk to a remote API refresh expired credentials
    and replay the failed request once (see utils.retry).
    """

    #: Short backend tag, used in identities and storage URIs
    backend: str = ""

    @property
    @abstractmethod
    def display_name(self) -> str:
        """Human-readable name for this storage (e.g., 'Recordings (Dropbox)')."""
        pass

    @property
    def is_available(self) -> bool:
        """False for drivers that could not be configured."""
        return True

    # =========================================================================
    # Read Operations
    # =========================================================================

    @abstractmethod
    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        """List files at the given path.

        Args:
            path: Folder path (Dropbox path, Drive folder id, local directory)
            recursive: If True, include files in subdirectories

        Returns:
            List of RawFileEntry objects (files only)

        Raises:
            StorageError: If path doesn't exist or can't be accessed
        """
        pass

    @abstractmethod
    def get_file(self, path: str) -> RawFileEntry:
        """Look up a single file's metadata.

        Args:
            path: Dropbox path, Drive file id, or local file path

        Returns:
            RawFileEntry for the file

        Raises:
            StorageError: If the file doesn't exist or is a folder
        """
        pass

    @abstractmethod
    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        """Download a file to a new local temporary file.

        Every driver, including the local one, writes a fresh temporary copy.
        The caller owns that copy and must delete it.

        Args:
            entry: File to download
            temp_dir: Directory for the temporary file (system default if None)

        Returns:
            Local filesystem path of the temporary copy

        Raises:
            StorageError: If the file doesn't exist or download fails
        """
        pass

    @abstractmethod
    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        """Create a public link to the file, or return the existing one.

        Returns:
            The link URL, or None if the backend has no notion of links

        Raises:
            StorageError: If link creation fails
        """
        pass

    def refresh_credentials(self) -> None:
        """Refresh expired access credentials. No-op for local storage."""
        pass


class UnavailableDriver(SourceDriver):
    """Placeholder for a backend whose configuration is missing or broken.

    Keeps the rest of the process running; every operation raises StorageError
    with the original reason.
    """

    def __init__(self, backend: str, reason: str) -> None:
        self.backend = backend
        self.reason = reason

    @property
    def display_name(self) -> str:
        return f"{self.backend} (unavailable: {self.reason})"

    @property
    def is_available(self) -> bool:
        return False

    def _fail(self):
        raise StorageError(f"{self.backend} is not available: {self.reason}")

    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        self._fail()

    def get_file(self, path: str) -> RawFileEntry:
        self._fail()

    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        self._fail()

    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        self._fail()


def make_temp_path(name: str, temp_dir: Optional[str] = None) -> str:
    """Create an empty temp file that keeps the extension of ``name``."""
    _, ext = os.path.splitext(name)
    if temp_dir:
        os.makedirs(temp_dir, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(suffix=ext, prefix="noteflow_", dir=temp_dir)
    os.close(temp_fd)
    return temp_path


def copy_to_temp(src_path: str, temp_dir: Optional[str] = None) -> str:
    """Copy a local file into a fresh temp file."""
    temp_path = make_temp_path(src_path, temp_dir)
    try:
        shutil.copyfile(src_path, temp_path)
    except OSError as e:
        os.unlink(temp_path)
        raise StorageError(f"Failed to copy {src_path}: {e}")
    return temp_path
